"""Resolve Destinations (object reference and/or URI) to absolute URIs."""

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol, runtime_checkable
from urllib.parse import urljoin, urlparse

from kafka_broker.errors import DestinationResolutionError
from kafka_broker.models import BrokerResource, Destination, ObjectReference

DEFAULT_CLUSTER_DOMAIN = "cluster.local"

AddressableLookup = Callable[[ObjectReference], str | None]


@runtime_checkable
class DestinationResolver(Protocol):
    """Protocol for turning a Destination into an absolute URI."""

    def resolve(self, destination: Destination, owner: BrokerResource) -> str:
        """Resolve *destination*; relative references use *owner*'s namespace."""
        ...


def is_absolute(uri: str) -> bool:
    parsed = urlparse(uri)
    return bool(parsed.scheme) and bool(parsed.netloc)


class URIResolver:
    """Resolves Service references directly and other kinds through a lookup.

    *addressable_lookup* receives the reference (namespace already filled in)
    and returns the object's address URL, or ``None`` when it has none.
    """

    def __init__(
        self,
        cluster_domain: str = DEFAULT_CLUSTER_DOMAIN,
        addressable_lookup: AddressableLookup | None = None,
    ) -> None:
        self._cluster_domain = cluster_domain
        self._lookup = addressable_lookup

    def resolve(self, destination: Destination, owner: BrokerResource) -> str:
        uri = destination.uri or ""

        if destination.ref is None:
            if not uri:
                msg = "destination missing Ref and URI, expected at least one"
                raise DestinationResolutionError(msg)
            if not is_absolute(uri):
                msg = f"URI is not absolute (both scheme and host should be non-empty): {uri!r}"
                raise DestinationResolutionError(msg)
            return uri

        ref = destination.ref
        if not ref.namespace:
            ref = ref.model_copy(update={"namespace": owner.namespace})

        base = self._address_of(ref)
        if uri:
            return urljoin(base, uri)
        return base

    def _address_of(self, ref: ObjectReference) -> str:
        if ref.kind == "Service" and ref.api_version == "v1":
            return f"http://{ref.name}.{ref.namespace}.svc.{self._cluster_domain}/"

        if self._lookup is None:
            msg = f"failed to get addressable {ref.kind} {ref.namespace}/{ref.name}: no lookup configured"
            raise DestinationResolutionError(msg)

        try:
            address = self._lookup(ref)
        except Exception as exc:
            msg = f"failed to get addressable {ref.kind} {ref.namespace}/{ref.name}: {exc}"
            raise DestinationResolutionError(msg) from exc

        if not address:
            msg = f"address not set for {ref.kind} {ref.namespace}/{ref.name}"
            raise DestinationResolutionError(msg)
        if not is_absolute(address):
            msg = f"address of {ref.kind} {ref.namespace}/{ref.name} is not absolute: {address!r}"
            raise DestinationResolutionError(msg)
        return address
