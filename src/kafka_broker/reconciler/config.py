"""Resolve the per-Broker Kafka settings.

A Broker either references a ConfigMap holding its settings, or uses the
cluster defaults held by the DefaultsCache. The reference kind is a closed
set: anything other than a ConfigMap is rejected before any I/O.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from kafka_broker.defaults.cache import (
    BOOTSTRAP_SERVERS_KEY,
    DEFAULT_TOPIC_PARTITIONS_KEY,
    DEFAULT_TOPIC_REPLICATION_FACTOR_KEY,
    DefaultsCache,
    split_bootstrap_servers,
)
from kafka_broker.errors import (
    ConfigResolutionError,
    NoDefaultBootstrapServersError,
    UnsupportedConfigKindError,
)
from kafka_broker.kube import api_status
from kafka_broker.models import BrokerConfig, BrokerResource, ObjectReference, TopicDetail

logger = logging.getLogger(__name__)


# --- Reference classification ---


@dataclass(frozen=True)
class ConfigMapSource:
    """The Broker's settings live in this ConfigMap."""

    namespace: str
    name: str

    @property
    def key(self) -> str:
        return f"{self.namespace}/{self.name}"


@dataclass(frozen=True)
class UnsupportedKind:
    """The Broker references a config resource of a kind we cannot read."""

    kind: str


ConfigSource = ConfigMapSource | UnsupportedKind


def classify_reference(ref: ObjectReference, default_namespace: str) -> ConfigSource:
    """Classify a config reference; its namespace defaults to the Broker's."""
    if ref.kind.lower() != "configmap":
        return UnsupportedKind(kind=ref.kind)
    return ConfigMapSource(namespace=ref.namespace or default_namespace, name=ref.name)


# --- ConfigMap readers ---


@runtime_checkable
class ConfigMapReader(Protocol):
    """Protocol for reading ConfigMap data."""

    def get(self, namespace: str, name: str) -> dict[str, str] | None:
        """Return the ConfigMap data, or None if it does not exist."""
        ...


class InMemoryConfigMapReader:
    """Process-local ConfigMaps. Useful for tests and dry runs."""

    def __init__(self, config_maps: Mapping[str, Mapping[str, str]] | None = None) -> None:
        self._lock = threading.Lock()
        self._config_maps: dict[str, dict[str, str]] = {
            key: dict(data) for key, data in (config_maps or {}).items()
        }

    def put(self, namespace: str, name: str, data: Mapping[str, str]) -> None:
        with self._lock:
            self._config_maps[f"{namespace}/{name}"] = dict(data)

    def get(self, namespace: str, name: str) -> dict[str, str] | None:
        with self._lock:
            data = self._config_maps.get(f"{namespace}/{name}")
            return dict(data) if data is not None else None


class KubeConfigMapReader:
    """Reads ConfigMaps through the CoreV1 API.

    Requires: ``pip install kafka-broker-control-plane[k8s]``
    """

    def __init__(self, core_api: Any) -> None:
        self._core = core_api

    def get(self, namespace: str, name: str) -> dict[str, str] | None:
        try:
            config_map = self._core.read_namespaced_config_map(name=name, namespace=namespace)
        except Exception as exc:
            if api_status(exc) == 404:
                return None
            raise
        return dict(config_map.data or {})


# --- Resolution ---


def config_from_config_map(data: Mapping[str, str], defaults: TopicDetail) -> BrokerConfig:
    """Build a BrokerConfig from explicit ConfigMap data.

    ``bootstrap.servers`` is required. Topic sizing keys fall back to
    *defaults* when absent; a malformed value is an error.
    """
    servers = split_bootstrap_servers(data.get(BOOTSTRAP_SERVERS_KEY, ""))
    if not servers:
        raise NoDefaultBootstrapServersError(BOOTSTRAP_SERVERS_KEY)

    values = defaults.model_dump()
    for key, field in (
        (DEFAULT_TOPIC_PARTITIONS_KEY, "num_partitions"),
        (DEFAULT_TOPIC_REPLICATION_FACTOR_KEY, "replication_factor"),
    ):
        raw = data.get(key)
        if raw is None or str(raw).strip() == "":
            continue
        try:
            values[field] = int(str(raw).strip())
        except ValueError:
            msg = f"failed to parse {key}: {raw!r} is not an integer"
            raise ConfigResolutionError(msg) from None

    try:
        detail = TopicDetail.model_validate(values)
    except ValueError as exc:
        msg = f"invalid topic settings: {exc}"
        raise ConfigResolutionError(msg) from exc

    return BrokerConfig(topic_detail=detail, bootstrap_servers=servers)


class BrokerConfigResolver:
    """Turns a BrokerResource into its effective BrokerConfig."""

    def __init__(self, defaults: DefaultsCache, reader: ConfigMapReader | None = None) -> None:
        self._defaults = defaults
        self._reader = reader

    def resolve(self, resource: BrokerResource) -> BrokerConfig:
        if resource.config is None:
            return BrokerConfig(
                topic_detail=self._defaults.topic_detail(),
                bootstrap_servers=self._defaults.bootstrap_servers(),
            )

        source = classify_reference(resource.config, resource.namespace)
        if isinstance(source, UnsupportedKind):
            raise UnsupportedConfigKindError(source.kind)

        if self._reader is None:
            msg = f"failed to get configmap {source.key}: no config map reader configured"
            raise ConfigResolutionError(msg)

        try:
            data = self._reader.get(source.namespace, source.name)
        except Exception as exc:
            msg = f"failed to get configmap {source.key}: {exc}"
            raise ConfigResolutionError(msg) from exc
        if data is None:
            msg = f"failed to get configmap {source.key}: not found"
            raise ConfigResolutionError(msg)

        logger.debug("Broker %s uses config map %s", resource.key, source.key)
        return config_from_config_map(data, self._defaults.topic_detail())
