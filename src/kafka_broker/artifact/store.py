"""The single shared data-plane configuration artifact.

Wraps an ArtifactStorage backend and the configured wire format:

- ``get_or_create()`` fetches the singleton, creating an empty one if absent
- ``read()`` decodes it (absent bytes are an empty aggregate, not an error)
- ``write()`` encodes and writes back with the handle's resource version,
  raising ArtifactConflictError if someone else wrote in between
"""

from __future__ import annotations

import logging

from kafka_broker.artifact.storage import ArtifactStorage, StoredArtifact
from kafka_broker.contract.codec import DataPlaneFormat, decode, encode
from kafka_broker.errors import (
    ArtifactAccessError,
    ArtifactConflictError,
    BrokerReconcileError,
)
from kafka_broker.models import Brokers

logger = logging.getLogger(__name__)


class ConfigArtifactStore:
    """Get-or-create, read and compare-and-swap write of the artifact."""

    def __init__(
        self,
        storage: ArtifactStorage,
        namespace: str,
        name: str,
        fmt: DataPlaneFormat | str = DataPlaneFormat.JSON,
    ) -> None:
        self._storage = storage
        self._namespace = namespace
        self._name = name
        self._format = DataPlaneFormat(fmt)

    @property
    def key(self) -> str:
        return f"{self._namespace}/{self._name}"

    @property
    def format(self) -> DataPlaneFormat:
        return self._format

    def get_or_create(self) -> StoredArtifact:
        """Return the artifact, creating an empty one when missing."""
        artifact = self._get()
        if artifact is not None:
            return artifact

        try:
            artifact = self._storage.create(self._namespace, self._name)
            logger.debug("Created data plane config map %s", self.key)
            return artifact
        except ArtifactConflictError:
            # Lost a creation race: somebody else created it first.
            artifact = self._get()
            if artifact is None:
                msg = f"config map {self.key} reported as existing but not found"
                raise ArtifactAccessError(msg) from None
            return artifact
        except BrokerReconcileError:
            raise
        except Exception as exc:
            msg = f"failed to create config map {self.key}: {exc}"
            raise ArtifactAccessError(msg) from exc

    def read(self, artifact: StoredArtifact) -> Brokers:
        """Decode the artifact.

        Raises MalformedArtifactError (possibly carrying a partial value)
        when the bytes cannot be decoded.
        """
        if not artifact.data:
            return Brokers()
        return decode(artifact.data, self._format)

    def write(self, artifact: StoredArtifact, brokers: Brokers) -> StoredArtifact:
        """Encode and write back. Raises ArtifactConflictError on a stale handle."""
        data = encode(brokers, self._format)
        try:
            return self._storage.update(artifact, data)
        except BrokerReconcileError:
            raise
        except Exception as exc:
            msg = f"failed to update config map {self.key}: {exc}"
            raise ArtifactAccessError(msg) from exc

    def _get(self) -> StoredArtifact | None:
        try:
            return self._storage.get(self._namespace, self._name)
        except BrokerReconcileError:
            raise
        except Exception as exc:
            msg = f"failed to get config map {self.key}: {exc}"
            raise ArtifactAccessError(msg) from exc
