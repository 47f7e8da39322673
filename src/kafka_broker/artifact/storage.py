"""Artifact storage protocol and built-in InMemoryArtifactStorage.

Storage holds one binary payload per (namespace, name) plus an opaque
optimistic-concurrency token (``resource_version``).  Any object with
``get()``, ``create()`` and ``update()`` satisfies the protocol, no
inheritance required.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from kafka_broker.errors import ArtifactConflictError


@dataclass(frozen=True)
class StoredArtifact:
    """A snapshot of the artifact as last observed."""

    namespace: str
    name: str
    data: bytes | None
    resource_version: str

    @property
    def key(self) -> str:
        return f"{self.namespace}/{self.name}"


@runtime_checkable
class ArtifactStorage(Protocol):
    """Protocol for artifact storage backends."""

    def get(self, namespace: str, name: str) -> StoredArtifact | None:
        """Return the artifact, or None if it does not exist."""
        ...

    def create(self, namespace: str, name: str) -> StoredArtifact:
        """Create an empty artifact.

        Raises ArtifactConflictError if it already exists.
        """
        ...

    def update(self, artifact: StoredArtifact, data: bytes) -> StoredArtifact:
        """Replace the payload if ``artifact.resource_version`` is current.

        Raises ArtifactConflictError on a version mismatch.
        """
        ...


class InMemoryArtifactStorage:
    """Thread-safe, process-local storage with integer resource versions.

    Useful for tests and dry runs.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._items: dict[tuple[str, str], StoredArtifact] = {}
        self._version = 0
        self.update_count = 0

    def get(self, namespace: str, name: str) -> StoredArtifact | None:
        with self._lock:
            return self._items.get((namespace, name))

    def create(self, namespace: str, name: str) -> StoredArtifact:
        with self._lock:
            if (namespace, name) in self._items:
                msg = f"artifact {namespace}/{name} already exists"
                raise ArtifactConflictError(msg)
            artifact = StoredArtifact(
                namespace=namespace,
                name=name,
                data=None,
                resource_version=self._next_version(),
            )
            self._items[(namespace, name)] = artifact
            return artifact

    def update(self, artifact: StoredArtifact, data: bytes) -> StoredArtifact:
        with self._lock:
            current = self._items.get((artifact.namespace, artifact.name))
            if current is None or current.resource_version != artifact.resource_version:
                msg = (
                    f"artifact {artifact.key} was modified: "
                    f"expected version {artifact.resource_version}"
                )
                raise ArtifactConflictError(msg)
            updated = StoredArtifact(
                namespace=artifact.namespace,
                name=artifact.name,
                data=bytes(data),
                resource_version=self._next_version(),
            )
            self._items[(artifact.namespace, artifact.name)] = updated
            self.update_count += 1
            return updated

    def put(self, namespace: str, name: str, data: bytes | None) -> StoredArtifact:
        """Seed or overwrite an artifact unconditionally."""
        with self._lock:
            artifact = StoredArtifact(
                namespace=namespace,
                name=name,
                data=data,
                resource_version=self._next_version(),
            )
            self._items[(namespace, name)] = artifact
            return artifact

    def _next_version(self) -> str:
        self._version += 1
        return str(self._version)
