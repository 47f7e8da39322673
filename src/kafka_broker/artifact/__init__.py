"""Shared data-plane configuration artifact.

Backends: InMemoryArtifactStorage, KubeConfigMapStorage.
"""

from kafka_broker.artifact.storage import (
    ArtifactStorage,
    InMemoryArtifactStorage,
    StoredArtifact,
)
from kafka_broker.artifact.store import ConfigArtifactStore

__all__ = [
    "ArtifactStorage",
    "ConfigArtifactStore",
    "InMemoryArtifactStorage",
    "StoredArtifact",
]
