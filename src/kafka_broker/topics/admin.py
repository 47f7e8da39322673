"""Topic admin protocol and built-in InMemoryTopicAdmin.

The admin boundary signals the two idempotent outcomes with dedicated
exceptions so the provisioner can treat them as success:

- ``TopicAlreadyExistsError`` from ``create_topic()``
- ``UnknownTopicError`` from ``delete_topic()``

Anything else raised by an admin is a real failure.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Protocol, runtime_checkable


class TopicAlreadyExistsError(Exception):
    """Raised by an admin when the topic to create already exists."""


class UnknownTopicError(Exception):
    """Raised by an admin when the topic to delete does not exist."""


@runtime_checkable
class TopicAdmin(Protocol):
    """Protocol for transport topic administration."""

    def create_topic(
        self,
        name: str,
        num_partitions: int,
        replication_factor: int,
        bootstrap_servers: list[str],
    ) -> None:
        """Create a topic on the cluster reachable at ``bootstrap_servers``."""
        ...

    def delete_topic(self, name: str, bootstrap_servers: list[str]) -> None:
        """Delete a topic on the cluster reachable at ``bootstrap_servers``."""
        ...


@dataclass(frozen=True)
class TopicRecord:
    name: str
    num_partitions: int
    replication_factor: int
    bootstrap_servers: tuple[str, ...]


class InMemoryTopicAdmin:
    """Process-local admin that records calls. Useful for tests and dry runs.

    Set ``create_error`` / ``delete_error`` to make the next calls fail.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.topics: dict[str, TopicRecord] = {}
        self.create_calls: list[str] = []
        self.delete_calls: list[str] = []
        self.create_error: Exception | None = None
        self.delete_error: Exception | None = None

    def create_topic(
        self,
        name: str,
        num_partitions: int,
        replication_factor: int,
        bootstrap_servers: list[str],
    ) -> None:
        with self._lock:
            self.create_calls.append(name)
            if self.create_error is not None:
                raise self.create_error
            if name in self.topics:
                raise TopicAlreadyExistsError(name)
            self.topics[name] = TopicRecord(
                name=name,
                num_partitions=num_partitions,
                replication_factor=replication_factor,
                bootstrap_servers=tuple(bootstrap_servers),
            )

    def delete_topic(self, name: str, bootstrap_servers: list[str]) -> None:
        with self._lock:
            self.delete_calls.append(name)
            if self.delete_error is not None:
                raise self.delete_error
            if name not in self.topics:
                raise UnknownTopicError(name)
            del self.topics[name]
