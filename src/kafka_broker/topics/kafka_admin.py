"""KafkaTopicAdmin: topic administration built on kafka-python.

A short-lived ``KafkaAdminClient`` is opened per call because every Broker
may point at a different cluster.  kafka-python errors for the idempotent
outcomes are translated to the admin boundary exceptions.

Requires: ``pip install kafka-broker-control-plane[kafka]``
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from kafka_broker.topics.admin import TopicAlreadyExistsError, UnknownTopicError


def _check_kafka_available() -> None:
    """Raise ImportError with helpful message if kafka-python is not installed."""
    try:
        import kafka  # noqa: F401
    except ImportError:
        raise ImportError(
            "The 'kafka-python' package is required for KafkaTopicAdmin. "
            "Install it with: pip install kafka-broker-control-plane[kafka]"
        ) from None


class KafkaTopicAdmin:
    """Creates and deletes topics through the Kafka admin API."""

    def __init__(
        self,
        client_id: str = "kafka-broker-controller",
        request_timeout_ms: int = 30_000,
        _client_factory: Callable[..., Any] | None = None,
    ) -> None:
        _check_kafka_available()
        self._client_id = client_id
        self._request_timeout_ms = request_timeout_ms
        self._client_factory = _client_factory

    def create_topic(
        self,
        name: str,
        num_partitions: int,
        replication_factor: int,
        bootstrap_servers: list[str],
    ) -> None:
        from kafka.admin import NewTopic
        from kafka.errors import TopicAlreadyExistsError as KafkaTopicAlreadyExistsError

        new_topic = NewTopic(
            name=name,
            num_partitions=num_partitions,
            replication_factor=replication_factor,
        )
        client = self._connect(bootstrap_servers)
        try:
            client.create_topics([new_topic])
        except KafkaTopicAlreadyExistsError as exc:
            raise TopicAlreadyExistsError(name) from exc
        finally:
            client.close()

    def delete_topic(self, name: str, bootstrap_servers: list[str]) -> None:
        from kafka.errors import UnknownTopicOrPartitionError

        client = self._connect(bootstrap_servers)
        try:
            client.delete_topics([name])
        except UnknownTopicOrPartitionError as exc:
            raise UnknownTopicError(name) from exc
        finally:
            client.close()

    def _connect(self, bootstrap_servers: list[str]) -> Any:
        if self._client_factory is not None:
            factory = self._client_factory
        else:
            from kafka.admin import KafkaAdminClient

            factory = KafkaAdminClient
        return factory(
            bootstrap_servers=list(bootstrap_servers),
            client_id=self._client_id,
            request_timeout_ms=self._request_timeout_ms,
        )
