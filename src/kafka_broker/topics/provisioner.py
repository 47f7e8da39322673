"""Idempotent create/delete of the topic backing a Broker."""

from __future__ import annotations

import logging

from kafka_broker.errors import TopicProvisionError
from kafka_broker.models import TopicDetail
from kafka_broker.topics.admin import TopicAdmin, TopicAlreadyExistsError, UnknownTopicError

logger = logging.getLogger(__name__)

# topic name: knative-broker-<broker-namespace>-<broker-name>
TOPIC_PREFIX = "knative-broker-"


def topic_name(namespace: str, name: str, prefix: str = TOPIC_PREFIX) -> str:
    """Deterministic topic name of a Broker."""
    return f"{prefix}{namespace}-{name}"


class TopicProvisioner:
    """Ensures a Broker topic exists, or is gone, whatever its prior state."""

    def __init__(self, admin: TopicAdmin) -> None:
        self._admin = admin

    def create(self, name: str, detail: TopicDetail, bootstrap_servers: list[str]) -> str:
        """Create the topic. An existing topic counts as success."""
        try:
            self._admin.create_topic(
                name,
                detail.num_partitions,
                detail.replication_factor,
                bootstrap_servers,
            )
        except TopicAlreadyExistsError:
            logger.debug("Topic %s already exists", name)
        except Exception as exc:
            raise TopicProvisionError(name, f"failed to create topic: {name}: {exc}") from exc
        return name

    def delete(self, name: str, bootstrap_servers: list[str]) -> str:
        """Delete the topic. A missing topic counts as success."""
        try:
            self._admin.delete_topic(name, bootstrap_servers)
        except UnknownTopicError:
            logger.debug("Topic %s does not exist", name)
        except Exception as exc:
            raise TopicProvisionError(name, f"failed to delete topic {name}: {exc}") from exc
        return name
