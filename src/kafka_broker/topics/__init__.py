"""Physical topic provisioning.

Admins: InMemoryTopicAdmin, KafkaTopicAdmin.
"""

from kafka_broker.topics.admin import (
    InMemoryTopicAdmin,
    TopicAdmin,
    TopicAlreadyExistsError,
    UnknownTopicError,
)
from kafka_broker.topics.provisioner import TOPIC_PREFIX, TopicProvisioner, topic_name

__all__ = [
    "InMemoryTopicAdmin",
    "TOPIC_PREFIX",
    "TopicAdmin",
    "TopicAlreadyExistsError",
    "TopicProvisioner",
    "UnknownTopicError",
    "topic_name",
]
