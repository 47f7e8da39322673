"""Data-plane pod notification.

Clients: InMemoryPodClient, KubePodClient.
"""

from kafka_broker.pods.client import InMemoryPodClient, PodClient, PodRef
from kafka_broker.pods.notifier import (
    DISPATCHER_SELECTOR,
    RECEIVER_SELECTOR,
    VOLUME_GENERATION_ANNOTATION_KEY,
    PodNotifier,
)

__all__ = [
    "DISPATCHER_SELECTOR",
    "InMemoryPodClient",
    "PodClient",
    "PodNotifier",
    "PodRef",
    "RECEIVER_SELECTOR",
    "VOLUME_GENERATION_ANNOTATION_KEY",
]
