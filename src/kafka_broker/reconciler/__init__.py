"""Broker reconciliation engine."""

from kafka_broker.reconciler.broker import (
    NO_BROKER,
    BrokerReconciler,
    broker_path,
    delete_broker,
    find_broker,
    increment_volume_generation,
)
from kafka_broker.reconciler.config import (
    BrokerConfigResolver,
    ConfigMapReader,
    ConfigMapSource,
    InMemoryConfigMapReader,
    UnsupportedKind,
    classify_reference,
)
from kafka_broker.reconciler.retry import Backoff, retry_on_conflict
from kafka_broker.reconciler.status import (
    EventRecorder,
    LoggingEventRecorder,
    MemoryEventRecorder,
    StatusConditionManager,
)

__all__ = [
    "Backoff",
    "BrokerConfigResolver",
    "BrokerReconciler",
    "ConfigMapReader",
    "ConfigMapSource",
    "EventRecorder",
    "InMemoryConfigMapReader",
    "LoggingEventRecorder",
    "MemoryEventRecorder",
    "NO_BROKER",
    "StatusConditionManager",
    "UnsupportedKind",
    "broker_path",
    "classify_reference",
    "delete_broker",
    "find_broker",
    "increment_volume_generation",
    "retry_on_conflict",
]
