"""Cluster-default Kafka settings and their watch."""

from kafka_broker.defaults.cache import DefaultsCache, DefaultsWarning, ReadWriteLock
from kafka_broker.defaults.watcher import ConfigMapDefaultsWatcher

__all__ = [
    "ConfigMapDefaultsWatcher",
    "DefaultsCache",
    "DefaultsWarning",
    "ReadWriteLock",
]
