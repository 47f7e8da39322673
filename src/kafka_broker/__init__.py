"""Kafka Broker control plane: reconciles Brokers into Kafka topics and a shared data-plane config."""

__version__ = "0.1.0"

from kafka_broker.artifact.store import ConfigArtifactStore
from kafka_broker.config import ControlPlaneConfig, find_config, load_config
from kafka_broker.contract.codec import DataPlaneFormat, decode, encode
from kafka_broker.controller import (
    ControlPlane,
    build_control_plane,
    build_in_memory_control_plane,
)
from kafka_broker.defaults.cache import DefaultsCache
from kafka_broker.errors import (
    ArtifactAccessError,
    ArtifactConflictError,
    BrokerReconcileError,
    ConfigResolutionError,
    DestinationResolutionError,
    DispatcherNotificationError,
    MalformedArtifactError,
    NoDefaultBootstrapServersError,
    ReceiverNotificationError,
    ReconcileCancelledError,
    TopicProvisionError,
    UnsupportedConfigKindError,
)
from kafka_broker.models import (
    Broker,
    BrokerConfig,
    BrokerResource,
    Brokers,
    TopicDetail,
    Trigger,
)
from kafka_broker.pods.notifier import PodNotifier
from kafka_broker.reconciler.broker import BrokerReconciler
from kafka_broker.reconciler.retry import Backoff
from kafka_broker.topics.provisioner import TopicProvisioner

__all__ = [
    "ArtifactAccessError",
    "ArtifactConflictError",
    "Backoff",
    "Broker",
    "BrokerConfig",
    "BrokerReconcileError",
    "BrokerReconciler",
    "BrokerResource",
    "Brokers",
    "ConfigArtifactStore",
    "ConfigResolutionError",
    "ControlPlane",
    "ControlPlaneConfig",
    "DataPlaneFormat",
    "DefaultsCache",
    "DestinationResolutionError",
    "DispatcherNotificationError",
    "MalformedArtifactError",
    "NoDefaultBootstrapServersError",
    "PodNotifier",
    "ReceiverNotificationError",
    "ReconcileCancelledError",
    "TopicDetail",
    "TopicProvisionError",
    "TopicProvisioner",
    "Trigger",
    "UnsupportedConfigKindError",
    "build_control_plane",
    "build_in_memory_control_plane",
    "decode",
    "encode",
    "find_config",
    "load_config",
    "__version__",
]
