"""Wiring of the reconciler and its collaborators.

``build_control_plane()`` connects to a cluster (kubernetes client, Kafka
admin client). ``build_in_memory_control_plane()`` wires the same engine
to process-local backends for tests and dry runs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from kafka_broker.artifact.k8s_storage import KubeConfigMapStorage
from kafka_broker.artifact.storage import ArtifactStorage, InMemoryArtifactStorage
from kafka_broker.artifact.store import ConfigArtifactStore
from kafka_broker.config import ControlPlaneConfig
from kafka_broker.defaults.cache import DefaultsCache
from kafka_broker.defaults.watcher import ConfigMapDefaultsWatcher
from kafka_broker.kube import check_kubernetes_available, core_v1_api, load_api_client
from kafka_broker.pods.client import InMemoryPodClient, PodClient
from kafka_broker.pods.k8s_client import KubePodClient
from kafka_broker.pods.notifier import PodNotifier
from kafka_broker.reconciler.broker import BrokerReconciler
from kafka_broker.reconciler.config import (
    BrokerConfigResolver,
    ConfigMapReader,
    InMemoryConfigMapReader,
    KubeConfigMapReader,
)
from kafka_broker.reconciler.status import (
    EventRecorder,
    KubeEventRecorder,
    MemoryEventRecorder,
)
from kafka_broker.resolver.destination import URIResolver
from kafka_broker.topics.admin import InMemoryTopicAdmin, TopicAdmin
from kafka_broker.topics.kafka_admin import KafkaTopicAdmin
from kafka_broker.topics.provisioner import TopicProvisioner

logger = logging.getLogger(__name__)


@dataclass
class ControlPlane:
    """A wired reconciler plus the shared state it depends on."""

    reconciler: BrokerReconciler
    defaults: DefaultsCache
    store: ConfigArtifactStore
    recorder: EventRecorder
    watcher: ConfigMapDefaultsWatcher | None = None
    backends: dict[str, Any] = field(default_factory=dict)

    def sync_defaults(self) -> None:
        """Load the system defaults once, without watching."""
        if self.watcher is not None:
            self.watcher.sync()

    def start(self) -> None:
        if self.watcher is not None:
            self.watcher.start()

    def stop(self) -> None:
        if self.watcher is not None:
            self.watcher.stop()


def _assemble(
    config: ControlPlaneConfig,
    *,
    defaults: DefaultsCache,
    storage: ArtifactStorage,
    reader: ConfigMapReader,
    topic_admin: TopicAdmin,
    pods: PodClient,
    recorder: EventRecorder,
) -> tuple[BrokerReconciler, ConfigArtifactStore]:
    store = ConfigArtifactStore(
        storage,
        config.system_namespace,
        config.data_plane_config_map,
        config.data_plane_format,
    )
    notifier = PodNotifier(
        pods,
        config.system_namespace,
        receiver_selector=config.receiver_selector,
        dispatcher_selector=config.dispatcher_selector,
        annotation_key=config.annotation_key,
    )
    reconciler = BrokerReconciler(
        config_resolver=BrokerConfigResolver(defaults, reader),
        provisioner=TopicProvisioner(topic_admin),
        store=store,
        notifier=notifier,
        destination_resolver=URIResolver(cluster_domain=config.cluster_domain),
        recorder=recorder,
        backoff=config.backoff,
        topic_prefix=config.topic_prefix,
        system_namespace=config.system_namespace,
        ingress_service=config.ingress_service,
        cluster_domain=config.cluster_domain,
    )
    return reconciler, store


def build_control_plane(
    config: ControlPlaneConfig,
    *,
    api_client: Any = None,
    topic_admin: TopicAdmin | None = None,
    recorder: EventRecorder | None = None,
) -> ControlPlane:
    """Wire the reconciler to a cluster.

    Requires the ``[k8s]`` extra, and the ``[kafka]`` extra unless a
    *topic_admin* is supplied.
    """
    check_kubernetes_available()
    if api_client is None:
        api_client = load_api_client(config.kubeconfig, config.context, config.in_cluster)
    core = core_v1_api(api_client)

    defaults = DefaultsCache()
    recorder = recorder or KubeEventRecorder(core)
    topic_admin = topic_admin or KafkaTopicAdmin()

    reconciler, store = _assemble(
        config,
        defaults=defaults,
        storage=KubeConfigMapStorage(core),
        reader=KubeConfigMapReader(core),
        topic_admin=topic_admin,
        pods=KubePodClient(core),
        recorder=recorder,
    )
    watcher = ConfigMapDefaultsWatcher(
        core,
        defaults,
        config.system_namespace,
        config.defaults_config_map,
    )
    logger.debug(
        "Control plane wired to namespace %s (artifact %s, format %s)",
        config.system_namespace,
        store.key,
        config.data_plane_format,
    )
    return ControlPlane(
        reconciler=reconciler,
        defaults=defaults,
        store=store,
        recorder=recorder,
        watcher=watcher,
        backends={"core": core, "topic_admin": topic_admin},
    )


def build_in_memory_control_plane(
    config: ControlPlaneConfig | None = None,
    *,
    defaults: DefaultsCache | None = None,
    storage: InMemoryArtifactStorage | None = None,
    reader: InMemoryConfigMapReader | None = None,
    topic_admin: InMemoryTopicAdmin | None = None,
    pods: InMemoryPodClient | None = None,
    recorder: MemoryEventRecorder | None = None,
) -> ControlPlane:
    """Wire the reconciler to process-local backends."""
    config = config or ControlPlaneConfig()
    backends: dict[str, Any] = {
        "storage": storage or InMemoryArtifactStorage(),
        "reader": reader or InMemoryConfigMapReader(),
        "topic_admin": topic_admin or InMemoryTopicAdmin(),
        "pods": pods or InMemoryPodClient(),
    }
    defaults = defaults or DefaultsCache()
    recorder = recorder or MemoryEventRecorder()

    reconciler, store = _assemble(
        config,
        defaults=defaults,
        storage=backends["storage"],
        reader=backends["reader"],
        topic_admin=backends["topic_admin"],
        pods=backends["pods"],
        recorder=recorder,
    )
    return ControlPlane(
        reconciler=reconciler,
        defaults=defaults,
        store=store,
        recorder=recorder,
        backends=backends,
    )
