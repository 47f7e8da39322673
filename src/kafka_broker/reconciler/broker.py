"""Broker reconciliation: topic, shared data-plane artifact and pod notification.

Each reconcile resolves the Broker's settings, ensures its topic exists,
merges its entry into the shared Brokers artifact (keeping the Triggers
another reconciler put there), bumps the volume generation, writes the
artifact back with a compare-and-swap and tells the data-plane pods about
the new generation.

The whole unit runs under ``retry_on_conflict``: when another worker wrote
the artifact in between, everything is redone from a fresh read.

Usage::

    reconciler = BrokerReconciler(
        config_resolver=BrokerConfigResolver(defaults, reader),
        provisioner=TopicProvisioner(KafkaTopicAdmin()),
        store=ConfigArtifactStore(storage, "knative-eventing", "kafka-broker-brokers-triggers"),
        notifier=PodNotifier(pods, "knative-eventing"),
        destination_resolver=URIResolver(),
        recorder=LoggingEventRecorder(),
    )
    reconciler.reconcile(resource)
    ...
    reconciler.finalize(resource)
"""

from __future__ import annotations

import logging
import threading

from kafka_broker.artifact.store import ConfigArtifactStore
from kafka_broker.errors import (
    ArtifactAccessError,
    ArtifactConflictError,
    BrokerReconcileError,
    DestinationResolutionError,
    DispatcherNotificationError,
    MalformedArtifactError,
    ReceiverNotificationError,
    ReconcileCancelledError,
    TopicProvisionError,
)
from kafka_broker.models import (
    MAX_UINT64,
    Broker,
    BrokerConfig,
    BrokerResource,
    Brokers,
    ConditionType,
    EventType,
)
from kafka_broker.pods.notifier import PodNotifier
from kafka_broker.reconciler.config import BrokerConfigResolver
from kafka_broker.reconciler.retry import DEFAULT_BACKOFF, Backoff, retry_on_conflict
from kafka_broker.reconciler.status import (
    INTERNAL_ERROR_REASON,
    EventRecorder,
    StatusConditionManager,
)
from kafka_broker.resolver.destination import DestinationResolver
from kafka_broker.topics.provisioner import TOPIC_PREFIX, TopicProvisioner, topic_name

logger = logging.getLogger(__name__)

# Index returned by find_broker() when the Broker has no entry yet.
NO_BROKER = -1

DEFAULT_SYSTEM_NAMESPACE = "knative-eventing"
DEFAULT_INGRESS_SERVICE = "kafka-broker-receiver"
DEFAULT_CLUSTER_DOMAIN = "cluster.local"


# --- Aggregate helpers ---


def broker_path(namespace: str, name: str) -> str:
    """Ingress path of a Broker."""
    return f"/{namespace}/{name}"


def find_broker(brokers: Brokers, uid: str) -> int:
    """Index of the entry with id *uid*, or NO_BROKER."""
    for index, broker in enumerate(brokers.brokers):
        if broker.id == uid:
            return index
    return NO_BROKER


def delete_broker(brokers: Brokers, index: int) -> None:
    """Remove the entry at *index* in place.

    The last entry is moved into the freed slot, so order is not preserved.
    The volume generation is left untouched.
    """
    entries = brokers.brokers
    if len(entries) == 1:
        brokers.brokers = []
        return
    entries[index] = entries[-1]
    entries.pop()


def increment_volume_generation(generation: int) -> int:
    """Next generation: unsigned 64-bit ``g + 1`` modulo ``2**64 - 2``."""
    return ((generation + 1) & MAX_UINT64) % (MAX_UINT64 - 1)


# --- Reconciler ---


class BrokerReconciler:
    """Reconciles and finalizes Broker resources.

    Safe to share between worker threads as long as each Broker is handled
    by one worker at a time.
    """

    def __init__(
        self,
        config_resolver: BrokerConfigResolver,
        provisioner: TopicProvisioner,
        store: ConfigArtifactStore,
        notifier: PodNotifier,
        destination_resolver: DestinationResolver,
        recorder: EventRecorder,
        backoff: Backoff = DEFAULT_BACKOFF,
        topic_prefix: str = TOPIC_PREFIX,
        system_namespace: str = DEFAULT_SYSTEM_NAMESPACE,
        ingress_service: str = DEFAULT_INGRESS_SERVICE,
        cluster_domain: str = DEFAULT_CLUSTER_DOMAIN,
    ) -> None:
        self._config_resolver = config_resolver
        self._provisioner = provisioner
        self._store = store
        self._notifier = notifier
        self._destination_resolver = destination_resolver
        self._recorder = recorder
        self._backoff = backoff
        self._topic_prefix = topic_prefix
        self._ingress_host = f"{ingress_service}.{system_namespace}.svc.{cluster_domain}"

    def topic(self, resource: BrokerResource) -> str:
        return topic_name(resource.namespace, resource.name, self._topic_prefix)

    def address(self, resource: BrokerResource) -> str:
        return f"http://{self._ingress_host}{broker_path(resource.namespace, resource.name)}"

    # --- create / update ---

    def reconcile(
        self,
        resource: BrokerResource,
        cancel: threading.Event | None = None,
    ) -> Broker:
        """Bring the topic and the artifact entry of *resource* up to date.

        Updates ``resource.status`` along the way and returns the entry that
        was written. Raises a BrokerReconcileError on failure.
        """
        status = StatusConditionManager(resource, self._recorder)
        try:
            return retry_on_conflict(
                lambda: self._reconcile_once(resource, status),
                self._backoff,
                cancel,
            )
        except ArtifactConflictError as exc:
            raise status.failed_to_update_config_map(exc) from None
        except ReconcileCancelledError as exc:
            raise status.failed(ConditionType.READY, "ReconcileCancelled", exc) from None

    def _reconcile_once(self, resource: BrokerResource, status: StatusConditionManager) -> Broker:
        try:
            config = self._config_resolver.resolve(resource)
        except BrokerReconcileError as exc:
            raise status.failed_to_resolve_config(exc) from None
        status.config_resolved()
        logger.debug(
            "Config resolved for broker %s: partitions=%d replication_factor=%d bootstrap_servers=%s",
            resource.key,
            config.topic_detail.num_partitions,
            config.topic_detail.replication_factor,
            config.bootstrap_servers_string(),
        )

        topic = self.topic(resource)
        try:
            self._provisioner.create(topic, config.topic_detail, config.bootstrap_servers)
        except TopicProvisionError as exc:
            raise status.failed_to_create_topic(topic, exc) from None
        status.topic_created(topic)
        logger.debug("Topic %s ready for broker %s", topic, resource.key)

        try:
            artifact = self._store.get_or_create()
        except ArtifactAccessError as exc:
            raise status.failed(ConditionType.CONFIG_MAP_UPDATED, "FailedToGetConfigMap", exc) from None

        try:
            brokers = self._store.read(artifact)
        except MalformedArtifactError as exc:
            if not exc.usable:
                raise status.failed(
                    ConditionType.CONFIG_MAP_UPDATED, "FailedToGetDataFromConfigMap", exc,
                ) from None
            logger.warning(
                "Continuing with %d salvaged broker(s) from %s: %s",
                len(exc.partial.brokers),
                self._store.key,
                exc,
            )
            brokers = exc.partial
        logger.debug(
            "Read %s at generation %d with %d broker(s)",
            self._store.key,
            brokers.volume_generation,
            len(brokers.brokers),
        )

        try:
            entry = self._broker_entry(resource, topic, config)
        except DestinationResolutionError as exc:
            raise status.failed_to_resolve_dead_letter_sink(exc) from None

        index = find_broker(brokers, resource.uid)
        if index != NO_BROKER:
            entry.triggers = brokers.brokers[index].triggers
            brokers.brokers[index] = entry
            logger.debug("Broker %s exists at index %d", resource.key, index)
        else:
            brokers.brokers.append(entry)
            logger.debug("Broker %s doesn't exist", resource.key)

        brokers.volume_generation = increment_volume_generation(brokers.volume_generation)

        try:
            self._store.write(artifact, brokers)
        except ArtifactConflictError:
            logger.debug("Conflict writing %s for broker %s", self._store.key, resource.key)
            raise
        except ArtifactAccessError as exc:
            raise status.failed_to_update_config_map(exc) from None
        status.config_map_updated(self._store.key)
        logger.debug("Wrote %s at generation %d", self._store.key, brokers.volume_generation)

        # Receivers reject events for Brokers they do not know: a Broker is
        # only Ready once every receiver has its generation.
        try:
            self._notifier.notify_hard(brokers.volume_generation)
        except ReceiverNotificationError as exc:
            raise status.failed_to_notify_receivers(exc) from None
        status.receivers_notified()

        try:
            self._notifier.notify_soft(brokers.volume_generation)
        except DispatcherNotificationError as exc:
            logger.warning(
                "Failed to update dispatcher pod annotation to trigger an immediate config map refresh: %s",
                exc,
            )
            status.failed_to_notify_dispatchers(exc)
        else:
            status.dispatchers_notified()

        status.reconciled(self.address(resource))
        logger.debug("Broker %s reconciled", resource.key)
        return entry

    def _broker_entry(self, resource: BrokerResource, topic: str, config: BrokerConfig) -> Broker:
        entry = Broker(
            id=resource.uid,
            topic=topic,
            path=broker_path(resource.namespace, resource.name),
            bootstrap_servers=config.bootstrap_servers_string(),
        )

        delivery = resource.delivery
        if delivery is None or delivery.dead_letter_sink is None:
            return entry

        try:
            entry.dead_letter_sink = self._destination_resolver.resolve(
                delivery.dead_letter_sink, resource,
            )
        except DestinationResolutionError as exc:
            msg = f"failed to resolve dead-letter sink: {exc}"
            raise DestinationResolutionError(msg) from exc
        return entry

    # --- delete ---

    def finalize(
        self,
        resource: BrokerResource,
        cancel: threading.Event | None = None,
    ) -> None:
        """Remove the entry of *resource* from the artifact and delete its topic.

        Any failure is raised so the finalizer stays in place.
        """
        try:
            retry_on_conflict(
                lambda: self._finalize_once(resource),
                self._backoff,
                cancel,
            )
        except BrokerReconcileError as exc:
            self._recorder.event(resource, EventType.WARNING, INTERNAL_ERROR_REASON, str(exc))
            raise

    def _finalize_once(self, resource: BrokerResource) -> None:
        artifact = self._store.get_or_create()

        try:
            brokers = self._store.read(artifact)
        except MalformedArtifactError as exc:
            msg = f"failed to get brokers and triggers: {exc}"
            raise MalformedArtifactError(msg, exc.partial, exc.lost) from exc

        index = find_broker(brokers, resource.uid)
        if index != NO_BROKER:
            delete_broker(brokers, index)
            logger.debug("Broker %s deleted at index %d", resource.key, index)

            # No generation bump and no pod notification: the pods see the
            # removal on their next refresh.
            self._store.write(artifact, brokers)
            logger.debug("Wrote %s without broker %s", self._store.key, resource.key)

        config = self._config_resolver.resolve(resource)

        topic = self._provisioner.delete(self.topic(resource), config.bootstrap_servers)
        logger.debug("Topic %s deleted for broker %s", topic, resource.key)
