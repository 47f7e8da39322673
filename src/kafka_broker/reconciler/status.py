"""Broker status conditions and Kubernetes-style events.

Every reconcile step has its own condition. A failing step sets its
condition (and Ready) to False, records a Warning event with reason
``InternalError`` and hands back the error for the caller to raise::

    status = StatusConditionManager(resource, recorder)
    try:
        config = resolver.resolve(resource)
    except ConfigResolutionError as exc:
        raise status.failed_to_resolve_config(exc) from None
    status.config_resolved()

Built-in recorders:
- MemoryEventRecorder: keeps events in a list (tests, dry runs)
- LoggingEventRecorder: writes events to the log
- KubeEventRecorder: creates core/v1 Event objects
"""

from __future__ import annotations

import logging
import threading
import uuid
import warnings
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any, Protocol, runtime_checkable

from kafka_broker.models import (
    BrokerResource,
    Condition,
    ConditionStatus,
    ConditionType,
    EventType,
    RecordedEvent,
)

logger = logging.getLogger(__name__)

INTERNAL_ERROR_REASON = "InternalError"
COMPONENT = "kafka-broker-controller"

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


class EventWarning(UserWarning):
    """Emitted when an event could not be recorded (non-fatal)."""


# --- Event recorders ---


@runtime_checkable
class EventRecorder(Protocol):
    """Protocol for recording events against a Broker."""

    def event(
        self,
        resource: BrokerResource,
        event_type: EventType,
        reason: str,
        message: str,
    ) -> None:
        """Record one event. Must not raise."""
        ...


class MemoryEventRecorder:
    """Keeps every recorded event in memory."""

    def __init__(self, clock: Clock | None = None) -> None:
        self._clock = clock or _utcnow
        self._lock = threading.Lock()
        self._events: list[RecordedEvent] = []

    @property
    def events(self) -> list[RecordedEvent]:
        with self._lock:
            return list(self._events)

    def event(
        self,
        resource: BrokerResource,
        event_type: EventType,
        reason: str,
        message: str,
    ) -> None:
        recorded = RecordedEvent(
            type=event_type,
            reason=reason,
            message=message,
            involved_object=resource.key,
            timestamp=self._clock(),
        )
        with self._lock:
            self._events.append(recorded)


class LoggingEventRecorder:
    """Writes events to the module logger."""

    def event(
        self,
        resource: BrokerResource,
        event_type: EventType,
        reason: str,
        message: str,
    ) -> None:
        level = logging.WARNING if event_type == EventType.WARNING else logging.INFO
        logger.log(level, "Event %s %s on broker %s: %s", event_type, reason, resource.key, message)


class KubeEventRecorder:
    """Creates core/v1 Events through the CoreV1 API.

    Failures are warned about, never raised: events are informational.
    """

    def __init__(self, core_api: Any, component: str = COMPONENT, clock: Clock | None = None) -> None:
        self._core = core_api
        self._component = component
        self._clock = clock or _utcnow

    def event(
        self,
        resource: BrokerResource,
        event_type: EventType,
        reason: str,
        message: str,
    ) -> None:
        now = self._clock().isoformat()
        body = {
            "apiVersion": "v1",
            "kind": "Event",
            "metadata": {
                "name": f"{resource.name}.{uuid.uuid4().hex[:16]}",
                "namespace": resource.namespace,
            },
            "involvedObject": {
                "apiVersion": "eventing.knative.dev/v1",
                "kind": "Broker",
                "name": resource.name,
                "namespace": resource.namespace,
                "uid": resource.uid,
            },
            "type": str(event_type),
            "reason": reason,
            "message": message,
            "source": {"component": self._component},
            "firstTimestamp": now,
            "lastTimestamp": now,
            "count": 1,
        }
        try:
            self._core.create_namespaced_event(namespace=resource.namespace, body=body)
        except Exception as exc:
            warnings.warn(
                f"Failed to record event {reason} for broker {resource.key}: {exc}",
                EventWarning,
                stacklevel=2,
            )


# --- Conditions ---


class StatusConditionManager:
    """Drives the condition set of one Broker through one reconcile."""

    def __init__(
        self,
        resource: BrokerResource,
        recorder: EventRecorder,
        clock: Clock | None = None,
    ) -> None:
        self._resource = resource
        self._recorder = recorder
        self._clock = clock or _utcnow
        for condition_type in ConditionType:
            if resource.status.get_condition(condition_type) is None:
                self._set(condition_type, ConditionStatus.UNKNOWN)

    @property
    def resource(self) -> BrokerResource:
        return self._resource

    def _set(
        self,
        condition_type: ConditionType,
        status: ConditionStatus,
        reason: str = "",
        message: str = "",
    ) -> None:
        conditions = self._resource.status.conditions
        existing = self._resource.status.get_condition(condition_type)
        if existing is not None and existing.status == status:
            existing.reason = reason
            existing.message = message
            return

        condition = Condition(
            type=condition_type,
            status=status,
            reason=reason,
            message=message,
            last_transition_time=self._clock(),
        )
        if existing is None:
            conditions.append(condition)
        else:
            conditions[conditions.index(existing)] = condition

    def _fail(
        self,
        condition_type: ConditionType,
        reason: str,
        exc: Exception,
    ) -> Exception:
        message = str(exc)
        self._set(condition_type, ConditionStatus.FALSE, reason, message)
        self._set(ConditionType.READY, ConditionStatus.FALSE, reason, message)
        self._recorder.event(self._resource, EventType.WARNING, INTERNAL_ERROR_REASON, message)
        return exc

    # --- per-step transitions ---

    def config_resolved(self) -> None:
        self._set(ConditionType.CONFIG_PARSED, ConditionStatus.TRUE)

    def failed_to_resolve_config(self, exc: Exception) -> Exception:
        return self._fail(ConditionType.CONFIG_PARSED, "FailedToGetConfig", exc)

    def topic_created(self, topic: str) -> None:
        self._set(ConditionType.TOPIC_READY, ConditionStatus.TRUE, "TopicCreated", f"topic {topic} created")

    def failed_to_create_topic(self, topic: str, exc: Exception) -> Exception:
        return self._fail(ConditionType.TOPIC_READY, "FailedToCreateTopic", exc)

    def config_map_updated(self, key: str) -> None:
        self._set(
            ConditionType.CONFIG_MAP_UPDATED,
            ConditionStatus.TRUE,
            "ConfigMapUpdated",
            f"config map {key} updated",
        )

    def failed_to_update_config_map(self, exc: Exception) -> Exception:
        return self._fail(ConditionType.CONFIG_MAP_UPDATED, "FailedToUpdateConfigMap", exc)

    def failed_to_resolve_dead_letter_sink(self, exc: Exception) -> Exception:
        return self._fail(ConditionType.CONFIG_PARSED, "FailedToGetBrokerConfig", exc)

    def receivers_notified(self) -> None:
        self._set(ConditionType.RECEIVERS_NOTIFIED, ConditionStatus.TRUE)

    def failed_to_notify_receivers(self, exc: Exception) -> Exception:
        return self._fail(ConditionType.RECEIVERS_NOTIFIED, "FailedToUpdateReceiverPodsAnnotation", exc)

    def dispatchers_notified(self) -> None:
        self._set(ConditionType.DISPATCHERS_NOTIFIED, ConditionStatus.TRUE)

    def failed_to_notify_dispatchers(self, exc: Exception) -> None:
        """Dispatchers catch up on their own: degrade the condition only."""
        self._set(
            ConditionType.DISPATCHERS_NOTIFIED,
            ConditionStatus.FALSE,
            "FailedToUpdateDispatcherPodsAnnotation",
            str(exc),
        )

    def reconciled(self, address: str) -> None:
        self._resource.status.address = address
        self._set(ConditionType.ADDRESSABLE, ConditionStatus.TRUE)
        self._set(ConditionType.READY, ConditionStatus.TRUE)

    def failed(self, condition_type: ConditionType, reason: str, exc: Exception) -> Exception:
        """Generic failure for errors outside the per-step transitions."""
        return self._fail(condition_type, reason, exc)
