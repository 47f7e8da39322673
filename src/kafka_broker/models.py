"""Core data models for the Kafka Broker control plane.

Defines the schemas for:
- The shared data-plane contract (Brokers aggregate, Broker entry, Trigger)
- Resolved per-Broker settings (TopicDetail, BrokerConfig)
- The slice of the Broker custom resource the reconciler reads
- Status conditions and recorded events
"""

from __future__ import annotations

import enum
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

MAX_UINT64 = 2**64 - 1

# --- Enums ---


class ConditionType(enum.StrEnum):
    READY = "Ready"
    CONFIG_PARSED = "ConfigParsed"
    TOPIC_READY = "TopicReady"
    CONFIG_MAP_UPDATED = "ConfigMapUpdated"
    RECEIVERS_NOTIFIED = "ReceiversNotified"
    DISPATCHERS_NOTIFIED = "DispatchersNotified"
    ADDRESSABLE = "Addressable"


class ConditionStatus(enum.StrEnum):
    TRUE = "True"
    FALSE = "False"
    UNKNOWN = "Unknown"


class EventType(enum.StrEnum):
    NORMAL = "Normal"
    WARNING = "Warning"


# --- Data-plane contract ---


class Trigger(BaseModel):
    """A routing record owned by the Trigger reconciler.

    Opaque to the Broker reconciler: it is carried, never interpreted.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str
    destination: str = ""
    attributes: dict[str, str] = Field(default_factory=dict)


class Broker(BaseModel):
    """One Broker entry in the shared data-plane contract."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    topic: str = ""
    dead_letter_sink: str = Field("", alias="deadLetterSink")
    triggers: list[Trigger] = Field(default_factory=list)
    path: str = ""
    bootstrap_servers: str = Field("", alias="bootstrapServers")


class Brokers(BaseModel):
    """The cluster-wide aggregate every data-plane pod reads.

    ``volume_generation`` is an unsigned 64-bit counter identifying the
    logical version of the aggregate.
    """

    model_config = ConfigDict(populate_by_name=True)

    brokers: list[Broker] = Field(default_factory=list)
    volume_generation: int = Field(0, ge=0, le=MAX_UINT64, alias="volumeGeneration")


# --- Resolved settings ---


class TopicDetail(BaseModel):
    """Sizing of a physical topic."""

    num_partitions: int = Field(10, ge=1, le=2**31 - 1)
    replication_factor: int = Field(1, ge=1, le=2**15 - 1)


class BrokerConfig(BaseModel):
    """Per-Broker settings resolved on every reconcile. Never persisted."""

    topic_detail: TopicDetail = Field(default_factory=TopicDetail)
    bootstrap_servers: list[str] = Field(default_factory=list)

    def bootstrap_servers_string(self) -> str:
        """Comma-joined form stored in the Broker entry."""
        return ",".join(self.bootstrap_servers)


# --- Broker custom resource ---


class ObjectReference(BaseModel):
    """Reference to another Kubernetes object (kind/namespace/name)."""

    kind: str
    name: str
    namespace: str = ""
    api_version: str = "v1"


class Destination(BaseModel):
    """An addressable destination: an object reference, a URI, or both.

    When both are set, ``uri`` is resolved relative to the reference.
    """

    ref: ObjectReference | None = None
    uri: str | None = None


class DeliverySpec(BaseModel):
    """Delivery options of a Broker."""

    dead_letter_sink: Destination | None = None


class Condition(BaseModel):
    """A single status condition."""

    type: ConditionType
    status: ConditionStatus = ConditionStatus.UNKNOWN
    reason: str = ""
    message: str = ""
    last_transition_time: datetime | None = None


class BrokerStatus(BaseModel):
    """Observed state reported on the Broker resource."""

    conditions: list[Condition] = Field(default_factory=list)
    address: str | None = None

    def get_condition(self, condition_type: ConditionType) -> Condition | None:
        for condition in self.conditions:
            if condition.type == condition_type:
                return condition
        return None

    def is_ready(self) -> bool:
        ready = self.get_condition(ConditionType.READY)
        return ready is not None and ready.status == ConditionStatus.TRUE


class BrokerResource(BaseModel):
    """The parts of a Broker custom resource the reconciler reads and writes."""

    uid: str
    namespace: str
    name: str
    config: ObjectReference | None = None
    delivery: DeliverySpec | None = None
    status: BrokerStatus = Field(default_factory=BrokerStatus)

    @property
    def key(self) -> str:
        return f"{self.namespace}/{self.name}"

    @classmethod
    def from_manifest(cls, manifest: dict[str, Any]) -> BrokerResource:
        """Build from a Broker object as returned by the API server (camelCase)."""
        metadata = manifest.get("metadata") or {}
        spec = manifest.get("spec") or {}

        config = None
        raw_config = spec.get("config")
        if raw_config:
            config = _reference_from_manifest(raw_config)

        delivery = None
        raw_delivery = spec.get("delivery")
        if raw_delivery:
            sink = None
            raw_sink = raw_delivery.get("deadLetterSink")
            if raw_sink is not None:
                raw_ref = raw_sink.get("ref")
                sink = Destination(
                    ref=_reference_from_manifest(raw_ref) if raw_ref else None,
                    uri=raw_sink.get("uri"),
                )
            delivery = DeliverySpec(dead_letter_sink=sink)

        return cls(
            uid=str(metadata.get("uid", "")),
            namespace=metadata.get("namespace", "default"),
            name=metadata["name"],
            config=config,
            delivery=delivery,
        )


def _reference_from_manifest(raw: dict[str, Any]) -> ObjectReference:
    return ObjectReference(
        kind=raw.get("kind", ""),
        name=raw.get("name", ""),
        namespace=raw.get("namespace", ""),
        api_version=raw.get("apiVersion", "v1"),
    )


# --- Events ---


class RecordedEvent(BaseModel):
    """A Kubernetes-style event emitted against a Broker."""

    type: EventType
    reason: str
    message: str
    involved_object: str
    timestamp: datetime
