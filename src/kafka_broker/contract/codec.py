"""Encode/decode the Brokers aggregate against the supported wire formats.

The format is a deployment setting, never sniffed from content.

Decode failures raise ``MalformedArtifactError``.  Its ``partial`` field
tells the caller what could be salvaged:

- json: bytes that are not a JSON object salvage nothing (``None``).  In an
  object, an entry with invalid Triggers is kept without them; an entry
  that is invalid itself, or a bad ``volumeGeneration``, is listed in
  ``lost``.  Unknown keys are ignored, not errors.
- protobuf: a decode error salvages nothing (``None``).
"""

from __future__ import annotations

import enum
import json
import logging
from typing import Any

from google.protobuf.message import DecodeError
from pydantic import ValidationError

from kafka_broker.contract.schema import BrokersMessage
from kafka_broker.errors import MalformedArtifactError
from kafka_broker.models import MAX_UINT64, Broker, Brokers, Trigger

logger = logging.getLogger(__name__)


class DataPlaneFormat(enum.StrEnum):
    JSON = "json"
    PROTOBUF = "protobuf"


def encode(brokers: Brokers, fmt: DataPlaneFormat | str) -> bytes:
    """Serialize the aggregate in the given format."""
    fmt = DataPlaneFormat(fmt)
    if fmt == DataPlaneFormat.JSON:
        payload = brokers.model_dump(mode="json", by_alias=True)
        return json.dumps(payload, sort_keys=True).encode("utf-8")
    return to_message(brokers).SerializeToString(deterministic=True)


def decode(data: bytes, fmt: DataPlaneFormat | str) -> Brokers:
    """Parse the aggregate from bytes in the given format.

    Empty input decodes to an empty aggregate in every format.
    """
    fmt = DataPlaneFormat(fmt)
    if not data:
        return Brokers()
    if fmt == DataPlaneFormat.JSON:
        return _decode_json(data)
    return _decode_protobuf(data)


# --- json ---


def _decode_json(data: bytes) -> Brokers:
    try:
        raw = json.loads(data)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise MalformedArtifactError(_unmarshal_message(data, exc)) from exc

    if not isinstance(raw, dict):
        msg = _unmarshal_message(data, f"expected a JSON object, got {type(raw).__name__}")
        raise MalformedArtifactError(msg)

    try:
        return Brokers.model_validate(raw)
    except ValidationError as exc:
        partial, lost = _salvage_json(raw)
        raise MalformedArtifactError(
            _unmarshal_message(data, exc), partial=partial, lost=lost,
        ) from exc


def _salvage_json(raw: dict[str, Any]) -> tuple[Brokers, list[str]]:
    """Keep what validates and name what could not be kept.

    Returns the salvaged aggregate and the paths (``brokers[1]``,
    ``volumeGeneration``) whose content was lost.
    """
    entries = raw.get("brokers", [])
    kept: list[Broker] = []
    lost: list[str] = []
    if isinstance(entries, list):
        for position, entry in enumerate(entries):
            broker = _salvage_broker(entry, position)
            if broker is None:
                lost.append(f"brokers[{position}]")
            else:
                kept.append(broker)
    elif entries is not None:
        lost.append("brokers")

    generation = raw.get("volumeGeneration", 0)
    if (
        isinstance(generation, bool)
        or not isinstance(generation, int)
        or not 0 <= generation <= MAX_UINT64
    ):
        lost.append("volumeGeneration")
        generation = 0

    return Brokers(brokers=kept, volume_generation=generation), lost


def _salvage_broker(entry: Any, position: int) -> Broker | None:
    """Validate one entry, dropping only the individual Triggers that are invalid."""
    try:
        return Broker.model_validate(entry)
    except ValidationError:
        pass

    if not isinstance(entry, dict):
        return None
    triggers = entry.get("triggers", [])
    if not isinstance(triggers, list):
        return None
    try:
        broker = Broker.model_validate({k: v for k, v in entry.items() if k != "triggers"})
    except ValidationError:
        return None

    for trigger in triggers:
        try:
            broker.triggers.append(Trigger.model_validate(trigger))
        except ValidationError as exc:
            trigger_id = trigger.get("id") if isinstance(trigger, dict) else None
            logger.warning(
                "Dropping invalid trigger %s of broker %s (brokers[%d]): %s",
                trigger_id, broker.id, position, exc,
            )
    return broker


# --- protobuf ---


def _decode_protobuf(data: bytes) -> Brokers:
    message = BrokersMessage()
    try:
        message.ParseFromString(data)
    except DecodeError as exc:
        raise MalformedArtifactError(_unmarshal_message(data, exc)) from exc
    return from_message(message)


def to_message(brokers: Brokers) -> Any:
    """Convert the aggregate to its protobuf message."""
    message = BrokersMessage(volumeGeneration=brokers.volume_generation)
    for broker in brokers.brokers:
        entry = message.brokers.add(
            id=broker.id,
            topic=broker.topic,
            deadLetterSink=broker.dead_letter_sink,
            path=broker.path,
            bootstrapServers=broker.bootstrap_servers,
        )
        for trigger in broker.triggers:
            trigger_entry = entry.triggers.add(
                id=trigger.id,
                destination=trigger.destination,
            )
            trigger_entry.attributes.update(trigger.attributes)
    return message


def from_message(message: Any) -> Brokers:
    """Convert a protobuf message to the aggregate."""
    return Brokers(
        volume_generation=message.volumeGeneration,
        brokers=[
            Broker(
                id=entry.id,
                topic=entry.topic,
                dead_letter_sink=entry.deadLetterSink,
                path=entry.path,
                bootstrap_servers=entry.bootstrapServers,
                triggers=[
                    Trigger(
                        id=trigger.id,
                        destination=trigger.destination,
                        attributes=dict(trigger.attributes),
                    )
                    for trigger in entry.triggers
                ],
            )
            for entry in message.brokers
        ],
    )


def _unmarshal_message(data: bytes, reason: object) -> str:
    text = data.decode("utf-8", errors="replace")
    return f"failed to unmarshal brokers and triggers: '{text}' - {reason}"
