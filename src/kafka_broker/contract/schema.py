"""Protobuf schema of the data-plane contract.

The message classes are built at import time from a programmatic file
descriptor, so no generated ``_pb2`` module is needed.  Field numbers are
part of the wire contract with the data plane and must never change:

    message Trigger {
      map<string, string> attributes = 1;
      string destination = 2;
      string id = 3;
    }

    message Broker {
      string id = 1;
      string topic = 2;
      string deadLetterSink = 3;
      repeated Trigger triggers = 4;
      string path = 5;
      string bootstrapServers = 6;
    }

    message Brokers {
      repeated Broker brokers = 1;
      uint64 volumeGeneration = 2;
    }
"""

from __future__ import annotations

from google.protobuf import descriptor_pb2, descriptor_pool, message_factory

PACKAGE = "kafka_broker.contract"

_FDP = descriptor_pb2.FieldDescriptorProto


def _add_field(
    message: descriptor_pb2.DescriptorProto,
    name: str,
    number: int,
    field_type: int,
    *,
    repeated: bool = False,
    type_name: str | None = None,
) -> None:
    field = message.field.add(
        name=name,
        number=number,
        type=field_type,
        label=_FDP.LABEL_REPEATED if repeated else _FDP.LABEL_OPTIONAL,
    )
    if type_name is not None:
        field.type_name = type_name


def build_file_descriptor() -> descriptor_pb2.FileDescriptorProto:
    """Return the ``FileDescriptorProto`` for the contract."""
    file_proto = descriptor_pb2.FileDescriptorProto(
        name="kafka_broker/contract.proto",
        package=PACKAGE,
        syntax="proto3",
    )

    trigger = file_proto.message_type.add(name="Trigger")
    attributes_entry = trigger.nested_type.add(name="AttributesEntry")
    attributes_entry.options.map_entry = True
    _add_field(attributes_entry, "key", 1, _FDP.TYPE_STRING)
    _add_field(attributes_entry, "value", 2, _FDP.TYPE_STRING)
    _add_field(
        trigger, "attributes", 1, _FDP.TYPE_MESSAGE,
        repeated=True, type_name=f".{PACKAGE}.Trigger.AttributesEntry",
    )
    _add_field(trigger, "destination", 2, _FDP.TYPE_STRING)
    _add_field(trigger, "id", 3, _FDP.TYPE_STRING)

    broker = file_proto.message_type.add(name="Broker")
    _add_field(broker, "id", 1, _FDP.TYPE_STRING)
    _add_field(broker, "topic", 2, _FDP.TYPE_STRING)
    _add_field(broker, "deadLetterSink", 3, _FDP.TYPE_STRING)
    _add_field(
        broker, "triggers", 4, _FDP.TYPE_MESSAGE,
        repeated=True, type_name=f".{PACKAGE}.Trigger",
    )
    _add_field(broker, "path", 5, _FDP.TYPE_STRING)
    _add_field(broker, "bootstrapServers", 6, _FDP.TYPE_STRING)

    brokers = file_proto.message_type.add(name="Brokers")
    _add_field(
        brokers, "brokers", 1, _FDP.TYPE_MESSAGE,
        repeated=True, type_name=f".{PACKAGE}.Broker",
    )
    _add_field(brokers, "volumeGeneration", 2, _FDP.TYPE_UINT64)

    return file_proto


_POOL = descriptor_pool.DescriptorPool()
_POOL.AddSerializedFile(build_file_descriptor().SerializeToString())

TriggerMessage = message_factory.GetMessageClass(
    _POOL.FindMessageTypeByName(f"{PACKAGE}.Trigger"),
)
BrokerMessage = message_factory.GetMessageClass(
    _POOL.FindMessageTypeByName(f"{PACKAGE}.Broker"),
)
BrokersMessage = message_factory.GetMessageClass(
    _POOL.FindMessageTypeByName(f"{PACKAGE}.Brokers"),
)
