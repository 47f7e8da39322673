"""Data-plane contract: wire formats for the Brokers aggregate."""

from kafka_broker.contract.codec import DataPlaneFormat, decode, encode

__all__ = [
    "DataPlaneFormat",
    "decode",
    "encode",
]
