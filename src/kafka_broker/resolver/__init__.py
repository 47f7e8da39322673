"""Destination resolution."""

from kafka_broker.resolver.destination import DestinationResolver, URIResolver

__all__ = ["DestinationResolver", "URIResolver"]
