"""Error taxonomy for Broker reconciliation.

Every failure the engine can surface derives from ``BrokerReconcileError``
so the enclosing controller runtime can catch one type and reschedule.

Fatal:
- ConfigResolutionError (unsupported kind, missing ConfigMap, no defaults)
- TopicProvisionError
- ArtifactAccessError
- MalformedArtifactError (unless a usable partial value exists)
- DestinationResolutionError
- ReceiverNotificationError

Recovered locally:
- ArtifactConflictError (retried, fatal after the bounded attempts)
- DispatcherNotificationError (logged, degrades a condition)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from kafka_broker.models import Brokers


class BrokerReconcileError(Exception):
    """Base class for all reconciliation failures."""


# --- Config resolution ---


class ConfigResolutionError(BrokerReconcileError):
    """Raised when per-Broker settings cannot be resolved."""


class UnsupportedConfigKindError(ConfigResolutionError):
    """Raised when a Broker references a config resource of an unknown kind."""

    def __init__(self, kind: str) -> None:
        self.kind = kind
        super().__init__(f"supported config Kind: ConfigMap - got {kind}")


class NoDefaultBootstrapServersError(ConfigResolutionError):
    """Raised when no default bootstrap servers have been observed yet."""

    def __init__(self, key: str = "bootstrap.servers") -> None:
        super().__init__(f"no {key} provided")


# --- Topic ---


class TopicProvisionError(BrokerReconcileError):
    """Raised when a topic create/delete fails for a non-idempotent reason."""

    def __init__(self, topic: str, message: str) -> None:
        self.topic = topic
        super().__init__(message)


# --- Artifact ---


class ArtifactAccessError(BrokerReconcileError):
    """Raised when the shared artifact cannot be fetched, created or written."""


class ArtifactConflictError(BrokerReconcileError):
    """Raised when the artifact was modified since it was read."""


class MalformedArtifactError(BrokerReconcileError):
    """Raised when artifact bytes cannot be decoded.

    ``partial`` holds whatever could be salvaged, or ``None`` when nothing
    was recoverable.  ``lost`` names the parts of the payload that are not in
    ``partial`` at all (whole Broker entries, the volume generation).
    """

    def __init__(
        self,
        message: str,
        partial: Brokers | None = None,
        lost: list[str] | None = None,
    ) -> None:
        self.partial = partial
        self.lost = lost or []
        super().__init__(message)

    @property
    def usable(self) -> bool:
        """True when writing ``partial`` back would not drop any Broker entry.

        It must carry at least one entry, and neither an entry nor the volume
        generation may have been lost.
        """
        return self.partial is not None and len(self.partial.brokers) > 0 and not self.lost


# --- Destination ---


class DestinationResolutionError(BrokerReconcileError):
    """Raised when a destination cannot be resolved to an absolute URI."""


# --- Pod notification ---


class PodNotificationError(BrokerReconcileError):
    """Raised when pods could not be annotated with a new generation."""

    def __init__(self, message: str, failed_pods: list[str] | None = None) -> None:
        self.failed_pods = failed_pods or []
        super().__init__(message)


class ReceiverNotificationError(PodNotificationError):
    """Raised when a receiver pod could not be notified (fatal)."""


class DispatcherNotificationError(PodNotificationError):
    """Raised when dispatcher pods could not be notified (non-fatal)."""


# --- Lifecycle ---


class ReconcileCancelledError(BrokerReconcileError):
    """Raised when the ambient cancellation signal is set mid-reconcile."""
