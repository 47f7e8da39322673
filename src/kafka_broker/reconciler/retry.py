"""Bounded retry of a read-modify-write unit on optimistic-concurrency conflicts.

Only ArtifactConflictError is retried; every other error propagates
immediately. After ``backoff.steps`` attempts the last conflict is raised.
"""

from __future__ import annotations

import logging
import random
import threading
from collections.abc import Callable
from typing import TypeVar

from pydantic import BaseModel, ConfigDict, Field

from kafka_broker.errors import ArtifactConflictError, ReconcileCancelledError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Backoff(BaseModel):
    """Retry schedule: *steps* attempts, waiting *duration* seconds between them.

    The wait is multiplied by *factor* after each attempt and stretched by a
    random fraction of up to *jitter* of itself.
    """

    model_config = ConfigDict(frozen=True)

    steps: int = Field(5, ge=1)
    duration: float = Field(0.01, ge=0)
    factor: float = Field(1.0, ge=0)
    jitter: float = Field(0.1, ge=0)

    def delays(self, rand: Callable[[], float] = random.random) -> list[float]:
        """The waits between consecutive attempts (``steps - 1`` of them)."""
        result: list[float] = []
        duration = self.duration
        for _ in range(self.steps - 1):
            delay = duration
            if self.jitter > 0:
                delay += rand() * self.jitter * duration
            result.append(delay)
            if self.factor > 0:
                duration *= self.factor
        return result


DEFAULT_BACKOFF = Backoff()


def retry_on_conflict(
    fn: Callable[[], T],
    backoff: Backoff = DEFAULT_BACKOFF,
    cancel: threading.Event | None = None,
    rand: Callable[[], float] = random.random,
) -> T:
    """Run *fn* until it does not raise ArtifactConflictError.

    A set *cancel* event aborts before the next attempt and interrupts the
    wait between attempts, raising ReconcileCancelledError.
    """
    cancel = cancel or threading.Event()
    delays = backoff.delays(rand)
    attempt = 0
    while True:
        if cancel.is_set():
            msg = "reconcile cancelled"
            raise ReconcileCancelledError(msg)
        attempt += 1
        try:
            return fn()
        except ArtifactConflictError:
            if attempt >= backoff.steps:
                logger.warning("Conflict persisted after %d attempts", attempt)
                raise
            delay = delays[attempt - 1]
            logger.debug("Conflict on attempt %d, retrying in %.3fs", attempt, delay)
            if cancel.wait(delay):
                msg = f"reconcile cancelled after {attempt} conflicting attempt(s)"
                raise ReconcileCancelledError(msg) from None
