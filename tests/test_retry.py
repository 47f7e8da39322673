"""Tests for the conflict retry combinator."""

from __future__ import annotations

import threading

import pytest
from pydantic import ValidationError

from kafka_broker.errors import (
    ArtifactAccessError,
    ArtifactConflictError,
    ReconcileCancelledError,
)
from kafka_broker.reconciler.retry import Backoff, retry_on_conflict

NO_WAIT = Backoff(steps=5, duration=0, jitter=0)


class _Flaky:
    def __init__(self, conflicts: int, result: str = "ok") -> None:
        self.conflicts = conflicts
        self.calls = 0
        self.result = result

    def __call__(self) -> str:
        self.calls += 1
        if self.calls <= self.conflicts:
            msg = f"conflict {self.calls}"
            raise ArtifactConflictError(msg)
        return self.result


# --- Backoff ---


class TestBackoff:
    def test_defaults(self):
        backoff = Backoff()
        assert (backoff.steps, backoff.duration, backoff.factor, backoff.jitter) == (5, 0.01, 1.0, 0.1)

    def test_delays_without_jitter(self):
        backoff = Backoff(steps=4, duration=1.0, factor=2.0, jitter=0)
        assert backoff.delays() == [1.0, 2.0, 4.0]

    def test_delays_with_jitter(self):
        backoff = Backoff(steps=3, duration=1.0, factor=1.0, jitter=0.5)
        assert backoff.delays(rand=lambda: 1.0) == [1.5, 1.5]

    def test_steps_must_be_positive(self):
        with pytest.raises(ValidationError):
            Backoff(steps=0)

    def test_frozen(self):
        with pytest.raises(ValidationError):
            Backoff().steps = 3


# --- retry_on_conflict ---


class TestRetryOnConflict:
    def test_success_first_try(self):
        fn = _Flaky(conflicts=0)
        assert retry_on_conflict(fn, NO_WAIT) == "ok"
        assert fn.calls == 1

    def test_retries_conflicts(self):
        fn = _Flaky(conflicts=2)
        assert retry_on_conflict(fn, NO_WAIT) == "ok"
        assert fn.calls == 3

    def test_bounded(self):
        fn = _Flaky(conflicts=100)
        with pytest.raises(ArtifactConflictError, match="conflict 5"):
            retry_on_conflict(fn, NO_WAIT)
        assert fn.calls == 5

    def test_other_errors_not_retried(self):
        calls = []

        def fn():
            calls.append(1)
            msg = "forbidden"
            raise ArtifactAccessError(msg)

        with pytest.raises(ArtifactAccessError):
            retry_on_conflict(fn, NO_WAIT)
        assert len(calls) == 1

    def test_cancelled_before_first_attempt(self):
        cancel = threading.Event()
        cancel.set()
        fn = _Flaky(conflicts=0)
        with pytest.raises(ReconcileCancelledError):
            retry_on_conflict(fn, NO_WAIT, cancel)
        assert fn.calls == 0

    def test_cancel_interrupts_wait(self):
        cancel = threading.Event()
        backoff = Backoff(steps=5, duration=30.0, jitter=0)

        def fn():
            cancel.set()
            msg = "conflict"
            raise ArtifactConflictError(msg)

        with pytest.raises(ReconcileCancelledError):
            retry_on_conflict(fn, backoff, cancel)
