"""Push a new volume generation to data-plane pods.

Receiver pods serve ingress: a Broker must be in their routing view before
it is Ready, so failing to annotate any of them fails the reconcile
(``notify_hard``).

Dispatcher pods read the same artifact on their own refresh cycle; the
annotation only shortens that delay, so failures there are reported but do
not fail the reconcile (``notify_soft``).
"""

from __future__ import annotations

import logging

from kafka_broker.errors import (
    DispatcherNotificationError,
    PodNotificationError,
    ReceiverNotificationError,
)
from kafka_broker.pods.client import PodClient, PodRef

logger = logging.getLogger(__name__)

VOLUME_GENERATION_ANNOTATION_KEY = "volumeGeneration"
RECEIVER_SELECTOR = "app=kafka-broker-receiver"
DISPATCHER_SELECTOR = "app=kafka-broker-dispatcher"


class PodNotifier:
    """Annotates receiver and dispatcher pods with the artifact generation."""

    def __init__(
        self,
        pods: PodClient,
        namespace: str,
        receiver_selector: str = RECEIVER_SELECTOR,
        dispatcher_selector: str = DISPATCHER_SELECTOR,
        annotation_key: str = VOLUME_GENERATION_ANNOTATION_KEY,
    ) -> None:
        self._pods = pods
        self._namespace = namespace
        self._receiver_selector = receiver_selector
        self._dispatcher_selector = dispatcher_selector
        self._annotation_key = annotation_key

    def notify_hard(self, generation: int) -> None:
        """Annotate every receiver pod. The first failure raises."""
        for pod in self._list(self._receiver_selector, ReceiverNotificationError):
            try:
                self._pods.patch_annotation(pod, self._annotation_key, str(generation))
            except Exception as exc:
                msg = f"failed to update receiver pod {pod.key} annotation: {exc}"
                raise ReceiverNotificationError(msg, [pod.key]) from exc
            logger.debug("Receiver pod %s at generation %d", pod.key, generation)

    def notify_soft(self, generation: int) -> None:
        """Annotate every dispatcher pod, then raise if any of them failed."""
        failed: list[str] = []
        reasons: list[str] = []
        for pod in self._list(self._dispatcher_selector, DispatcherNotificationError):
            try:
                self._pods.patch_annotation(pod, self._annotation_key, str(generation))
            except Exception as exc:
                failed.append(pod.key)
                reasons.append(f"{pod.key}: {exc}")
                continue
            logger.debug("Dispatcher pod %s at generation %d", pod.key, generation)

        if failed:
            msg = f"failed to update dispatcher pods annotation: {'; '.join(reasons)}"
            raise DispatcherNotificationError(msg, failed)

    def _list(
        self, selector: str, error_cls: type[PodNotificationError],
    ) -> list[PodRef]:
        try:
            return self._pods.list_pods(self._namespace, selector)
        except Exception as exc:
            msg = f"failed to list pods with selector {selector}: {exc}"
            raise error_cls(msg) from exc
