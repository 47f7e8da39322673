"""Pod client protocol and built-in InMemoryPodClient."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class PodRef:
    """Handle to a pod returned by ``list_pods()``."""

    namespace: str
    name: str

    @property
    def key(self) -> str:
        return f"{self.namespace}/{self.name}"


@runtime_checkable
class PodClient(Protocol):
    """Protocol for listing and annotating pods."""

    def list_pods(self, namespace: str, label_selector: str) -> list[PodRef]:
        """List pods matching an equality-based label selector."""
        ...

    def patch_annotation(self, pod: PodRef, key: str, value: str) -> None:
        """Set one annotation, leaving every other annotation untouched."""
        ...


def parse_selector(selector: str) -> dict[str, str]:
    """Parse a label selector string (``k=v,k2=v2``) into a dict."""
    result: dict[str, str] = {}
    for part in selector.split(","):
        part = part.strip()
        if "=" in part:
            key, value = part.split("=", 1)
            result[key.strip()] = value.strip()
    return result


@dataclass
class _Pod:
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)


class InMemoryPodClient:
    """Process-local pods. Useful for tests and dry runs.

    Names in ``failing_pods`` fail every patch; ``list_error`` fails listing.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._pods: dict[tuple[str, str], _Pod] = {}
        self.failing_pods: set[str] = set()
        self.list_error: Exception | None = None
        self.patch_count = 0

    def add_pod(
        self,
        namespace: str,
        name: str,
        labels: dict[str, str] | None = None,
        annotations: dict[str, str] | None = None,
    ) -> PodRef:
        with self._lock:
            self._pods[(namespace, name)] = _Pod(
                labels=dict(labels or {}),
                annotations=dict(annotations or {}),
            )
        return PodRef(namespace=namespace, name=name)

    def annotations(self, namespace: str, name: str) -> dict[str, str]:
        with self._lock:
            return dict(self._pods[(namespace, name)].annotations)

    def list_pods(self, namespace: str, label_selector: str) -> list[PodRef]:
        if self.list_error is not None:
            raise self.list_error
        wanted = parse_selector(label_selector)
        with self._lock:
            return [
                PodRef(namespace=ns, name=name)
                for (ns, name), pod in sorted(self._pods.items())
                if ns == namespace
                and all(pod.labels.get(k) == v for k, v in wanted.items())
            ]

    def patch_annotation(self, pod: PodRef, key: str, value: str) -> None:
        if pod.name in self.failing_pods:
            msg = f"pod {pod.key} rejected the patch"
            raise RuntimeError(msg)
        with self._lock:
            self._pods[(pod.namespace, pod.name)].annotations[key] = value
            self.patch_count += 1
