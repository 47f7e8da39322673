"""KubePodClient: pod listing and annotation via the kubernetes client.

Requires: ``pip install kafka-broker-control-plane[k8s]``
"""

from __future__ import annotations

from typing import Any

from kafka_broker.pods.client import PodRef


class KubePodClient:
    """Pod client backed by the CoreV1 Pod API."""

    def __init__(self, core_api: Any) -> None:
        self._core = core_api

    def list_pods(self, namespace: str, label_selector: str) -> list[PodRef]:
        pods = self._core.list_namespaced_pod(
            namespace=namespace,
            label_selector=label_selector,
        )
        return [
            PodRef(namespace=pod.metadata.namespace or namespace, name=pod.metadata.name)
            for pod in pods.items
        ]

    def patch_annotation(self, pod: PodRef, key: str, value: str) -> None:
        # Strategic merge patch: other annotations are preserved.
        body = {"metadata": {"annotations": {key: value}}}
        self._core.patch_namespaced_pod(name=pod.name, namespace=pod.namespace, body=body)
