"""KubeConfigMapStorage: artifact storage in a Kubernetes ConfigMap.

The payload lives base64-encoded under ``binaryData[data_key]``; the
ConfigMap ``resourceVersion`` is the optimistic-concurrency token.  A plain
``data[data_key]`` string is also accepted on read so a hand-edited JSON
artifact still decodes.

Requires: ``pip install kafka-broker-control-plane[k8s]``
"""

from __future__ import annotations

import base64
from typing import Any

from kafka_broker.artifact.storage import StoredArtifact
from kafka_broker.errors import ArtifactAccessError, ArtifactConflictError
from kafka_broker.kube import api_status

DEFAULT_DATA_KEY = "data"


class KubeConfigMapStorage:
    """Artifact storage backed by the CoreV1 ConfigMap API."""

    def __init__(self, core_api: Any, data_key: str = DEFAULT_DATA_KEY) -> None:
        self._core = core_api
        self._data_key = data_key

    def get(self, namespace: str, name: str) -> StoredArtifact | None:
        try:
            config_map = self._core.read_namespaced_config_map(name=name, namespace=namespace)
        except Exception as exc:
            if api_status(exc) == 404:
                return None
            msg = f"failed to get config map {namespace}/{name}: {_describe(exc)}"
            raise ArtifactAccessError(msg) from exc
        return self._to_artifact(config_map, namespace, name)

    def create(self, namespace: str, name: str) -> StoredArtifact:
        body = {
            "apiVersion": "v1",
            "kind": "ConfigMap",
            "metadata": {"name": name, "namespace": namespace},
            "binaryData": {self._data_key: ""},
        }
        try:
            config_map = self._core.create_namespaced_config_map(namespace=namespace, body=body)
        except Exception as exc:
            if api_status(exc) == 409:
                msg = f"config map {namespace}/{name} already exists"
                raise ArtifactConflictError(msg) from exc
            msg = f"failed to create config map {namespace}/{name}: {_describe(exc)}"
            raise ArtifactAccessError(msg) from exc
        return self._to_artifact(config_map, namespace, name)

    def update(self, artifact: StoredArtifact, data: bytes) -> StoredArtifact:
        body = {
            "apiVersion": "v1",
            "kind": "ConfigMap",
            "metadata": {
                "name": artifact.name,
                "namespace": artifact.namespace,
                "resourceVersion": artifact.resource_version,
            },
            "binaryData": {self._data_key: base64.b64encode(data).decode("ascii")},
        }
        try:
            config_map = self._core.replace_namespaced_config_map(
                name=artifact.name, namespace=artifact.namespace, body=body,
            )
        except Exception as exc:
            if api_status(exc) == 409:
                msg = f"config map {artifact.key} was modified concurrently"
                raise ArtifactConflictError(msg) from exc
            msg = f"failed to update config map {artifact.key}: {_describe(exc)}"
            raise ArtifactAccessError(msg) from exc
        return self._to_artifact(config_map, artifact.namespace, artifact.name)

    # --- Private: helpers ---

    def _to_artifact(self, config_map: Any, namespace: str, name: str) -> StoredArtifact:
        metadata = getattr(config_map, "metadata", None)
        resource_version = getattr(metadata, "resource_version", None) or ""

        data: bytes | None = None
        binary_data = getattr(config_map, "binary_data", None) or {}
        text_data = getattr(config_map, "data", None) or {}
        if binary_data.get(self._data_key):
            data = base64.b64decode(binary_data[self._data_key])
        elif text_data.get(self._data_key):
            data = text_data[self._data_key].encode("utf-8")

        return StoredArtifact(
            namespace=namespace,
            name=name,
            data=data,
            resource_version=str(resource_version),
        )


def _describe(exc: Exception) -> str:
    status = api_status(exc)
    if status is not None:
        return f"K8s API error ({status}): {getattr(exc, 'reason', '')}"
    return str(exc)
