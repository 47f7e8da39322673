"""Config file loading and auto-discovery for the Kafka Broker control plane.

Searches for ``kafka-broker.yaml`` in the current directory and parent
directories and parses it. Every key is optional::

    system_namespace: knative-eventing
    data_plane_config_map: kafka-broker-brokers-triggers
    data_plane_format: json            # or protobuf
    defaults_config_map: kafka-broker-config
    receiver_selector: app=kafka-broker-receiver
    dispatcher_selector: app=kafka-broker-dispatcher
    annotation_key: volumeGeneration
    topic_prefix: knative-broker-
    ingress_service: kafka-broker-receiver
    cluster_domain: cluster.local
    kubeconfig: ~/.kube/config
    context: my-cluster
    in_cluster: false
    retry:
      steps: 5
      duration: 0.01
      factor: 1.0
      jitter: 0.1
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from kafka_broker.contract.codec import DataPlaneFormat
from kafka_broker.pods.notifier import (
    DISPATCHER_SELECTOR,
    RECEIVER_SELECTOR,
    VOLUME_GENERATION_ANNOTATION_KEY,
)
from kafka_broker.reconciler.broker import (
    DEFAULT_CLUSTER_DOMAIN,
    DEFAULT_INGRESS_SERVICE,
    DEFAULT_SYSTEM_NAMESPACE,
)
from kafka_broker.reconciler.retry import Backoff
from kafka_broker.topics.provisioner import TOPIC_PREFIX

CONFIG_FILENAME = "kafka-broker.yaml"

DEFAULT_DATA_PLANE_CONFIG_MAP = "kafka-broker-brokers-triggers"
DEFAULT_DEFAULTS_CONFIG_MAP = "kafka-broker-config"


@dataclass(frozen=True)
class ControlPlaneConfig:
    """Parsed control-plane configuration."""

    config_path: Path | None = None
    system_namespace: str = DEFAULT_SYSTEM_NAMESPACE
    data_plane_config_map: str = DEFAULT_DATA_PLANE_CONFIG_MAP
    data_plane_format: DataPlaneFormat = DataPlaneFormat.JSON
    defaults_config_map: str = DEFAULT_DEFAULTS_CONFIG_MAP
    receiver_selector: str = RECEIVER_SELECTOR
    dispatcher_selector: str = DISPATCHER_SELECTOR
    annotation_key: str = VOLUME_GENERATION_ANNOTATION_KEY
    topic_prefix: str = TOPIC_PREFIX
    ingress_service: str = DEFAULT_INGRESS_SERVICE
    cluster_domain: str = DEFAULT_CLUSTER_DOMAIN
    kubeconfig: str | None = None
    context: str | None = None
    in_cluster: bool = False
    backoff: Backoff = field(default_factory=Backoff)


def find_config(start: Path | None = None) -> Path | None:
    """Walk from *start* (default ``cwd()``) up to the filesystem root.

    Returns the first ``kafka-broker.yaml`` found, or ``None``.
    """
    current = (start or Path.cwd()).resolve()
    while True:
        candidate = current / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            return None
        current = parent


def load_config(
    path: str | Path | None = None,
    *,
    auto_discover: bool = True,
) -> ControlPlaneConfig:
    """Load a control-plane config file.

    Resolution order:

    1. Explicit *path* (error if it doesn't exist).
    2. Auto-discover by walking parent directories.
    3. Return a default ``ControlPlaneConfig``.
    """
    config_path: Path | None = None

    if path is not None:
        config_path = Path(path).resolve()
        if not config_path.is_file():
            msg = f"Config file not found: {config_path}"
            raise FileNotFoundError(msg)
    elif auto_discover:
        config_path = find_config()

    if config_path is None:
        return ControlPlaneConfig()

    return _parse_config(config_path)


def _parse_config(config_path: Path) -> ControlPlaneConfig:
    """Read and parse a YAML config file, resolving a relative kubeconfig."""
    text = config_path.read_text(encoding="utf-8")
    data = yaml.safe_load(text) or {}

    if not isinstance(data, dict):
        msg = f"Expected a YAML mapping in {config_path}, got {type(data).__name__}"
        raise ValueError(msg)

    retry = data.get("retry") or {}
    if not isinstance(retry, dict):
        msg = f"Expected 'retry' to be a mapping in {config_path}"
        raise ValueError(msg)

    fmt = data.get("data_plane_format", DataPlaneFormat.JSON)
    try:
        data_plane_format = DataPlaneFormat(fmt)
    except ValueError:
        choices = ", ".join(f.value for f in DataPlaneFormat)
        msg = f"Unknown data_plane_format {fmt!r} in {config_path} (expected one of: {choices})"
        raise ValueError(msg) from None

    kubeconfig = data.get("kubeconfig")
    if kubeconfig is not None:
        kubeconfig = str((config_path.parent / Path(kubeconfig).expanduser()).resolve())

    defaults = ControlPlaneConfig()
    values: dict[str, Any] = {
        key: str(data[key])
        for key in (
            "system_namespace",
            "data_plane_config_map",
            "defaults_config_map",
            "receiver_selector",
            "dispatcher_selector",
            "annotation_key",
            "topic_prefix",
            "ingress_service",
            "cluster_domain",
        )
        if data.get(key) is not None
    }

    return ControlPlaneConfig(
        config_path=config_path,
        data_plane_format=data_plane_format,
        kubeconfig=kubeconfig,
        context=data.get("context"),
        in_cluster=bool(data.get("in_cluster", False)),
        backoff=Backoff.model_validate({**defaults.backoff.model_dump(), **retry}),
        **values,
    )
