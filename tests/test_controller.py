"""Tests for control-plane wiring and the kubernetes client helpers.

All kubernetes client calls are mocked, no real cluster needed.
"""

from __future__ import annotations

import sys
from contextlib import contextmanager
from unittest.mock import MagicMock, patch

import pytest

from kafka_broker.artifact.k8s_storage import KubeConfigMapStorage
from kafka_broker.config import ControlPlaneConfig
from kafka_broker.contract.codec import DataPlaneFormat, decode
from kafka_broker.controller import build_control_plane, build_in_memory_control_plane
from kafka_broker.defaults.watcher import ConfigMapDefaultsWatcher
from kafka_broker.kube import api_status, check_kubernetes_available, load_api_client
from kafka_broker.models import BrokerResource
from kafka_broker.pods.client import InMemoryPodClient
from kafka_broker.reconciler.retry import Backoff
from kafka_broker.reconciler.status import KubeEventRecorder, MemoryEventRecorder
from kafka_broker.topics.admin import InMemoryTopicAdmin

# --- Helpers ---


@contextmanager
def _mock_kubernetes_modules():
    """Inject a mock kubernetes package into sys.modules."""
    mock_k8s = MagicMock()
    mock_client = mock_k8s.client
    mock_config = mock_k8s.config
    mock_watch = mock_k8s.watch
    mock_client.ApiClient.return_value = MagicMock()

    modules = {
        "kubernetes": mock_k8s,
        "kubernetes.client": mock_client,
        "kubernetes.config": mock_config,
        "kubernetes.watch": mock_watch,
    }
    with patch.dict(sys.modules, modules):
        yield mock_client, mock_config


def _resource(name: str = "b1") -> BrokerResource:
    return BrokerResource(uid=f"uid-{name}", namespace="ns", name=name)


# --- kube helpers ---


class TestKubeHelpers:
    def test_missing_kubernetes(self):
        with patch.dict(sys.modules, {"kubernetes": None}):
            with pytest.raises(ImportError, match="kafka-broker-control-plane\\[k8s\\]"):
                check_kubernetes_available()

    def test_load_kubeconfig(self):
        with _mock_kubernetes_modules() as (mock_client, mock_config):
            api_client = load_api_client("/tmp/kubeconfig", "staging")
        mock_config.load_kube_config.assert_called_once_with(
            config_file="/tmp/kubeconfig", context="staging",
        )
        assert api_client is mock_client.ApiClient.return_value

    def test_load_in_cluster(self):
        with _mock_kubernetes_modules() as (_, mock_config):
            load_api_client(in_cluster=True)
        mock_config.load_incluster_config.assert_called_once()
        mock_config.load_kube_config.assert_not_called()

    def test_api_status(self):
        class ApiException(Exception):  # noqa: N818
            status = 409

        assert api_status(ApiException()) == 409
        assert api_status(RuntimeError("x")) is None


# --- build_in_memory_control_plane ---


class TestInMemoryControlPlane:
    def test_reconcile_and_finalize(self):
        pods = InMemoryPodClient()
        pods.add_pod("knative-eventing", "receiver", labels={"app": "kafka-broker-receiver"})
        plane = build_in_memory_control_plane(pods=pods)
        plane.defaults.set_bootstrap_servers("k1:9092")

        resource = _resource()
        plane.reconciler.reconcile(resource)

        storage = plane.backends["storage"]
        stored = storage.get("knative-eventing", "kafka-broker-brokers-triggers")
        brokers = decode(stored.data, DataPlaneFormat.JSON)
        assert [b.id for b in brokers.brokers] == ["uid-b1"]
        assert pods.annotations("knative-eventing", "receiver") == {"volumeGeneration": "1"}
        assert "knative-broker-ns-b1" in plane.backends["topic_admin"].topics

        plane.reconciler.finalize(resource)
        stored = storage.get("knative-eventing", "kafka-broker-brokers-triggers")
        assert decode(stored.data, DataPlaneFormat.JSON).brokers == []
        assert plane.backends["topic_admin"].topics == {}

    def test_config_applied(self):
        config = ControlPlaneConfig(
            system_namespace="eventing",
            data_plane_config_map="brokers",
            data_plane_format=DataPlaneFormat.PROTOBUF,
            topic_prefix="kb-",
            ingress_service="ingress",
            annotation_key="generation",
            receiver_selector="role=receiver",
            backoff=Backoff(steps=2, duration=0, jitter=0),
        )
        pods = InMemoryPodClient()
        pods.add_pod("eventing", "r", labels={"role": "receiver"})
        plane = build_in_memory_control_plane(config, pods=pods)
        plane.defaults.set_bootstrap_servers("k1:9092")

        resource = _resource()
        plane.reconciler.reconcile(resource)

        assert plane.store.key == "eventing/brokers"
        assert plane.store.format == DataPlaneFormat.PROTOBUF
        stored = plane.backends["storage"].get("eventing", "brokers")
        assert decode(stored.data, DataPlaneFormat.PROTOBUF).brokers[0].topic == "kb-ns-b1"
        assert resource.status.address == "http://ingress.eventing.svc.cluster.local/ns/b1"
        assert pods.annotations("eventing", "r") == {"generation": "1"}

    def test_no_watcher(self):
        plane = build_in_memory_control_plane()
        assert plane.watcher is None
        plane.sync_defaults()
        plane.start()
        plane.stop()
        assert isinstance(plane.recorder, MemoryEventRecorder)


# --- build_control_plane ---


class TestClusterControlPlane:
    def test_wiring(self):
        admin = InMemoryTopicAdmin()
        with _mock_kubernetes_modules() as (mock_client, _):
            plane = build_control_plane(
                ControlPlaneConfig(), api_client=MagicMock(), topic_admin=admin,
            )
            core = mock_client.CoreV1Api.return_value
        assert plane.backends["core"] is core
        assert plane.backends["topic_admin"] is admin
        assert isinstance(plane.recorder, KubeEventRecorder)
        assert isinstance(plane.watcher, ConfigMapDefaultsWatcher)
        assert plane.store.key == "knative-eventing/kafka-broker-brokers-triggers"

    def test_loads_api_client_from_config(self):
        config = ControlPlaneConfig(kubeconfig="/tmp/kubeconfig", context="dev")
        with _mock_kubernetes_modules() as (_, mock_config):
            build_control_plane(config, topic_admin=InMemoryTopicAdmin())
        mock_config.load_kube_config.assert_called_once_with(
            config_file="/tmp/kubeconfig", context="dev",
        )

    def test_sync_defaults_reads_config_map(self):
        with _mock_kubernetes_modules() as (mock_client, _):
            core = mock_client.CoreV1Api.return_value
            core.read_namespaced_config_map.return_value.data = {
                "bootstrap.servers": "k1:9092,k2:9092",
                "default.topic.partitions": "4",
            }
            plane = build_control_plane(
                ControlPlaneConfig(), api_client=MagicMock(), topic_admin=InMemoryTopicAdmin(),
            )
            plane.sync_defaults()
        core.read_namespaced_config_map.assert_called_with(
            name="kafka-broker-config", namespace="knative-eventing",
        )
        assert plane.defaults.bootstrap_servers() == ["k1:9092", "k2:9092"]
        assert plane.defaults.topic_detail().num_partitions == 4

    def test_custom_recorder(self):
        recorder = MemoryEventRecorder()
        with _mock_kubernetes_modules():
            plane = build_control_plane(
                ControlPlaneConfig(),
                api_client=MagicMock(),
                topic_admin=InMemoryTopicAdmin(),
                recorder=recorder,
            )
        assert plane.recorder is recorder

    def test_requires_kubernetes(self):
        with patch.dict(sys.modules, {"kubernetes": None}):
            with pytest.raises(ImportError):
                build_control_plane(ControlPlaneConfig(), topic_admin=InMemoryTopicAdmin())

    def test_storage_backend(self):
        with _mock_kubernetes_modules():
            plane = build_control_plane(
                ControlPlaneConfig(), api_client=MagicMock(), topic_admin=InMemoryTopicAdmin(),
            )
        assert isinstance(plane.store._storage, KubeConfigMapStorage)
