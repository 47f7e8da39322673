"""Tests for the control-plane config loader (kafka-broker.yaml)."""

from pathlib import Path

import pytest

from kafka_broker.config import (
    CONFIG_FILENAME,
    DEFAULT_DATA_PLANE_CONFIG_MAP,
    DEFAULT_DEFAULTS_CONFIG_MAP,
    ControlPlaneConfig,
    find_config,
    load_config,
)
from kafka_broker.contract.codec import DataPlaneFormat
from kafka_broker.reconciler.retry import Backoff

# --- find_config ---


class TestFindConfig:
    def test_finds_in_start_dir(self, tmp_path: Path):
        cfg = tmp_path / CONFIG_FILENAME
        cfg.write_text("system_namespace: eventing\n", encoding="utf-8")
        assert find_config(tmp_path) == cfg

    def test_finds_in_parent(self, tmp_path: Path):
        cfg = tmp_path / CONFIG_FILENAME
        cfg.write_text("system_namespace: eventing\n", encoding="utf-8")
        child = tmp_path / "sub" / "deep"
        child.mkdir(parents=True)
        assert find_config(child) == cfg

    def test_returns_none_when_missing(self, tmp_path: Path):
        assert find_config(tmp_path) is None

    def test_defaults_to_cwd(self, tmp_path: Path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        assert find_config() is None

    def test_ignores_directories_named_config(self, tmp_path: Path):
        (tmp_path / CONFIG_FILENAME).mkdir()
        assert find_config(tmp_path) is None


# --- load_config ---


class TestLoadConfig:
    def test_defaults(self, tmp_path: Path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        cfg = load_config()
        assert cfg == ControlPlaneConfig()
        assert cfg.system_namespace == "knative-eventing"
        assert cfg.data_plane_config_map == DEFAULT_DATA_PLANE_CONFIG_MAP
        assert cfg.defaults_config_map == DEFAULT_DEFAULTS_CONFIG_MAP
        assert cfg.data_plane_format == DataPlaneFormat.JSON
        assert cfg.topic_prefix == "knative-broker-"
        assert cfg.annotation_key == "volumeGeneration"
        assert cfg.backoff == Backoff()

    def test_explicit_path(self, tmp_path: Path):
        cfg_path = tmp_path / CONFIG_FILENAME
        cfg_path.write_text(
            "system_namespace: eventing\n"
            "data_plane_config_map: brokers\n"
            "data_plane_format: protobuf\n"
            "topic_prefix: kb-\n"
            "cluster_domain: example.internal\n"
            "context: staging\n"
            "in_cluster: true\n",
            encoding="utf-8",
        )
        cfg = load_config(cfg_path)
        assert cfg.config_path == cfg_path.resolve()
        assert cfg.system_namespace == "eventing"
        assert cfg.data_plane_config_map == "brokers"
        assert cfg.data_plane_format == DataPlaneFormat.PROTOBUF
        assert cfg.topic_prefix == "kb-"
        assert cfg.cluster_domain == "example.internal"
        assert cfg.context == "staging"
        assert cfg.in_cluster is True
        assert cfg.receiver_selector == "app=kafka-broker-receiver"

    def test_explicit_path_not_found(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError, match="not found"):
            load_config(tmp_path / "nope.yaml")

    def test_auto_discover(self, tmp_path: Path, monkeypatch):
        cfg_path = tmp_path / CONFIG_FILENAME
        cfg_path.write_text("ingress_service: ingress\n", encoding="utf-8")
        child = tmp_path / "child"
        child.mkdir()
        monkeypatch.chdir(child)
        cfg = load_config()
        assert cfg.ingress_service == "ingress"

    def test_no_auto_discover(self, tmp_path: Path, monkeypatch):
        (tmp_path / CONFIG_FILENAME).write_text("ingress_service: ingress\n", encoding="utf-8")
        monkeypatch.chdir(tmp_path)
        cfg = load_config(auto_discover=False)
        assert cfg.config_path is None
        assert cfg.ingress_service == "kafka-broker-receiver"

    def test_empty_file(self, tmp_path: Path):
        cfg_path = tmp_path / CONFIG_FILENAME
        cfg_path.write_text("", encoding="utf-8")
        cfg = load_config(cfg_path)
        assert cfg.config_path == cfg_path.resolve()
        assert cfg.system_namespace == "knative-eventing"

    def test_relative_kubeconfig(self, tmp_path: Path):
        cfg_path = tmp_path / CONFIG_FILENAME
        cfg_path.write_text("kubeconfig: ./kube/config\n", encoding="utf-8")
        cfg = load_config(cfg_path)
        assert cfg.kubeconfig == str((tmp_path / "kube" / "config").resolve())

    def test_absolute_kubeconfig(self, tmp_path: Path):
        absolute = tmp_path / "elsewhere" / "config"
        cfg_path = tmp_path / CONFIG_FILENAME
        cfg_path.write_text(f"kubeconfig: {absolute}\n", encoding="utf-8")
        assert load_config(cfg_path).kubeconfig == str(absolute.resolve())

    def test_retry_merged_over_defaults(self, tmp_path: Path):
        cfg_path = tmp_path / CONFIG_FILENAME
        cfg_path.write_text("retry:\n  steps: 8\n  factor: 2.0\n", encoding="utf-8")
        backoff = load_config(cfg_path).backoff
        assert backoff.steps == 8
        assert backoff.factor == 2.0
        assert backoff.duration == Backoff().duration
        assert backoff.jitter == Backoff().jitter

    def test_invalid_retry_rejected(self, tmp_path: Path):
        cfg_path = tmp_path / CONFIG_FILENAME
        cfg_path.write_text("retry:\n  steps: 0\n", encoding="utf-8")
        with pytest.raises(ValueError):
            load_config(cfg_path)

    def test_retry_not_a_mapping(self, tmp_path: Path):
        cfg_path = tmp_path / CONFIG_FILENAME
        cfg_path.write_text("retry: 5\n", encoding="utf-8")
        with pytest.raises(ValueError, match="'retry' to be a mapping"):
            load_config(cfg_path)

    def test_unknown_format(self, tmp_path: Path):
        cfg_path = tmp_path / CONFIG_FILENAME
        cfg_path.write_text("data_plane_format: xml\n", encoding="utf-8")
        with pytest.raises(ValueError, match="Unknown data_plane_format 'xml'"):
            load_config(cfg_path)

    def test_not_a_mapping(self, tmp_path: Path):
        cfg_path = tmp_path / CONFIG_FILENAME
        cfg_path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ValueError, match="Expected a YAML mapping"):
            load_config(cfg_path)

    def test_frozen(self):
        cfg = ControlPlaneConfig()
        with pytest.raises(AttributeError):
            cfg.system_namespace = "other"  # type: ignore[misc]
