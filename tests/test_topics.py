"""Tests for topic naming, the TopicProvisioner and KafkaTopicAdmin.

kafka-python is faked through sys.modules, no real Kafka cluster needed.
"""

from __future__ import annotations

import sys
from contextlib import contextmanager
from unittest.mock import MagicMock, patch

import pytest

from kafka_broker.errors import TopicProvisionError
from kafka_broker.models import TopicDetail
from kafka_broker.topics.admin import (
    InMemoryTopicAdmin,
    TopicAdmin,
    TopicAlreadyExistsError,
    UnknownTopicError,
)
from kafka_broker.topics.kafka_admin import KafkaTopicAdmin
from kafka_broker.topics.provisioner import TopicProvisioner, topic_name

SERVERS = ["kafka-1:9092", "kafka-2:9092"]

# --- Helpers ---


class _KafkaTopicAlreadyExists(Exception):
    pass


class _KafkaUnknownTopicOrPartition(Exception):
    pass


@contextmanager
def _mock_kafka_modules():
    """Inject a fake kafka package so KafkaTopicAdmin imports resolve."""
    mock_kafka = MagicMock()
    mock_admin = MagicMock()
    mock_errors = MagicMock()
    mock_errors.TopicAlreadyExistsError = _KafkaTopicAlreadyExists
    mock_errors.UnknownTopicOrPartitionError = _KafkaUnknownTopicOrPartition
    mock_kafka.admin = mock_admin
    mock_kafka.errors = mock_errors

    modules = {
        "kafka": mock_kafka,
        "kafka.admin": mock_admin,
        "kafka.errors": mock_errors,
    }
    with patch.dict(sys.modules, modules):
        yield mock_admin


# --- topic_name ---


class TestTopicName:
    def test_default_prefix(self):
        assert topic_name("ns", "default") == "knative-broker-ns-default"

    def test_custom_prefix(self):
        assert topic_name("ns", "b", prefix="x-") == "x-ns-b"


# --- TopicProvisioner ---


class TestProvisionerCreate:
    def test_creates_with_detail(self):
        admin = InMemoryTopicAdmin()
        name = TopicProvisioner(admin).create(
            "t", TopicDetail(num_partitions=4, replication_factor=3), SERVERS,
        )
        assert name == "t"
        record = admin.topics["t"]
        assert record.num_partitions == 4
        assert record.replication_factor == 3
        assert record.bootstrap_servers == tuple(SERVERS)

    def test_already_exists_is_success(self):
        admin = InMemoryTopicAdmin()
        provisioner = TopicProvisioner(admin)
        provisioner.create("t", TopicDetail(), SERVERS)
        assert provisioner.create("t", TopicDetail(), SERVERS) == "t"
        assert admin.create_calls == ["t", "t"]

    def test_other_failure_raises_with_topic(self):
        admin = InMemoryTopicAdmin()
        admin.create_error = ConnectionError("no brokers available")
        with pytest.raises(TopicProvisionError) as exc_info:
            TopicProvisioner(admin).create("t", TopicDetail(), SERVERS)
        assert exc_info.value.topic == "t"
        assert str(exc_info.value) == "failed to create topic: t: no brokers available"


class TestProvisionerDelete:
    def test_deletes(self):
        admin = InMemoryTopicAdmin()
        provisioner = TopicProvisioner(admin)
        provisioner.create("t", TopicDetail(), SERVERS)
        assert provisioner.delete("t", SERVERS) == "t"
        assert "t" not in admin.topics

    def test_unknown_topic_is_success(self):
        assert TopicProvisioner(InMemoryTopicAdmin()).delete("missing", SERVERS) == "missing"

    def test_other_failure_raises(self):
        admin = InMemoryTopicAdmin()
        admin.delete_error = TimeoutError("timed out")
        with pytest.raises(TopicProvisionError, match="failed to delete topic t: timed out"):
            TopicProvisioner(admin).delete("t", SERVERS)


class TestInMemoryAdmin:
    def test_satisfies_protocol(self):
        assert isinstance(InMemoryTopicAdmin(), TopicAdmin)

    def test_boundary_errors(self):
        admin = InMemoryTopicAdmin()
        admin.create_topic("t", 1, 1, SERVERS)
        with pytest.raises(TopicAlreadyExistsError):
            admin.create_topic("t", 1, 1, SERVERS)
        admin.delete_topic("t", SERVERS)
        with pytest.raises(UnknownTopicError):
            admin.delete_topic("t", SERVERS)


# --- KafkaTopicAdmin ---


class TestKafkaTopicAdmin:
    def test_requires_kafka_python(self):
        with patch.dict(sys.modules, {"kafka": None}):
            with pytest.raises(ImportError, match="kafka-broker-control-plane\\[kafka\\]"):
                KafkaTopicAdmin()

    def test_create_topic(self):
        with _mock_kafka_modules() as mock_admin:
            client = MagicMock()
            factory = MagicMock(return_value=client)
            admin = KafkaTopicAdmin(client_id="test", _client_factory=factory)
            admin.create_topic("t", 4, 3, SERVERS)

            mock_admin.NewTopic.assert_called_once_with(
                name="t", num_partitions=4, replication_factor=3,
            )
            factory.assert_called_once_with(
                bootstrap_servers=SERVERS, client_id="test", request_timeout_ms=30_000,
            )
            client.create_topics.assert_called_once_with([mock_admin.NewTopic.return_value])
            client.close.assert_called_once()

    def test_create_existing_maps_error(self):
        with _mock_kafka_modules():
            client = MagicMock()
            client.create_topics.side_effect = _KafkaTopicAlreadyExists("t")
            admin = KafkaTopicAdmin(_client_factory=MagicMock(return_value=client))
            with pytest.raises(TopicAlreadyExistsError):
                admin.create_topic("t", 1, 1, SERVERS)
            client.close.assert_called_once()

    def test_delete_unknown_maps_error(self):
        with _mock_kafka_modules():
            client = MagicMock()
            client.delete_topics.side_effect = _KafkaUnknownTopicOrPartition("t")
            admin = KafkaTopicAdmin(_client_factory=MagicMock(return_value=client))
            with pytest.raises(UnknownTopicError):
                admin.delete_topic("t", SERVERS)
            client.close.assert_called_once()

    def test_other_errors_propagate(self):
        with _mock_kafka_modules():
            client = MagicMock()
            client.delete_topics.side_effect = RuntimeError("broker down")
            admin = KafkaTopicAdmin(_client_factory=MagicMock(return_value=client))
            with pytest.raises(RuntimeError, match="broker down"):
                admin.delete_topic("t", SERVERS)
            client.close.assert_called_once()

    def test_default_factory_is_kafka_admin_client(self):
        with _mock_kafka_modules() as mock_admin:
            KafkaTopicAdmin().delete_topic("t", SERVERS)
            mock_admin.KafkaAdminClient.assert_called_once()
            mock_admin.KafkaAdminClient.return_value.delete_topics.assert_called_once_with(["t"])

    def test_provisioner_over_kafka_admin(self):
        with _mock_kafka_modules():
            client = MagicMock()
            client.create_topics.side_effect = _KafkaTopicAlreadyExists("t")
            admin = KafkaTopicAdmin(_client_factory=MagicMock(return_value=client))
            assert TopicProvisioner(admin).create("t", TopicDetail(), SERVERS) == "t"
