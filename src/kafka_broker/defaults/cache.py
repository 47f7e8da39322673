"""Process-wide cache of cluster-default Kafka settings.

Holds the default topic detail and the default bootstrap servers, each
behind its own read/write lock, so the single watch-callback writer never
serializes concurrent reconcile readers against each other.

Usage::

    cache = DefaultsCache()
    watcher = ConfigMapDefaultsWatcher(core_api, cache, namespace, name)
    watcher.start()

    # From any reconcile worker:
    detail = cache.topic_detail()
    servers = cache.bootstrap_servers()  # raises if never set
"""

from __future__ import annotations

import contextlib
import logging
import threading
import warnings
from collections.abc import Iterator, Mapping

from kafka_broker.errors import NoDefaultBootstrapServersError
from kafka_broker.models import TopicDetail

logger = logging.getLogger(__name__)

DEFAULT_TOPIC_PARTITIONS_KEY = "default.topic.partitions"
DEFAULT_TOPIC_REPLICATION_FACTOR_KEY = "default.topic.replication.factor"
BOOTSTRAP_SERVERS_KEY = "bootstrap.servers"


class DefaultsWarning(UserWarning):
    """Emitted when a system defaults value is malformed and ignored."""


class ReadWriteLock:
    """Many concurrent readers or one writer.

    Writers are preferred: once a writer is waiting, new readers block, so
    a steady stream of reconciles cannot starve the watch callback.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._waiting_writers = 0

    @contextlib.contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._waiting_writers:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextlib.contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._waiting_writers += 1
            while self._writer or self._readers:
                self._cond.wait()
            self._waiting_writers -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


def split_bootstrap_servers(servers: str) -> list[str]:
    """Split a comma separated ``host:port`` list, dropping blanks."""
    return [s.strip() for s in servers.split(",") if s.strip()]


class DefaultsCache:
    """Cluster defaults shared by the watch callback and every reconcile."""

    def __init__(
        self,
        topic_detail: TopicDetail | None = None,
        bootstrap_servers: list[str] | None = None,
    ) -> None:
        self._topic_detail = topic_detail or TopicDetail()
        self._topic_detail_lock = ReadWriteLock()
        self._bootstrap_servers: list[str] = list(bootstrap_servers or [])
        self._bootstrap_servers_lock = ReadWriteLock()

    # --- topic detail ---

    def topic_detail(self) -> TopicDetail:
        """Return a copy of the default topic detail."""
        with self._topic_detail_lock.read():
            return self._topic_detail.model_copy()

    def set_topic_detail(self, detail: TopicDetail) -> None:
        with self._topic_detail_lock.write():
            self._topic_detail = detail.model_copy()

    # --- bootstrap servers ---

    def bootstrap_servers(self) -> list[str]:
        """Return a copy of the default bootstrap servers.

        Raises NoDefaultBootstrapServersError if none were ever provided.
        """
        with self._bootstrap_servers_lock.read():
            if not self._bootstrap_servers:
                raise NoDefaultBootstrapServersError(BOOTSTRAP_SERVERS_KEY)
            return list(self._bootstrap_servers)

    def set_bootstrap_servers(self, servers: str | list[str]) -> None:
        """Replace the default bootstrap servers.

        An empty value is ignored: defaults are never cleared by a
        partially-filled system ConfigMap.
        """
        addrs = split_bootstrap_servers(servers) if isinstance(servers, str) else list(servers)
        if not addrs:
            return
        with self._bootstrap_servers_lock.write():
            self._bootstrap_servers = addrs

    # --- watch callback ---

    def config_map_updated(self, data: Mapping[str, str] | None) -> None:
        """Apply the data of the system defaults ConfigMap.

        Each recognized key is applied independently: a malformed value
        emits a DefaultsWarning and keeps the previous value for that key.
        """
        data = data or {}
        current = self.topic_detail()

        detail = current
        for key, field in (
            (DEFAULT_TOPIC_PARTITIONS_KEY, "num_partitions"),
            (DEFAULT_TOPIC_REPLICATION_FACTOR_KEY, "replication_factor"),
        ):
            value = _parse_int(data, key, getattr(current, field))
            try:
                detail = TopicDetail.model_validate(
                    {**detail.model_dump(), field: value},
                )
            except ValueError:
                warnings.warn(
                    f"Ignoring out of range value for {key}: {value}",
                    DefaultsWarning,
                    stacklevel=2,
                )

        self.set_topic_detail(detail)
        self.set_bootstrap_servers(data.get(BOOTSTRAP_SERVERS_KEY, ""))

        logger.debug(
            "New defaults: partitions=%d replication_factor=%d bootstrap_servers=%s",
            detail.num_partitions,
            detail.replication_factor,
            data.get(BOOTSTRAP_SERVERS_KEY, ""),
        )


def _parse_int(data: Mapping[str, str], key: str, fallback: int) -> int:
    raw = data.get(key)
    if raw is None or str(raw).strip() == "":
        return fallback
    try:
        return int(str(raw).strip())
    except ValueError:
        warnings.warn(
            f"Ignoring malformed value for {key}: {raw!r}",
            DefaultsWarning,
            stacklevel=3,
        )
        return fallback
