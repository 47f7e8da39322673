"""Watch the system defaults ConfigMap and feed the DefaultsCache.

Streams ConfigMap events with the kubernetes watch API on a daemon thread.
The stream is field-selected to the single ConfigMap holding cluster
defaults; every ADDED/MODIFIED event is applied to the cache.  A broken
stream is re-established after ``retry_seconds``.
"""

from __future__ import annotations

import logging
import threading
import warnings
from collections.abc import Callable
from typing import Any

from kafka_broker.defaults.cache import DefaultsCache, DefaultsWarning
from kafka_broker.kube import check_kubernetes_available

logger = logging.getLogger(__name__)


def _default_watch_factory() -> Any:
    from kubernetes import watch

    return watch.Watch()


class ConfigMapDefaultsWatcher:
    """Keeps a DefaultsCache in sync with a ConfigMap."""

    def __init__(
        self,
        core_api: Any,
        cache: DefaultsCache,
        namespace: str,
        name: str,
        timeout_seconds: int = 300,
        retry_seconds: float = 5.0,
        _watch_factory: Callable[[], Any] | None = None,
    ) -> None:
        if _watch_factory is None:
            check_kubernetes_available()
        self._core = core_api
        self._cache = cache
        self._namespace = namespace
        self._name = name
        self._timeout_seconds = timeout_seconds
        self._retry_seconds = retry_seconds
        self._watch_factory = _watch_factory or _default_watch_factory
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self._active_watch: Any = None
        self._watch_lock = threading.Lock()

    def start(self) -> None:
        """Load the current defaults, then keep watching in the background."""
        self.sync()
        self._thread = threading.Thread(
            target=self._run,
            name=f"defaults-watch-{self._namespace}-{self._name}",
            daemon=True,
        )
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop.set()
        with self._watch_lock:
            if self._active_watch is not None:
                self._active_watch.stop()
        if self._thread is not None:
            self._thread.join(timeout)

    def sync(self) -> None:
        """Read the ConfigMap once and apply it. A missing ConfigMap is ignored."""
        try:
            config_map = self._core.read_namespaced_config_map(
                name=self._name, namespace=self._namespace,
            )
        except Exception as exc:
            if getattr(exc, "status", None) == 404:
                logger.info(
                    "Defaults ConfigMap %s/%s not found", self._namespace, self._name,
                )
                return
            raise
        self.handle(config_map)

    def handle(self, config_map: Any) -> None:
        """Apply one ConfigMap object (client model or plain dict)."""
        if isinstance(config_map, dict):
            data = config_map.get("data")
        else:
            data = getattr(config_map, "data", None)
        try:
            self._cache.config_map_updated(data or {})
        except Exception as exc:
            warnings.warn(
                f"Failed to apply defaults from {self._namespace}/{self._name}: {exc}",
                DefaultsWarning,
                stacklevel=2,
            )

    def watch_once(self) -> None:
        """Consume one watch stream until it ends or the watcher stops."""
        stream_watch = self._watch_factory()
        with self._watch_lock:
            self._active_watch = stream_watch
        try:
            for event in stream_watch.stream(
                self._core.list_namespaced_config_map,
                namespace=self._namespace,
                field_selector=f"metadata.name={self._name}",
                timeout_seconds=self._timeout_seconds,
            ):
                if self._stop.is_set():
                    break
                if event.get("type") in ("ADDED", "MODIFIED"):
                    self.handle(event.get("object"))
        finally:
            with self._watch_lock:
                self._active_watch = None

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                self.watch_once()
            except Exception:
                logger.exception(
                    "Defaults watch on %s/%s failed, retrying in %.1fs",
                    self._namespace, self._name, self._retry_seconds,
                )
                self._stop.wait(self._retry_seconds)
