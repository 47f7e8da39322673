"""Kubernetes client setup shared by the kube-backed collaborators.

Uses the official ``kubernetes`` Python client.  Supports a kubeconfig
file, an explicit context, or in-cluster config.

Requires: ``pip install kafka-broker-control-plane[k8s]``
"""

from __future__ import annotations

from typing import Any


def check_kubernetes_available() -> None:
    """Raise ImportError with helpful message if kubernetes is not installed."""
    try:
        import kubernetes  # noqa: F401
    except ImportError:
        raise ImportError(
            "The 'kubernetes' package is required for Kubernetes backends. "
            "Install it with: pip install kafka-broker-control-plane[k8s]"
        ) from None


def load_api_client(
    kubeconfig: str | None = None,
    context: str | None = None,
    in_cluster: bool = False,
) -> Any:
    """Build a kubernetes ApiClient from in-cluster config or a kubeconfig."""
    from kubernetes import client, config

    if in_cluster:
        config.load_incluster_config()
    else:
        kwargs: dict[str, Any] = {}
        if kubeconfig:
            kwargs["config_file"] = kubeconfig
        if context:
            kwargs["context"] = context
        config.load_kube_config(**kwargs)
    return client.ApiClient()


def core_v1_api(api_client: Any) -> Any:
    """Instantiate CoreV1Api on the given client."""
    from kubernetes import client

    return client.CoreV1Api(api_client)


def api_status(exc: BaseException) -> int | None:
    """HTTP status of a kubernetes ``ApiException``, else None.

    Detects the exception by class name so callers need not import it.
    """
    if type(exc).__name__ == "ApiException":
        return getattr(exc, "status", None)
    return None
