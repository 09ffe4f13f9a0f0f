"""
Kubernetes client setup.
"""

from __future__ import annotations

import logging
from pathlib import Path

from kubernetes import client, config
from kubernetes.config.config_exception import ConfigException

from psachecker.errors import SetupError

logger = logging.getLogger(__name__)

SERVICE_ACCOUNT_NAMESPACE = Path("/var/run/secrets/kubernetes.io/serviceaccount/namespace")
DEFAULT_NAMESPACE = "default"


def load_api_client(
    kubeconfig: str | None = None,
    context: str | None = None,
    in_cluster: bool = False,
) -> client.ApiClient:
    """
    Create an API client from kubeconfig or in-cluster configuration.

    Args:
        kubeconfig: Path to kubeconfig file (default: ~/.kube/config or $KUBECONFIG)
        context: Kubernetes context to use (default: current context)
        in_cluster: Use the pod's service account instead of kubeconfig

    Raises:
        SetupError: If no usable configuration is found
    """
    try:
        if in_cluster:
            config.load_incluster_config()
        else:
            config.load_kube_config(config_file=kubeconfig, context=context)
    except (ConfigException, OSError) as e:
        raise SetupError(f"failed to load Kubernetes configuration: {e}") from e

    logger.debug(f"Loaded Kubernetes configuration (in_cluster={in_cluster}, context={context})")
    return client.ApiClient()


def current_namespace(
    kubeconfig: str | None = None,
    context: str | None = None,
    in_cluster: bool = False,
) -> str:
    """
    The namespace of the selected context, or ``default``.

    Raises:
        SetupError: If the kubeconfig cannot be read or the context does not exist
    """
    if in_cluster:
        try:
            return SERVICE_ACCOUNT_NAMESPACE.read_text().strip() or DEFAULT_NAMESPACE
        except OSError:
            return DEFAULT_NAMESPACE

    try:
        contexts, active_context = config.list_kube_config_contexts(config_file=kubeconfig)
    except (ConfigException, OSError) as e:
        raise SetupError(f"failed to load Kubernetes configuration: {e}") from e

    selected = active_context
    if context:
        selected = next((c for c in contexts if c.get("name") == context), None)
        if selected is None:
            raise SetupError(f'context "{context}" does not exist')

    if not selected:
        return DEFAULT_NAMESPACE
    return (selected.get("context") or {}).get("namespace") or DEFAULT_NAMESPACE
