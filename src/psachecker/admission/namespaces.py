"""
Namespace and pod lookups used by level admissions.

Workload evaluation uses the know-all getter, which reports every namespace
as existing with no Pod Security labels. The client-backed getter and pod
lister read live objects through the Kubernetes API.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

from kubernetes.client.rest import ApiException

from psachecker.admission.context import EvaluationContext
from psachecker.admission.delta import enforce_label
from psachecker.errors import ListError

logger = logging.getLogger(__name__)


class NamespaceGetter(Protocol):
    def get_namespace(self, ctx: EvaluationContext, name: str) -> dict[str, Any]: ...


class PodLister(Protocol):
    def list_pods(self, ctx: EvaluationContext, namespace: str) -> list[dict[str, Any]]: ...


class KnowAllNamespaceGetter:
    """Reports every namespace as existing, with no labels or annotations."""

    def get_namespace(self, ctx: EvaluationContext, name: str) -> dict[str, Any]:
        return {
            "apiVersion": "v1",
            "kind": "Namespace",
            "metadata": {"name": name, "labels": {}, "annotations": {}},
        }


def _to_dict(api_client: Any, obj: Any, kind: str, api_version: str) -> dict[str, Any]:
    data = api_client.sanitize_for_serialization(obj)
    # List responses leave item kinds empty.
    if not data.get("kind"):
        data["kind"] = kind
    if not data.get("apiVersion"):
        data["apiVersion"] = api_version
    return data


class ClientNamespaceGetter:
    """Reads namespaces from the cluster."""

    def __init__(self, core_v1: Any, api_client: Any):
        """
        Initialize the getter.

        Args:
            core_v1: ``kubernetes.client.CoreV1Api`` instance
            api_client: ``kubernetes.client.ApiClient`` used for serialization
        """
        self._core_v1 = core_v1
        self._api_client = api_client

    def get_namespace(self, ctx: EvaluationContext, name: str) -> dict[str, Any]:
        """
        Fetch one namespace.

        Raises:
            ListError: If the API call fails
        """
        ctx.check()
        try:
            namespace = self._core_v1.read_namespace(name)
        except ApiException as e:
            raise ListError(f'namespace "{name}": {e.reason}') from e
        return _to_dict(self._api_client, namespace, "Namespace", "v1")

    def list_namespaces(self, ctx: EvaluationContext, name: str | None = None) -> list[dict[str, Any]]:
        """
        List all namespaces, or just ``name`` via a field selector.

        Raises:
            ListError: If the API call fails
        """
        ctx.check()
        kwargs = {}
        if name:
            kwargs["field_selector"] = f"metadata.name={name}"
        try:
            namespaces = self._core_v1.list_namespace(**kwargs)
        except ApiException as e:
            raise ListError(f"{e.reason} (status {e.status})") from e

        items = [_to_dict(self._api_client, ns, "Namespace", "v1") for ns in namespaces.items]
        logger.debug(f"Listed {len(items)} namespaces")
        return items

    def enforce_labels(self, ctx: EvaluationContext, names: list[str]) -> dict[str, str]:
        """
        Current enforce label of each namespace; missing namespaces are skipped.

        Raises:
            ListError: If a lookup fails for a reason other than not found
        """
        labels = {}
        for name in names:
            try:
                namespace = self.get_namespace(ctx, name)
            except ListError as e:
                cause = e.__cause__
                if isinstance(cause, ApiException) and cause.status == 404:
                    logger.debug(f"Namespace {name} not found; treating as unlabeled")
                    continue
                raise
            labels[name] = enforce_label(namespace)
        return labels


class ClientPodLister:
    """Lists pods in a namespace from the cluster."""

    def __init__(self, core_v1: Any, api_client: Any):
        self._core_v1 = core_v1
        self._api_client = api_client

    def list_pods(self, ctx: EvaluationContext, namespace: str) -> list[dict[str, Any]]:
        """
        List the pods of one namespace.

        Raises:
            ListError: If the API call fails
        """
        ctx.check()
        try:
            pods = self._core_v1.list_namespaced_pod(namespace)
        except ApiException as e:
            raise ListError(f'failed to list pods in namespace "{namespace}": {e.reason}') from e
        return [_to_dict(self._api_client, pod, "Pod", "v1") for pod in pods.items]
