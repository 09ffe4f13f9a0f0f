"""
Pytest configuration and fixtures for psachecker tests.

This module provides pod, workload and namespace fixtures used across the
unit tests.
"""

from __future__ import annotations

import copy
import logging
from typing import Any, Callable, Generator

import pytest

from psachecker.admission import EvaluationContext, ParallelAdmission, new_parallel_admission
from psachecker.policy import PolicyEvaluator


def make_pod(
    name: str = "app",
    namespace: str | None = "default",
    containers: list[dict[str, Any]] | None = None,
    **spec_fields: Any,
) -> dict[str, Any]:
    """Build a Pod manifest."""
    metadata: dict[str, Any] = {"name": name}
    if namespace is not None:
        metadata["namespace"] = namespace
    spec: dict[str, Any] = {
        "containers": containers or [{"name": "app", "image": "nginx:1.25"}],
    }
    spec.update(spec_fields)
    return {"apiVersion": "v1", "kind": "Pod", "metadata": metadata, "spec": spec}


def make_restricted_pod(name: str = "app", namespace: str | None = "default") -> dict[str, Any]:
    """Build a Pod that satisfies the restricted level."""
    return make_pod(
        name=name,
        namespace=namespace,
        containers=[
            {
                "name": "app",
                "image": "nginx:1.25",
                "securityContext": {
                    "allowPrivilegeEscalation": False,
                    "capabilities": {"drop": ["ALL"]},
                },
            }
        ],
        securityContext={
            "runAsNonRoot": True,
            "seccompProfile": {"type": "RuntimeDefault"},
        },
    )


def make_deployment(pod: dict[str, Any], name: str = "web") -> dict[str, Any]:
    """Wrap a Pod manifest's metadata and spec into a Deployment."""
    metadata = {"name": name}
    if "namespace" in pod["metadata"]:
        metadata["namespace"] = pod["metadata"]["namespace"]
    return {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": metadata,
        "spec": {
            "replicas": 1,
            "selector": {"matchLabels": {"app": name}},
            "template": {
                "metadata": {"labels": {"app": name}},
                "spec": copy.deepcopy(pod["spec"]),
            },
        },
    }


def make_namespace(name: str, labels: dict[str, str] | None = None) -> dict[str, Any]:
    """Build a Namespace object."""
    return {
        "apiVersion": "v1",
        "kind": "Namespace",
        "metadata": {"name": name, "labels": dict(labels or {})},
    }


@pytest.fixture
def pod_factory() -> Callable[..., dict[str, Any]]:
    """Return the Pod manifest builder."""
    return make_pod


@pytest.fixture
def restricted_pod() -> dict[str, Any]:
    """A Pod admitted at every level."""
    return make_restricted_pod()


@pytest.fixture
def baseline_pod() -> dict[str, Any]:
    """A Pod admitted at baseline but not restricted."""
    return make_pod()


@pytest.fixture
def privileged_pod() -> dict[str, Any]:
    """A Pod admitted only at privileged."""
    return make_pod(hostNetwork=True)


@pytest.fixture
def evaluator() -> PolicyEvaluator:
    """Return a policy evaluator with the built-in checks."""
    return PolicyEvaluator()


@pytest.fixture
def ctx() -> EvaluationContext:
    """Return an evaluation context without a deadline."""
    return EvaluationContext()


@pytest.fixture
def parallel_admission() -> Generator[ParallelAdmission, None, None]:
    """Return a parallel admission engine and close it afterwards."""
    admission = new_parallel_admission()
    yield admission
    admission.close()


@pytest.fixture(autouse=True)
def reset_package_logger() -> Generator[None, None, None]:
    """Undo CLI logging configuration between tests."""
    yield
    logger = logging.getLogger("psachecker")
    logger.handlers.clear()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def deployment_factory() -> Callable[..., dict[str, Any]]:
    """Return the Deployment manifest builder."""
    return make_deployment


@pytest.fixture
def namespace_factory() -> Callable[..., dict[str, Any]]:
    """Return the Namespace object builder."""
    return make_namespace
