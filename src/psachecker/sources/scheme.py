"""
Resource type registry.

A ResourceScheme maps user-facing type names (``deploy``, ``deployments``,
``Deployment``, ``deployments.apps``) and manifest ``apiVersion``/``kind``
pairs to ResourceTypes. Sources receive a scheme explicitly instead of
consulting a global registry.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator


@dataclass(frozen=True)
class ResourceType:
    """
    A Kubernetes resource type known to the tool.

    Attributes:
        kind: Object kind, e.g. ``CronJob``
        plural: Plural lower-case resource name, e.g. ``cronjobs``
        group_version: API group/version, e.g. ``batch/v1``
        api_class: ``kubernetes.client`` API class name
        snake: Snake-case kind used in client method names, e.g. ``cron_job``
        namespaced: Whether objects live in a namespace
        short_names: Additional aliases, e.g. ``("cj",)``
    """

    kind: str
    plural: str
    group_version: str
    api_class: str
    snake: str
    namespaced: bool = True
    short_names: tuple[str, ...] = ()

    @property
    def group(self) -> str:
        return self.group_version.rpartition("/")[0]

    @property
    def aliases(self) -> tuple[str, ...]:
        names = [self.kind.lower(), self.plural, *self.short_names]
        if self.group:
            names.extend(f"{name}.{self.group}" for name in (self.kind.lower(), self.plural))
        return tuple(names)


class ResourceScheme:
    """
    Registry of resource types.

    Example:
        scheme = default_scheme()
        deployment = scheme.resolve("deploy")
        cron_job = scheme.for_kind("batch/v1", "CronJob")
    """

    def __init__(self) -> None:
        self._types: list[ResourceType] = []
        self._by_alias: dict[str, ResourceType] = {}
        self._by_kind: dict[tuple[str, str], ResourceType] = {}

    def register(self, resource_type: ResourceType) -> None:
        """
        Register a resource type.

        Raises:
            ValueError: If the kind or one of its aliases is already registered
        """
        key = (resource_type.group_version, resource_type.kind)
        if key in self._by_kind:
            raise ValueError(f"{resource_type.group_version}/{resource_type.kind} is already registered")
        for alias in resource_type.aliases:
            if alias in self._by_alias:
                raise ValueError(f'alias "{alias}" is already registered')

        self._types.append(resource_type)
        self._by_kind[key] = resource_type
        for alias in resource_type.aliases:
            self._by_alias[alias] = resource_type

    def resolve(self, name: str) -> ResourceType | None:
        """Look up a type by kind, plural, short name or ``name.group``."""
        return self._by_alias.get(name.lower())

    def for_kind(self, api_version: str, kind: str) -> ResourceType | None:
        """Look up a type by manifest ``apiVersion`` and ``kind``."""
        return self._by_kind.get((api_version, kind))

    def kinds(self) -> list[str]:
        return [t.kind for t in self._types]

    def __iter__(self) -> Iterator[ResourceType]:
        return iter(self._types)

    def __len__(self) -> int:
        return len(self._types)


def default_scheme() -> ResourceScheme:
    """Scheme with Namespace, Pod and every built-in pod controller."""
    scheme = ResourceScheme()
    for resource_type in (
        ResourceType("Namespace", "namespaces", "v1", "CoreV1Api", "namespace", namespaced=False, short_names=("ns",)),
        ResourceType("Pod", "pods", "v1", "CoreV1Api", "pod", short_names=("po",)),
        ResourceType("PodTemplate", "podtemplates", "v1", "CoreV1Api", "pod_template"),
        ResourceType(
            "ReplicationController", "replicationcontrollers", "v1", "CoreV1Api",
            "replication_controller", short_names=("rc",),
        ),
        ResourceType("Deployment", "deployments", "apps/v1", "AppsV1Api", "deployment", short_names=("deploy",)),
        ResourceType("ReplicaSet", "replicasets", "apps/v1", "AppsV1Api", "replica_set", short_names=("rs",)),
        ResourceType("StatefulSet", "statefulsets", "apps/v1", "AppsV1Api", "stateful_set", short_names=("sts",)),
        ResourceType("DaemonSet", "daemonsets", "apps/v1", "AppsV1Api", "daemon_set", short_names=("ds",)),
        ResourceType("Job", "jobs", "batch/v1", "BatchV1Api", "job"),
        ResourceType("CronJob", "cronjobs", "batch/v1", "BatchV1Api", "cron_job", short_names=("cj",)),
    ):
        scheme.register(resource_type)
    return scheme
