"""
Live cluster source.

Resolves ``TYPE``, ``TYPE NAME...`` and ``TYPE/NAME...`` arguments against
a ResourceScheme and reads the matching objects through the Kubernetes API.
"""

from __future__ import annotations

import logging
from typing import Any

from kubernetes import client
from kubernetes.client.rest import ApiException

from psachecker.errors import SourceError
from psachecker.sources.resource import ResourceInfo
from psachecker.sources.scheme import ResourceScheme, ResourceType

logger = logging.getLogger(__name__)

CLUSTER_SOURCE = "cluster"


def parse_resource_args(args: list[str]) -> list[tuple[str, list[str]]]:
    """
    Split CLI resource arguments into (type, names) pairs.

    An empty name list means every object of the type.

    Raises:
        SourceError: If the arguments mix forms or name no type
    """
    if not args:
        raise SourceError("you must specify the type of resource to get")

    if any("/" in arg for arg in args):
        pairs: list[tuple[str, list[str]]] = []
        for arg in args:
            type_name, sep, name = arg.partition("/")
            if not sep or not type_name or not name:
                raise SourceError(
                    "there is no need to specify a resource type as a separate argument "
                    f'when passing arguments in resource/name form (e.g. "{arg}")'
                )
            for existing_type, names in pairs:
                if existing_type == type_name:
                    names.append(name)
                    break
            else:
                pairs.append((type_name, [name]))
        return pairs

    type_names = [t for t in args[0].split(",") if t]
    if not type_names:
        raise SourceError("you must specify the type of resource to get")
    names = args[1:]
    if names and len(type_names) > 1:
        raise SourceError("names cannot be combined with more than one resource type")
    return [(type_name, list(names)) for type_name in type_names]


class ClusterSource:
    """
    Resources read from the cluster.

    Example:
        source = ClusterSource(api_client, default_scheme(), namespace="web")
        infos = source.infos(["deploy", "frontend"])
    """

    def __init__(
        self,
        api_client: Any,
        scheme: ResourceScheme,
        namespace: str = "",
        all_namespaces: bool = False,
    ):
        """
        Initialize the source.

        Args:
            api_client: ``kubernetes.client.ApiClient`` instance
            scheme: Resource types to accept
            namespace: Namespace for namespaced types
            all_namespaces: List namespaced types across all namespaces
        """
        self._api_client = api_client
        self._scheme = scheme
        self._namespace = namespace
        self._all_namespaces = all_namespaces
        self._apis: dict[str, Any] = {}

    def _api(self, resource_type: ResourceType) -> Any:
        if resource_type.api_class not in self._apis:
            api_class = getattr(client, resource_type.api_class)
            self._apis[resource_type.api_class] = api_class(self._api_client)
        return self._apis[resource_type.api_class]

    def _resolve_type(self, type_name: str) -> ResourceType:
        resource_type = self._scheme.resolve(type_name)
        if resource_type is None:
            raise SourceError(
                f'the server doesn\'t have a resource type "{type_name}"',
                resource=type_name,
            )
        return resource_type

    def infos(self, args: list[str]) -> list[ResourceInfo]:
        """
        Read the objects named by ``args``.

        Raises:
            SourceError: If a type is unknown or an API call fails
        """
        infos: list[ResourceInfo] = []
        for type_name, names in parse_resource_args(args):
            resource_type = self._resolve_type(type_name)
            if names:
                if self._all_namespaces and resource_type.namespaced:
                    raise SourceError("a resource cannot be retrieved by name across all namespaces")
                for name in names:
                    infos.append(self._read(resource_type, name))
            else:
                infos.extend(self._list(resource_type))
        logger.debug(f"Read {len(infos)} objects from the cluster")
        return infos

    def _read(self, resource_type: ResourceType, name: str) -> ResourceInfo:
        api = self._api(resource_type)
        try:
            if resource_type.namespaced:
                method = getattr(api, f"read_namespaced_{resource_type.snake}")
                obj = method(name, self._namespace)
            else:
                obj = getattr(api, f"read_{resource_type.snake}")(name)
        except ApiException as e:
            raise SourceError(
                f'failed to get {resource_type.plural} "{name}": {e.reason}',
                resource=f"{resource_type.plural}/{name}",
            ) from e
        return self._info(resource_type, obj)

    def _list(self, resource_type: ResourceType) -> list[ResourceInfo]:
        api = self._api(resource_type)
        try:
            if not resource_type.namespaced:
                result = getattr(api, f"list_{resource_type.snake}")()
            elif self._all_namespaces:
                result = getattr(api, f"list_{resource_type.snake}_for_all_namespaces")()
            else:
                result = getattr(api, f"list_namespaced_{resource_type.snake}")(self._namespace)
        except ApiException as e:
            raise SourceError(
                f"failed to list {resource_type.plural}: {e.reason}",
                resource=resource_type.plural,
            ) from e
        return [self._info(resource_type, item) for item in result.items]

    def _info(self, resource_type: ResourceType, obj: Any) -> ResourceInfo:
        data = self._api_client.sanitize_for_serialization(obj)
        if not data.get("kind"):
            data["kind"] = resource_type.kind
        if not data.get("apiVersion"):
            data["apiVersion"] = resource_type.group_version
        metadata = data.get("metadata") or {}
        return ResourceInfo(
            kind=resource_type.kind,
            namespace=metadata.get("namespace") or "",
            name=metadata.get("name", ""),
            obj=data,
            resource=resource_type.plural,
            namespaced=resource_type.namespaced,
            source=CLUSTER_SOURCE,
        )
