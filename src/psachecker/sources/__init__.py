"""
Resource sources for psachecker.

Provides:
- A resource type scheme
- Local manifest and live cluster sources
- Kubernetes client setup
"""

from psachecker.sources.cluster import ClusterSource, parse_resource_args
from psachecker.sources.kube import current_namespace, load_api_client
from psachecker.sources.manifests import ManifestSource
from psachecker.sources.resource import ResourceInfo
from psachecker.sources.scheme import ResourceScheme, ResourceType, default_scheme

__all__ = [
    "ClusterSource",
    "ManifestSource",
    "ResourceInfo",
    "ResourceScheme",
    "ResourceType",
    "current_namespace",
    "default_scheme",
    "load_api_client",
    "parse_resource_args",
]
