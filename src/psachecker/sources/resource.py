"""
Resolved resource information shared by all sources.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass
class ResourceInfo:
    """
    One object to evaluate.

    Attributes:
        kind: Object kind, e.g. ``Deployment``
        namespace: Object namespace; empty when unset or cluster-scoped
        name: Object name
        obj: Object content as a plain dict
        resource: Plural lower-case resource type, e.g. ``deployments``
        namespaced: Whether the kind is namespace-scoped
        source: File path or ``cluster``
    """

    kind: str
    namespace: str
    name: str
    obj: dict[str, Any]
    resource: str
    namespaced: bool = True
    source: str = ""

    def __str__(self) -> str:
        if self.namespace:
            return f"{self.kind} {self.namespace}/{self.name}"
        return f"{self.kind} {self.name}"
