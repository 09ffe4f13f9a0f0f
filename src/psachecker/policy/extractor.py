"""
Pod spec extraction for workload kinds.

Pods carry their spec directly; controllers carry a pod template at a
kind-specific path. Everything else has no pod spec and is ignored by the
rule engine.
"""

from __future__ import annotations

from typing import Any

# Path (as a key sequence from the object root) to the pod template.
POD_TEMPLATE_PATHS: dict[str, tuple[str, ...]] = {
    "PodTemplate": ("template",),
    "ReplicationController": ("spec", "template"),
    "ReplicaSet": ("spec", "template"),
    "Deployment": ("spec", "template"),
    "StatefulSet": ("spec", "template"),
    "DaemonSet": ("spec", "template"),
    "Job": ("spec", "template"),
    "CronJob": ("spec", "jobTemplate", "spec", "template"),
}


class PodSpecExtractor:
    """Pulls ``(pod_metadata, pod_spec)`` out of pods and pod controllers."""

    def has_pod_spec(self, kind: str) -> bool:
        return kind == "Pod" or kind in POD_TEMPLATE_PATHS

    def extract(self, obj: dict[str, Any]) -> tuple[dict[str, Any], dict[str, Any]] | None:
        kind = obj.get("kind", "")
        if kind == "Pod":
            return _mapping(obj.get("metadata")), _mapping(obj.get("spec"))

        path = POD_TEMPLATE_PATHS.get(kind)
        if path is None:
            return None

        template: Any = obj
        for key in path:
            template = _mapping(template).get(key)
        template = _mapping(template)
        return _mapping(template.get("metadata")), _mapping(template.get("spec"))


def _mapping(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}
