"""
Filtering of recommendations that match a namespace's current enforce label.
"""

from __future__ import annotations

from typing import Any, Mapping

from psachecker.levels import ENFORCE_LEVEL_LABEL, SecurityLevel


def enforce_label(namespace: Mapping[str, Any]) -> str:
    """The namespace's ``pod-security.kubernetes.io/enforce`` label, or ``""``."""
    metadata = namespace.get("metadata") or {}
    labels = metadata.get("labels") or {}
    return str(labels.get(ENFORCE_LEVEL_LABEL) or "")


def filter_unchanged_namespaces(
    recommendations: Mapping[str, SecurityLevel],
    current_levels: Mapping[str, str],
) -> dict[str, SecurityLevel]:
    """
    Drop namespaces whose recommendation equals their current enforce label.

    Args:
        recommendations: Recommended level per namespace
        current_levels: Current enforce label value per namespace

    Returns:
        A new mapping with only the namespaces that would change
    """
    changed = {}
    for namespace, level in recommendations.items():
        current = current_levels.get(namespace, "")
        if current and current == level.value:
            continue
        changed[namespace] = level
    return changed
