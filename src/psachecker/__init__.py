"""
psachecker - Pod Security Admission level recommendations

Answers one question for a set of workloads or namespaces:
"What is the strictest Pod Security level they would still be admitted under?"

Key Features:
- Read-only: never mutates cluster state
- Works on local manifests or live cluster objects
- Evaluates privileged, baseline and restricted in parallel
- Optionally reports only namespaces whose enforce label would change

Quick Start:
    >>> from psachecker.admission import (
    ...     EvaluationContext,
    ...     most_restrictive_policy_per_namespace,
    ...     new_parallel_admission,
    ... )
    >>> from psachecker.sources import ManifestSource, default_scheme
    >>>
    >>> infos = ManifestSource(["deploy.yaml"], default_scheme()).infos()
    >>> with new_parallel_admission() as admission:
    ...     results = admission.validate_resources(EvaluationContext(), True, "default", infos)
    >>> most_restrictive_policy_per_namespace(results)
"""

from __future__ import annotations

__version__ = "0.1.0"

from psachecker.errors import (
    EvaluationCancelled,
    EvaluationFailure,
    ListError,
    PSACheckerError,
    SetupError,
    SourceError,
)
from psachecker.levels import LevelVersion, PolicyVersion, SecurityLevel

__all__ = [
    "__version__",
    # Errors
    "EvaluationCancelled",
    "EvaluationFailure",
    "ListError",
    "PSACheckerError",
    "SetupError",
    "SourceError",
    # Levels
    "LevelVersion",
    "PolicyVersion",
    "SecurityLevel",
]
