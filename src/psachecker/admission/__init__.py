"""
Pod Security admission engine for psachecker.

Provides:
- Security levels and policy versions
- Single-level admissions and the parallel admission engine
- Per-namespace reduction, ordered results and delta filtering
"""

from psachecker.admission.context import EvaluationContext
from psachecker.admission.delta import enforce_label, filter_unchanged_namespaces
from psachecker.admission.level_admission import (
    LevelAdmission,
    NamespacePolicy,
    PodSecurityConfiguration,
    PodSecurityDefaults,
)
from psachecker.admission.namespaces import (
    ClientNamespaceGetter,
    ClientPodLister,
    KnowAllNamespaceGetter,
)
from psachecker.admission.ordered_map import OrderedLevelMap
from psachecker.admission.parallel import ParallelAdmission, new_parallel_admission
from psachecker.admission.results import (
    EvaluationRequest,
    LevelResult,
    ParallelResult,
    ResultKey,
    ResultsMap,
    most_restrictive_policy_per_namespace,
)
from psachecker.levels import (
    CONCRETE_LEVELS,
    ENFORCE_LEVEL_LABEL,
    ENFORCE_VERSION_LABEL,
    LATEST,
    LevelVersion,
    PolicyVersion,
    SecurityLevel,
)

__all__ = [
    # Levels
    "CONCRETE_LEVELS",
    "ENFORCE_LEVEL_LABEL",
    "ENFORCE_VERSION_LABEL",
    "LATEST",
    "LevelVersion",
    "PolicyVersion",
    "SecurityLevel",
    # Engine
    "EvaluationContext",
    "LevelAdmission",
    "NamespacePolicy",
    "ParallelAdmission",
    "PodSecurityConfiguration",
    "PodSecurityDefaults",
    "new_parallel_admission",
    # Results
    "EvaluationRequest",
    "LevelResult",
    "ParallelResult",
    "ResultKey",
    "ResultsMap",
    "most_restrictive_policy_per_namespace",
    "OrderedLevelMap",
    "enforce_label",
    "filter_unchanged_namespaces",
    # Lookups
    "ClientNamespaceGetter",
    "ClientPodLister",
    "KnowAllNamespaceGetter",
]
