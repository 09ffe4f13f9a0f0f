"""
Pod Security Standards rule engine for psachecker.

Provides:
- Pod spec extraction from pods and pod controllers
- Baseline and restricted checks
- A policy evaluator shared by all level admissions
"""

from psachecker.policy.checks import (
    Check,
    CheckResult,
    default_checks,
)
from psachecker.policy.evaluator import (
    PolicyEvaluator,
    format_reasons,
    format_violation,
    format_would_violate,
)
from psachecker.policy.extractor import PodSpecExtractor

__all__ = [
    "Check",
    "CheckResult",
    "PodSpecExtractor",
    "PolicyEvaluator",
    "default_checks",
    "format_reasons",
    "format_violation",
    "format_would_violate",
]
