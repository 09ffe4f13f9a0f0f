"""
Evaluation requests and results.

A ParallelResult holds one LevelResult slot per concrete level; its most
restrictive policy is the strictest level that admitted the object.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, NamedTuple

from psachecker.errors import EvaluationFailure
from psachecker.levels import CONCRETE_LEVELS, SecurityLevel


@dataclass(frozen=True)
class EvaluationRequest:
    """An admission request for one object. Immutable once built."""

    namespace: str
    name: str
    kind: str
    resource: str
    operation: str
    obj: dict[str, Any]
    old_obj: dict[str, Any] | None = None


@dataclass(frozen=True)
class LevelResult:
    """Outcome of one level admission for one request."""

    level: SecurityLevel
    allowed: bool
    reason: str = ""
    warnings: tuple[str, ...] = ()
    audit_annotations: dict[str, str] = field(default_factory=dict)
    error: EvaluationFailure | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None

    @classmethod
    def failure(cls, level: SecurityLevel, error: EvaluationFailure) -> LevelResult:
        """A result for an evaluator that could not complete."""
        return cls(level=level, allowed=False, reason=str(error), error=error)


@dataclass
class ParallelResult:
    """Per-level results for one object."""

    restricted: LevelResult | None = None
    baseline: LevelResult | None = None
    privileged: LevelResult | None = None

    def set(self, level: SecurityLevel, result: LevelResult) -> None:
        if level not in CONCRETE_LEVELS:
            raise ValueError(f"no result slot for level {level.value}")
        setattr(self, level.value, result)

    def get(self, level: SecurityLevel) -> LevelResult | None:
        if level not in CONCRETE_LEVELS:
            return None
        return getattr(self, level.value)

    def most_restrictive_policy(self) -> SecurityLevel:
        """
        The strictest level that admits the object.

        Returns ``unknown`` if any slot is missing or failed, otherwise
        restricted or baseline when allowed, falling back to privileged.
        """
        slots = (self.restricted, self.baseline, self.privileged)
        if any(slot is None or slot.failed for slot in slots):
            return SecurityLevel.UNKNOWN
        if self.restricted.allowed:
            return SecurityLevel.RESTRICTED
        if self.baseline.allowed:
            return SecurityLevel.BASELINE
        return SecurityLevel.PRIVILEGED


class ResultKey(NamedTuple):
    """Identity of an evaluated resource."""

    kind: str
    namespace: str
    name: str

    def __str__(self) -> str:
        if self.namespace:
            return f"{self.kind} {self.namespace}/{self.name}"
        return f"{self.kind} {self.name}"


ResultsMap = dict[ResultKey, ParallelResult]


def most_restrictive_policy_per_namespace(results: ResultsMap) -> dict[str, SecurityLevel]:
    """
    Reduce per-resource results to one level per namespace.

    Each namespace gets the least restrictive of its resources' levels, so
    every resource in it would still be admitted.
    """
    per_namespace: dict[str, SecurityLevel] = {}
    for key, result in results.items():
        level = result.most_restrictive_policy()
        current = per_namespace.get(key.namespace)
        if current is None or level > current:
            per_namespace[key.namespace] = level
    return per_namespace
