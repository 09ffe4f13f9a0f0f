"""
Pod Security policy evaluator.

Runs the registered checks that apply to a level and version against a pod
and reports the failing ones. The evaluator is stateless after construction
and is shared by all level admissions.
"""

from __future__ import annotations

import logging
from typing import Any, Sequence

from psachecker.levels import LevelVersion, PolicyVersion, SecurityLevel
from psachecker.errors import SetupError
from psachecker.policy.checks import Check, CheckResult, default_checks

logger = logging.getLogger(__name__)

# Levels that carry checks; restricted includes everything baseline checks.
_CHECKED_LEVELS = {
    SecurityLevel.BASELINE: (SecurityLevel.BASELINE,),
    SecurityLevel.RESTRICTED: (SecurityLevel.BASELINE, SecurityLevel.RESTRICTED),
}


class PolicyEvaluator:
    """
    Evaluates pods against Pod Security Standards levels.

    Example:
        evaluator = PolicyEvaluator()
        failures = evaluator.evaluate_pod(
            SecurityLevel.RESTRICTED, LATEST, pod["metadata"], pod["spec"]
        )
        if failures:
            print(format_violation(LevelVersion(SecurityLevel.RESTRICTED), failures))
    """

    def __init__(self, checks: Sequence[Check] | None = None):
        """
        Initialize the evaluator.

        Args:
            checks: Check registry (default: the built-in check set)

        Raises:
            SetupError: If the registry is malformed
        """
        self._checks = tuple(default_checks() if checks is None else checks)
        self._validate_checks()

    @property
    def checks(self) -> tuple[Check, ...]:
        return self._checks

    def _validate_checks(self) -> None:
        if not self._checks:
            raise SetupError("policy evaluator has no checks registered")

        seen: set[str] = set()
        for check in self._checks:
            if not isinstance(check, Check):
                raise SetupError(f"invalid check registration: {check!r}")
            if not check.id:
                raise SetupError(f"check {check.name!r} has no id")
            if check.id in seen:
                raise SetupError(f"duplicate check id {check.id}")
            if check.level not in _CHECKED_LEVELS:
                raise SetupError(f"check {check.id} has unsupported level {check.level.value}")
            if not callable(check.func):
                raise SetupError(f"check {check.id} is not callable")
            if check.min_minor < 0:
                raise SetupError(f"check {check.id} has invalid minimum version")
            seen.add(check.id)

    def evaluate_pod(
        self,
        level: SecurityLevel,
        version: PolicyVersion,
        pod_metadata: dict[str, Any],
        pod_spec: dict[str, Any],
    ) -> list[CheckResult]:
        """
        Evaluate a pod against one level.

        Returns:
            The failing check results; empty when the pod is allowed
        """
        levels = _CHECKED_LEVELS.get(level)
        if levels is None:
            if level is SecurityLevel.PRIVILEGED:
                return []
            raise ValueError(f"cannot evaluate pods against level {level.value}")

        failures = []
        for check in self._checks:
            if check.level not in levels or not version.includes(check.min_minor):
                continue
            result = check.func(pod_metadata, pod_spec)
            if not result.allowed:
                failures.append(
                    CheckResult(
                        allowed=False,
                        forbidden_reason=result.forbidden_reason,
                        forbidden_detail=result.forbidden_detail,
                        check_id=check.id,
                    )
                )
        return failures


def format_reasons(failures: Sequence[CheckResult]) -> str:
    """Join failures as ``reason (detail), reason (detail)``."""
    parts = []
    for failure in failures:
        if failure.forbidden_detail:
            parts.append(f"{failure.forbidden_reason} ({failure.forbidden_detail})")
        else:
            parts.append(failure.forbidden_reason)
    return ", ".join(parts)


def format_violation(level_version: LevelVersion, failures: Sequence[CheckResult]) -> str:
    """Format failures the way Pod Security admission reports them."""
    return f'violates PodSecurity "{level_version}": {format_reasons(failures)}'


def format_would_violate(level_version: LevelVersion, failures: Sequence[CheckResult]) -> str:
    """Format failures as an audit annotation or warning."""
    return f'would violate PodSecurity "{level_version}": {format_reasons(failures)}'
