"""
Tests for evaluation results and the per-namespace reducer.
"""

from __future__ import annotations

import pytest

from psachecker.admission import (
    LevelResult,
    ParallelResult,
    ResultKey,
    most_restrictive_policy_per_namespace,
)
from psachecker.errors import EvaluationFailure
from psachecker.levels import SecurityLevel

R = SecurityLevel.RESTRICTED
B = SecurityLevel.BASELINE
P = SecurityLevel.PRIVILEGED
U = SecurityLevel.UNKNOWN


def _result(restricted: bool, baseline: bool, privileged: bool = True) -> ParallelResult:
    result = ParallelResult()
    result.set(R, LevelResult(R, restricted))
    result.set(B, LevelResult(B, baseline))
    result.set(P, LevelResult(P, privileged))
    return result


class TestLevelResult:
    """Tests for LevelResult."""

    def test_failure(self):
        """Test failure results carry the error."""
        error = EvaluationFailure("boom")
        result = LevelResult.failure(B, error)
        assert result.failed
        assert not result.allowed
        assert result.reason == "boom"
        assert result.error is error

    def test_defaults(self):
        """Test a plain result has no warnings or annotations."""
        result = LevelResult(R, True)
        assert not result.failed
        assert result.warnings == ()
        assert result.audit_annotations == {}


class TestParallelResult:
    """Tests for ParallelResult."""

    @pytest.mark.parametrize(
        "restricted,baseline,expected",
        [
            (True, True, R),
            (False, True, B),
            (False, False, P),
            # Inconsistent evaluators still resolve in order.
            (True, False, R),
        ],
    )
    def test_most_restrictive_policy(self, restricted, baseline, expected):
        """Test the strictest admitting level wins."""
        assert _result(restricted, baseline).most_restrictive_policy() is expected

    def test_privileged_denied(self):
        """Test privileged is the fallback even if it denied."""
        assert _result(False, False, privileged=False).most_restrictive_policy() is P

    def test_missing_slot(self):
        """Test a missing slot yields unknown."""
        result = ParallelResult()
        result.set(R, LevelResult(R, True))
        result.set(B, LevelResult(B, True))
        assert result.most_restrictive_policy() is U

    def test_failed_slot(self):
        """Test any failed slot yields unknown, even if restricted allowed."""
        result = _result(True, True)
        result.set(P, LevelResult.failure(P, EvaluationFailure("broken")))
        assert result.most_restrictive_policy() is U

    def test_get_set(self):
        """Test slots are addressed by level."""
        result = ParallelResult()
        level_result = LevelResult(B, True)
        result.set(B, level_result)
        assert result.get(B) is level_result
        assert result.baseline is level_result
        assert result.get(R) is None
        assert result.get(U) is None

    def test_set_unknown_rejected(self):
        """Test unknown has no slot."""
        with pytest.raises(ValueError):
            ParallelResult().set(U, LevelResult(U, True))


class TestResultKey:
    """Tests for ResultKey."""

    def test_str(self):
        """Test namespaced and cluster-scoped forms."""
        assert str(ResultKey("Pod", "default", "app")) == "Pod default/app"
        assert str(ResultKey("Namespace", "", "team-a")) == "Namespace team-a"

    def test_hashable(self):
        """Test keys work as map keys."""
        assert {ResultKey("Pod", "a", "b"): 1}[ResultKey("Pod", "a", "b")] == 1


class TestMostRestrictivePolicyPerNamespace:
    """Tests for the per-namespace reducer."""

    def test_least_restrictive_resource_wins(self):
        """Test each namespace takes the max of its resources."""
        results = {
            ResultKey("Pod", "a", "p1"): _result(True, True),
            ResultKey("Pod", "a", "p2"): _result(False, True),
            ResultKey("Pod", "b", "p3"): _result(True, True),
        }
        assert most_restrictive_policy_per_namespace(results) == {"a": B, "b": R}

    def test_unknown_dominates(self):
        """Test unknown outranks privileged."""
        broken = ParallelResult()
        results = {
            ResultKey("Pod", "a", "p1"): _result(False, False),
            ResultKey("Pod", "a", "p2"): broken,
        }
        assert most_restrictive_policy_per_namespace(results) == {"a": U}

    def test_cluster_scoped_bucket(self):
        """Test cluster-scoped resources reduce under the empty namespace."""
        results = {ResultKey("Namespace", "", "team-a"): _result(True, True)}
        assert most_restrictive_policy_per_namespace(results) == {"": R}

    def test_empty(self):
        """Test no results gives no namespaces."""
        assert most_restrictive_policy_per_namespace({}) == {}

    def test_insertion_order_irrelevant(self):
        """Test the reduction does not depend on result order."""
        items = [
            (ResultKey("Pod", "a", "p1"), _result(False, False)),
            (ResultKey("Pod", "a", "p2"), _result(True, True)),
            (ResultKey("Pod", "a", "p3"), _result(False, True)),
        ]
        forward = most_restrictive_policy_per_namespace(dict(items))
        backward = most_restrictive_policy_per_namespace(dict(reversed(items)))
        assert forward == backward == {"a": P}
