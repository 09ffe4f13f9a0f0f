"""
Metrics collection for psachecker.

Level admissions record one evaluation per decision and one error per
failed evaluation. The default recorder discards everything; the in-memory
recorder keeps counters for tests and verbose run summaries.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class MetricType(Enum):
    """Types of metrics."""

    COUNTER = "counter"  # Monotonically increasing value


class Decision(Enum):
    """Admission decisions."""

    ALLOW = "allow"
    DENY = "deny"


class Mode(Enum):
    """Pod Security admission modes."""

    ENFORCE = "enforce"
    AUDIT = "audit"
    WARN = "warn"


EVALUATIONS_METRIC = "evaluations"
ERRORS_METRIC = "errors"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class MetricValue:
    """A single metric value."""

    name: str
    value: float
    metric_type: MetricType
    timestamp: datetime = field(default_factory=_utcnow)
    tags: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "value": self.value,
            "type": self.metric_type.value,
            "timestamp": self.timestamp.isoformat(),
            "tags": self.tags,
        }


class MetricsRecorder(ABC):
    """Interface used by level admissions to report decisions."""

    @abstractmethod
    def record_evaluation(
        self,
        decision: Decision,
        policy: str,
        mode: Mode,
        resource: str,
        operation: str,
    ) -> None:
        """Record one admission decision."""
        pass

    @abstractmethod
    def record_error(self, fatal: bool, resource: str, operation: str) -> None:
        """Record a failed evaluation."""
        pass


class NoopMetricsRecorder(MetricsRecorder):
    """Recorder that discards all metrics."""

    def record_evaluation(
        self,
        decision: Decision,
        policy: str,
        mode: Mode,
        resource: str,
        operation: str,
    ) -> None:
        pass

    def record_error(self, fatal: bool, resource: str, operation: str) -> None:
        pass


class InMemoryMetricsRecorder(MetricsRecorder):
    """
    Thread-safe recorder that keeps every metric in memory.

    Level admissions run on worker threads, so all access goes through a lock.
    """

    def __init__(self, max_size: int = 10000):
        """
        Initialize in-memory recorder.

        Args:
            max_size: Maximum number of metrics to store
        """
        self.max_size = max_size
        self.metrics: list[MetricValue] = []
        self._lock = threading.Lock()

    def _record(self, name: str, **tags: str) -> None:
        metric = MetricValue(name=name, value=1, metric_type=MetricType.COUNTER, tags=tags)
        with self._lock:
            self.metrics.append(metric)
            if len(self.metrics) > self.max_size:
                self.metrics = self.metrics[-self.max_size :]

    def record_evaluation(
        self,
        decision: Decision,
        policy: str,
        mode: Mode,
        resource: str,
        operation: str,
    ) -> None:
        self._record(
            EVALUATIONS_METRIC,
            decision=decision.value,
            policy=policy,
            mode=mode.value,
            resource=resource,
            operation=operation,
        )

    def record_error(self, fatal: bool, resource: str, operation: str) -> None:
        self._record(
            ERRORS_METRIC,
            fatal=str(fatal).lower(),
            resource=resource,
            operation=operation,
        )

    def get_metrics(self, name: str | None = None) -> list[MetricValue]:
        """
        Query stored metrics.

        Args:
            name: Filter by metric name

        Returns:
            List of matching metrics
        """
        with self._lock:
            return [m for m in self.metrics if name is None or m.name == name]

    def count(self, name: str, **tags: str) -> int:
        """Count metrics with ``name`` whose tags include all of ``tags``."""
        return sum(
            1
            for metric in self.get_metrics(name)
            if all(metric.tags.get(key) == value for key, value in tags.items())
        )

    def summary(self) -> dict[str, int]:
        """Totals keyed by ``evaluations.<decision>`` and ``errors``."""
        totals: Counter[str] = Counter()
        for metric in self.get_metrics():
            if metric.name == EVALUATIONS_METRIC:
                totals[f"{EVALUATIONS_METRIC}.{metric.tags.get('decision', '')}"] += 1
            else:
                totals[metric.name] += 1
        return dict(totals)

    def clear(self) -> None:
        """Clear all stored metrics."""
        with self._lock:
            self.metrics.clear()
