"""
Observability for psachecker.

Provides logging configuration and admission metrics.
"""

from psachecker.observability.logging import (
    ConsoleFormatter,
    JsonLogFormatter,
    configure_logging,
    level_for_verbosity,
)
from psachecker.observability.metrics import (
    Decision,
    InMemoryMetricsRecorder,
    MetricsRecorder,
    MetricType,
    MetricValue,
    Mode,
    NoopMetricsRecorder,
)

__all__ = [
    # Logging
    "ConsoleFormatter",
    "JsonLogFormatter",
    "configure_logging",
    "level_for_verbosity",
    # Metrics
    "Decision",
    "InMemoryMetricsRecorder",
    "MetricsRecorder",
    "MetricType",
    "MetricValue",
    "Mode",
    "NoopMetricsRecorder",
]
