"""
Error types for psachecker.

Every fatal error raised by the engine derives from PSACheckerError so the
CLI can report it and exit non-zero without printing partial results.
"""

from __future__ import annotations


class PSACheckerError(Exception):
    """Base class for all psachecker errors."""


class SetupError(PSACheckerError):
    """Raised when admission or policy configuration cannot be built."""


class SourceError(PSACheckerError):
    """Raised when a resource cannot be read, parsed or resolved."""

    def __init__(self, message: str, resource: str | None = None):
        self.resource = resource
        super().__init__(message)


class ListError(PSACheckerError):
    """Raised when namespaces cannot be listed or looked up in the cluster."""


class EvaluationFailure(PSACheckerError):
    """Raised when a single level evaluation fails."""


class EvaluationCancelled(EvaluationFailure):
    """Raised when an evaluation is cancelled or its deadline expires."""
