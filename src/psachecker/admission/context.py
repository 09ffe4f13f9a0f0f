"""
Cancellation context for evaluations.

An EvaluationContext carries a cancel event and an optional deadline. It is
shared by every task of one run; any holder may cancel it and every worker
checks it between units of work.
"""

from __future__ import annotations

import threading
import time

from psachecker.errors import EvaluationCancelled

DEADLINE_EXCEEDED = "context deadline exceeded"
CANCELED = "context canceled"


class EvaluationContext:
    """
    Cancel event plus optional monotonic deadline.

    Example:
        ctx = EvaluationContext(timeout=30)
        result = admission.evaluate(ctx, request)
    """

    def __init__(self, timeout: float | None = None):
        """
        Initialize the context.

        Args:
            timeout: Seconds until the deadline; None or 0 for no deadline
        """
        self._event = threading.Event()
        self._reason = ""
        self._lock = threading.Lock()
        self._deadline = time.monotonic() + timeout if timeout else None

    def cancel(self, reason: str = CANCELED) -> None:
        with self._lock:
            if not self._event.is_set():
                self._reason = reason
                self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        if self._deadline is not None and time.monotonic() >= self._deadline:
            self.cancel(DEADLINE_EXCEEDED)
            return True
        return False

    @property
    def reason(self) -> str:
        return self._reason

    def remaining(self) -> float | None:
        """Seconds left before the deadline, or None without one."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def wait(self, timeout: float | None = None) -> bool:
        """Block until cancelled or ``timeout`` elapses; returns ``cancelled``."""
        remaining = self.remaining()
        if remaining is not None:
            timeout = remaining if timeout is None else min(timeout, remaining)
        self._event.wait(timeout)
        return self.cancelled

    def check(self) -> None:
        """
        Raise if the context is done.

        Raises:
            EvaluationCancelled: If cancelled or past the deadline
        """
        if self.cancelled:
            raise EvaluationCancelled(self._reason)
