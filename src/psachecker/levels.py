"""
Pod Security levels, policy versions and namespace label keys.

Levels are ordered by restrictiveness:

    restricted < baseline < privileged < unknown

``unknown`` is never a valid label value; it marks a resource whose
evaluation could not be completed.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

LABEL_PREFIX = "pod-security.kubernetes.io/"
ENFORCE_LEVEL_LABEL = LABEL_PREFIX + "enforce"
ENFORCE_VERSION_LABEL = LABEL_PREFIX + "enforce-version"
AUDIT_LEVEL_LABEL = LABEL_PREFIX + "audit"
AUDIT_VERSION_LABEL = LABEL_PREFIX + "audit-version"
WARN_LEVEL_LABEL = LABEL_PREFIX + "warn"
WARN_VERSION_LABEL = LABEL_PREFIX + "warn-version"

# Newest minor version whose check set is known to the rule engine.
MAX_SUPPORTED_MINOR = 30

_VERSION_PATTERN = re.compile(r"^v1\.(0|[1-9][0-9]*)$")


class SecurityLevel(Enum):
    """Pod Security Standards levels plus the ``unknown`` sentinel."""

    RESTRICTED = "restricted"
    BASELINE = "baseline"
    PRIVILEGED = "privileged"
    UNKNOWN = "unknown"

    @property
    def rank(self) -> int:
        """Position in the restrictiveness order (lower is stricter)."""
        return _RANKS[self]

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, SecurityLevel):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, SecurityLevel):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, SecurityLevel):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, SecurityLevel):
            return NotImplemented
        return self.rank >= other.rank

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: str) -> SecurityLevel:
        """
        Parse a level label value.

        Raises:
            ValueError: If the value is not privileged, baseline or restricted
        """
        for level in CONCRETE_LEVELS:
            if level.value == value:
                return level
        raise ValueError(
            f'invalid level "{value}": must be one of privileged, baseline, restricted'
        )


_RANKS = {
    SecurityLevel.RESTRICTED: 0,
    SecurityLevel.BASELINE: 1,
    SecurityLevel.PRIVILEGED: 2,
    SecurityLevel.UNKNOWN: 3,
}

# Strictest first.
CONCRETE_LEVELS = (
    SecurityLevel.RESTRICTED,
    SecurityLevel.BASELINE,
    SecurityLevel.PRIVILEGED,
)


@dataclass(frozen=True)
class PolicyVersion:
    """A Pod Security policy version: ``latest`` or ``v1.N``."""

    minor: int | None = None

    @property
    def is_latest(self) -> bool:
        return self.minor is None

    def includes(self, minor: int) -> bool:
        """Whether checks introduced in ``v1.<minor>`` apply at this version."""
        return self.minor is None or self.minor >= minor

    def __str__(self) -> str:
        return "latest" if self.minor is None else f"v1.{self.minor}"

    @classmethod
    def parse(cls, value: str) -> PolicyVersion:
        """
        Parse a version label value.

        Raises:
            ValueError: If the value is malformed or newer than the rule engine supports
        """
        if value in ("", "latest"):
            return LATEST
        match = _VERSION_PATTERN.match(value)
        if not match:
            raise ValueError(f'invalid version "{value}": must be "latest" or "v1.x"')
        minor = int(match.group(1))
        if minor > MAX_SUPPORTED_MINOR:
            raise ValueError(
                f'unsupported version "{value}": newest supported is v1.{MAX_SUPPORTED_MINOR}'
            )
        return cls(minor=minor)


LATEST = PolicyVersion()


@dataclass(frozen=True)
class LevelVersion:
    """A level pinned to a policy version, e.g. ``restricted:latest``."""

    level: SecurityLevel
    version: PolicyVersion = LATEST

    def __str__(self) -> str:
        return f"{self.level.value}:{self.version}"
