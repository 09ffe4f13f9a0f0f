"""
Sorted-key map for namespace recommendations.
"""

from __future__ import annotations

from typing import Iterator, Mapping

from psachecker.levels import SecurityLevel


class OrderedLevelMap:
    """
    Map from namespace name to level that iterates in sorted key order.

    The key order is rebuilt lazily: adding a new key marks it dirty and the
    next read sorts once. Overwriting an existing key leaves it clean.
    """

    def __init__(self, mapping: Mapping[str, SecurityLevel] | None = None):
        self._data: dict[str, SecurityLevel] = {}
        self._keys: list[str] = []
        self._dirty = False
        for key, value in (mapping or {}).items():
            self.set(key, value)

    @property
    def dirty(self) -> bool:
        return self._dirty

    def set(self, key: str, value: SecurityLevel) -> None:
        if key not in self._data:
            self._keys.append(key)
            self._dirty = True
        self._data[key] = value

    def get(self, key: str, default: SecurityLevel | None = None) -> SecurityLevel | None:
        return self._data.get(key, default)

    def keys(self) -> list[str]:
        if self._dirty:
            self._keys.sort()
            self._dirty = False
        return list(self._keys)

    def items(self) -> list[tuple[str, SecurityLevel]]:
        return [(key, self._data[key]) for key in self.keys()]

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __repr__(self) -> str:
        body = ", ".join(f"{key!r}: {value.value}" for key, value in self.items())
        return f"OrderedLevelMap({{{body}}})"
