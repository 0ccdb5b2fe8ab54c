"""Immutable, ordered parameter mapping shared by the archiver and the reloader.

A :class:`ParameterSet` is built once by the merger (or decoded from its JSON
form) and never mutated afterwards.  Nested mappings and lists are frozen on
construction so that readers holding a reference to a snapshot can never
observe a change made through another reference.
"""

from __future__ import annotations

import math
from collections.abc import Iterator, Mapping
from datetime import date, datetime, time
from types import MappingProxyType
from typing import Any


def _freeze(value: Any) -> Any:
    if isinstance(value, Mapping):
        return MappingProxyType({str(k): _freeze(v) for k, v in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(v) for v in value)
    if isinstance(value, (datetime, date, time)):
        # YAML resolves unquoted timestamps; parameters only carry JSON scalars.
        return value.isoformat()
    if isinstance(value, float) and not math.isfinite(value):
        raise ValueError(f"Unsupported parameter value: {value!r}")
    if value is None or isinstance(value, (str, bool, int, float)):
        return value
    raise TypeError(f"Unsupported parameter value type: {type(value).__name__}")


def _thaw(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {k: _thaw(v) for k, v in value.items()}
    if isinstance(value, tuple):
        return [_thaw(v) for v in value]
    return value


class ParameterSet(Mapping[str, Any]):
    """Read-only ordered mapping of parameter names to JSON-compatible values.

    Two sets are equal only if they hold the same items in the same order.
    Comparison with a plain mapping ignores order, like ``dict`` equality.

    Raises
    ------
    TypeError
        If a value is not JSON-compatible.
    ValueError
        If a float value is NaN or infinite.
    """

    __slots__ = ("_data",)

    def __init__(self, data: Mapping[str, Any] | None = None) -> None:
        frozen: dict[str, Any] = {}
        for key, value in (data or {}).items():
            frozen[str(key)] = _freeze(value)
        self._data = frozen

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ParameterSet):
            return list(self.to_dict().items()) == list(other.to_dict().items())
        if isinstance(other, Mapping):
            return self.to_dict() == _thaw(other)
        return NotImplemented

    def __hash__(self) -> int:
        return hash(tuple(self._data))

    def __repr__(self) -> str:
        return f"ParameterSet({self.to_dict()!r})"

    def to_dict(self) -> dict[str, Any]:
        """Return a mutable deep copy of the parameters."""
        return {k: _thaw(v) for k, v in self._data.items()}

    def merged_with(self, other: Mapping[str, Any]) -> ParameterSet:
        """Return a new set where keys of *other* override keys of this set."""
        combined = self.to_dict()
        combined.update((str(key), _thaw(value)) for key, value in other.items())
        return ParameterSet(combined)


def to_json_compatible(value: Any) -> Any:
    """Return a plain copy of *value* with string keys and ISO-8601 timestamps.

    Raises
    ------
    TypeError, ValueError
        Under the same rules as :class:`ParameterSet`.
    """
    return _thaw(_freeze(value))
