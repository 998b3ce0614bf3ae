"""Immutable, request-scoped state snapshot."""

from __future__ import annotations

from collections.abc import Iterator
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any


class State(Mapping[str, Any]):
    """Read-only mapping of composed context fields.

    Keys are also readable as attributes (``state.recentMessages``).  Use
    ``merge`` to derive an updated snapshot.
    """

    __slots__ = ("_data",)

    def __init__(
        self, data: Mapping[str, Any] | None = None, /, **fields: Any
    ) -> None:
        merged = dict(data or {})
        merged.update(fields)
        object.__setattr__(self, "_data", MappingProxyType(merged))

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            return self._data[name]
        except KeyError:
            raise AttributeError(name) from None

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("State is immutable; use merge()")

    def __repr__(self) -> str:
        return f"State({dict(self._data)!r})"

    def merge(
        self, updates: Mapping[str, Any] | None = None, /, **fields: Any
    ) -> State:
        """Return a new snapshot with *updates* and *fields* applied on top."""
        merged = dict(self._data)
        merged.update(updates or {})
        merged.update(fields)
        return State(merged)
