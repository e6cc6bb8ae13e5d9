"""Sparse tabular action-value store."""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterator, Mapping

from greeks_rl.rl.actions import ActionKey
from greeks_rl.rl.state import StateKey


@dataclass
class QValue:
    """Learned value of one (state, action) pair and how often it was updated."""

    value: float = 0.0
    visits: int = 0


class QTable:
    """Mapping ``StateKey -> ActionKey -> QValue``.

    Rows and entries are created lazily on first update and are never
    removed.  Lookups for unseen pairs return ``None`` rather than
    creating anything.
    """

    def __init__(self) -> None:
        self._rows: dict[StateKey, dict[ActionKey, QValue]] = {}

    def __len__(self) -> int:
        return len(self._rows)

    def __contains__(self, state_key: object) -> bool:
        return state_key in self._rows

    def get(self, state_key: StateKey, action_key: ActionKey) -> QValue | None:
        row = self._rows.get(state_key)
        if row is None:
            return None
        return row.get(action_key)

    def value(self, state_key: StateKey, action_key: ActionKey) -> float:
        """Stored value of the pair, or 0.0 when it was never visited."""
        q = self.get(state_key, action_key)
        return q.value if q is not None else 0.0

    def get_or_create(self, state_key: StateKey, action_key: ActionKey) -> QValue:
        row = self._rows.setdefault(state_key, {})
        q = row.get(action_key)
        if q is None:
            q = row[action_key] = QValue()
        return q

    def row(self, state_key: StateKey) -> Mapping[ActionKey, QValue]:
        """Read-only view of every action recorded for *state_key*."""
        return MappingProxyType(self._rows.get(state_key, {}))

    def max_value(self, state_key: StateKey) -> float:
        """Best stored value for *state_key*; unvisited actions count as 0."""
        row = self._rows.get(state_key)
        if not row:
            return 0.0
        return max(0.0, max(q.value for q in row.values()))

    def items(self) -> Iterator[tuple[StateKey, Mapping[ActionKey, QValue]]]:
        for state_key, row in self._rows.items():
            yield state_key, MappingProxyType(row)

    def entry_count(self) -> int:
        return sum(len(row) for row in self._rows.values())

    def average_value(self) -> float:
        total = self.entry_count()
        if total == 0:
            return 0.0
        return sum(q.value for row in self._rows.values() for q in row.values()) / total
