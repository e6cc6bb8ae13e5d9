"""
Action space for the options-portfolio Q-learning agent.

An action is one of five kinds (hold, buy, sell, hedge, close) carrying a
size expressed as a percentage.  The :class:`ActionSpace` enumerates the
actions that are *structurally* valid for a given portfolio state -- the
policy can never pick a buy without cash or a close without positions.

For Q-table indexing, sizes are coarsened into 10-point buckets by
:class:`ActionKey` so that neighbouring sizes share learned value.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, NamedTuple

from greeks_rl.config import ActionConfig
from greeks_rl.rl.state import RLState


class ActionType(str, Enum):
    """Kinds of portfolio action, in canonical enumeration order."""

    HOLD = "hold"
    BUY = "buy"
    SELL = "sell"
    CLOSE = "close"
    HEDGE = "hedge"


# ---------------------------------------------------------------------------
# Structured action dataclass
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RLAction:
    """A concrete portfolio action.

    Attributes:
        type: The action kind.
        size_percent: Size in percent (0-100).  Always 0 for ``hold``.
        symbol: Optional instrument the action targets.
    """

    type: ActionType
    size_percent: float = 0.0
    symbol: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.type, ActionType):
            object.__setattr__(self, "type", ActionType(self.type))
        if not 0.0 <= self.size_percent <= 100.0:
            raise ValueError(f"size_percent must be in [0, 100], got {self.size_percent}")
        if self.type is ActionType.HOLD and self.size_percent != 0.0:
            raise ValueError("hold actions carry size_percent = 0")

    @classmethod
    def hold(cls) -> "RLAction":
        return cls(ActionType.HOLD, 0.0)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a plain dictionary (JSON-safe)."""
        return {
            "type": self.type.value,
            "size_percent": self.size_percent,
            "symbol": self.symbol,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RLAction":
        """Deserialize from a plain dictionary (``sizePercent`` also accepted)."""
        size = data.get("size_percent", data.get("sizePercent", 0.0))
        return cls(
            type=ActionType(data["type"]),
            size_percent=float(size),
            symbol=data.get("symbol"),
        )


class ActionKey(NamedTuple):
    """Q-table index for an action: kind plus size rounded to the nearest 10."""

    type: ActionType
    size_bucket: int

    @classmethod
    def from_action(cls, action: RLAction) -> "ActionKey":
        # Half-up rounding so 25% lands in the 30 bucket.
        bucket = int(math.floor(action.size_percent / 10.0 + 0.5)) * 10
        return cls(action.type, bucket)

    def label(self) -> str:
        return f"{self.type.value}_{self.size_bucket}"


# ---------------------------------------------------------------------------
# ActionSpace
# ---------------------------------------------------------------------------

class ActionSpace:
    """Enumerates the legal actions for a portfolio state.

    The returned tuple is in a fixed canonical order:

    1. ``hold``
    2. ``buy`` at every size step (scaled by ``max_position_size``)
    3. ``sell`` then ``close`` for each size step, ascending
    4. ``hedge`` at every hedge size

    Greedy selection breaks ties by this order.
    """

    def __init__(self, config: ActionConfig | None = None):
        self.config = config or ActionConfig()

    def legal_actions(self, state: RLState) -> tuple[RLAction, ...]:
        cfg = self.config
        actions: list[RLAction] = [RLAction.hold()]

        if state.cash_balance > cfg.min_cash_balance and state.total_positions < cfg.max_positions:
            for size in cfg.size_steps:
                actions.append(RLAction(ActionType.BUY, size * cfg.max_position_size))

        if state.total_positions > 0:
            for size in cfg.size_steps:
                actions.append(RLAction(ActionType.SELL, size))
                actions.append(RLAction(ActionType.CLOSE, size))

        if abs(state.portfolio_delta) > cfg.hedge_delta_threshold:
            for size in cfg.hedge_sizes:
                actions.append(RLAction(ActionType.HEDGE, size))

        return tuple(actions)

    def is_legal(self, state: RLState, action: RLAction) -> bool:
        """Whether an action with *action*'s key is currently available."""
        key = ActionKey.from_action(action)
        return any(ActionKey.from_action(a) == key for a in self.legal_actions(state))
