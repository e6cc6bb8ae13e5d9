"""
Greedy recommendations with a confidence score and a plain-English rationale.

The recommender never explores: it asks the policy for its greedy
choice, reads back the learned value and visit count for that choice,
and turns them into a 0-100 confidence.  The explanation is assembled
from fixed templates so the same inputs always produce the same text.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from greeks_rl.rl.actions import ActionKey, ActionType, RLAction
from greeks_rl.rl.policy import EpsilonGreedyPolicy
from greeks_rl.rl.q_table import QTable
from greeks_rl.rl.state import RLState, StateDiscretizer


@dataclass
class Recommendation:
    """A suggested action for display.

    Attributes:
        action: The greedy action.
        confidence: 0-100 blend of visit count and value magnitude.
        q_value: Learned value of the action in this state (0 if unseen).
        visits: Number of TD updates behind ``q_value``.
        explanation: Human-readable rationale.
        state_bins: Discretised state, by dimension.
    """

    action: RLAction
    confidence: float
    q_value: float
    visits: int
    explanation: str
    state_bins: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "action": self.action.to_dict(),
            "confidence": self.confidence,
            "q_value": self.q_value,
            "visits": self.visits,
            "explanation": self.explanation,
            "state_bins": self.state_bins,
        }


def confidence_score(visits: int, q_value: float) -> float:
    """``min(100, visits/10 * 50 + min(50, |q| * 10))``."""
    return min(100.0, (visits / 10.0) * 50.0 + min(50.0, abs(q_value) * 10.0))


class Recommender:
    """Exposes the greedy policy together with an explanation."""

    def __init__(
        self,
        policy: EpsilonGreedyPolicy,
        q_table: QTable,
        discretizer: StateDiscretizer,
    ):
        self.policy = policy
        self.q_table = q_table
        self.discretizer = discretizer

    def recommend(self, state: RLState) -> Recommendation:
        action = self.policy.select(state, explore=False)
        state_key = self.discretizer.discretize(state)
        q = self.q_table.get(state_key, ActionKey.from_action(action))

        visits = q.visits if q is not None else 0
        value = q.value if q is not None else 0.0

        return Recommendation(
            action=action,
            confidence=confidence_score(visits, value),
            q_value=value,
            visits=visits,
            explanation=explain_action(action, state, value),
            state_bins=self.discretizer.describe(state_key),
        )


# ---------------------------------------------------------------------------
# Explanation templates
# ---------------------------------------------------------------------------

def explain_action(action: RLAction, state: RLState, q_value: float) -> str:
    """Build the rationale sentence for *action* in *state*.

    The last clause always states the expected value (``q_value > 0``),
    the risk (``q_value < 0``), or that nothing has been learned yet.
    """
    parts: list[str] = []
    size = f"{action.size_percent:.0f}%"

    if action.type is ActionType.BUY:
        parts.append(f"Open new position ({size} size)")
        if state.iv_rank > 70:
            parts.append("IV is elevated - good for premium selling")
        if abs(state.portfolio_delta) < 20:
            parts.append("Portfolio is balanced")

    elif action.type is ActionType.SELL:
        parts.append(f"Close {size} of positions")
        if state.total_pnl > 0:
            parts.append("Take profits")
        elif state.total_pnl < 0:
            parts.append("Reduce losing exposure")
        if state.vix_level > 30:
            parts.append(f"High volatility (VIX {state.vix_level:.1f}) - risk reduction")

    elif action.type is ActionType.CLOSE:
        parts.append(f"Close position ({size})")
        if state.total_pnl < 0:
            parts.append("Cut losses")
        elif state.total_pnl > 0:
            parts.append("Lock in gains")
        if state.vix_level > 30:
            parts.append(f"VIX at {state.vix_level:.1f}")
        if state.position_delta is not None and abs(state.position_delta) > 0.8:
            parts.append("High directional risk")

    elif action.type is ActionType.HEDGE:
        parts.append(f"Hedge delta exposure ({size})")
        parts.append(f"Current delta: {state.portfolio_delta:.1f}")

    else:
        parts.append("Hold current positions")
        if abs(state.portfolio_delta) < 30:
            parts.append("Portfolio is balanced")
        if state.portfolio_theta < -100:
            parts.append(f"Collecting theta decay ({state.portfolio_theta:.1f}/day)")
        parts.append(f"Cash balance ${state.cash_balance:,.2f}")

    if q_value > 0:
        parts.append(f"Expected value: +${q_value:.2f}")
    elif q_value < 0:
        parts.append(f"Risk: ${abs(q_value):.2f}")
    else:
        parts.append("Expected value: $0.00 (no learned signal yet)")

    return ". ".join(parts)
