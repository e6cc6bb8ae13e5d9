"""
Reward shaping for the options-portfolio Q-learning agent.

The agent receives a scalar reward for every state transition.  The
reward is a sum of independent terms so that each incentive can be
tuned (and tested) on its own:

* **profit** -- change in realised P&L, weighted.
* **transaction_cost** -- proportional charge for any non-hold action.
* **delta_risk** -- linear penalty for net delta beyond the limit.
* **gamma_risk** -- flat penalty for net gamma beyond the limit.
* **drawdown** -- penalty for losses deeper than the drawdown threshold.
* **overtrading** -- penalty per position above the position threshold.
* **theta_bonus** -- carry bonus when the portfolio collects decay.
* **hedge_bonus** -- bonus when a hedge actually reduced net delta.

All weights and thresholds come from :class:`RewardConfig`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from greeks_rl.config import RewardConfig
from greeks_rl.rl.actions import ActionType, RLAction
from greeks_rl.rl.state import RLState, safe_div


# ---------------------------------------------------------------------------
# Reward breakdown dataclass
# ---------------------------------------------------------------------------

@dataclass
class RewardBreakdown:
    """Itemised breakdown of a reward signal.

    Attributes:
        total: The final scalar reward (sum of components).
        components: Mapping from term name to its signed contribution.
    """

    total: float = 0.0
    components: dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "components": self.components,
        }


# ---------------------------------------------------------------------------
# RewardShaper
# ---------------------------------------------------------------------------

class RewardShaper:
    """Computes the shaped reward for a ``(state, action, next_state)`` transition.

    Usage::

        shaper = RewardShaper()
        reward = shaper.reward(state, action, next_state)
        breakdown = shaper.breakdown(state, action, next_state)
    """

    def __init__(self, config: RewardConfig | None = None):
        self.config = config or RewardConfig()

    # ---- public interface -------------------------------------------------

    def reward(self, state: RLState, action: RLAction, next_state: RLState) -> float:
        """Return the scalar reward for the transition."""
        return self.breakdown(state, action, next_state).total

    def breakdown(self, state: RLState, action: RLAction, next_state: RLState) -> RewardBreakdown:
        """Return every reward term by name, plus their sum.

        Terms that do not apply to the transition are reported as ``0.0``.
        """
        comps = {
            "profit": self._profit(state, next_state),
            "transaction_cost": self._transaction_cost(state, action),
            "delta_risk": self._delta_risk(next_state),
            "gamma_risk": self._gamma_risk(next_state),
            "drawdown": self._drawdown(state, next_state),
            "overtrading": self._overtrading(next_state),
            "theta_bonus": self._theta_bonus(state),
            "hedge_bonus": self._hedge_bonus(state, action, next_state),
        }
        return RewardBreakdown(total=sum(comps.values()), components=comps)

    # ---- individual terms -------------------------------------------------

    def _profit(self, state: RLState, next_state: RLState) -> float:
        return (next_state.total_pnl - state.total_pnl) * self.config.profit_weight

    def _transaction_cost(self, state: RLState, action: RLAction) -> float:
        if action.type is ActionType.HOLD:
            return 0.0
        return -self.config.transaction_cost * (action.size_percent / 100.0) * abs(state.cash_balance)

    def _delta_risk(self, next_state: RLState) -> float:
        excess = abs(next_state.portfolio_delta) - self.config.max_portfolio_delta
        if excess <= 0:
            return 0.0
        return -self.config.risk_penalty * excess

    def _gamma_risk(self, next_state: RLState) -> float:
        if abs(next_state.portfolio_gamma) > self.config.gamma_threshold:
            return -self.config.gamma_penalty
        return 0.0

    def _drawdown(self, state: RLState, next_state: RLState) -> float:
        cfg = self.config
        if next_state.total_pnl >= 0 or next_state.total_pnl >= state.total_pnl:
            return 0.0
        drawdown_pct = abs(safe_div(next_state.total_pnl, state.cash_balance)) * 100.0
        if drawdown_pct <= cfg.drawdown_threshold_pct:
            return 0.0
        return -cfg.max_drawdown_penalty * (drawdown_pct - cfg.drawdown_threshold_pct)

    def _overtrading(self, next_state: RLState) -> float:
        excess = next_state.total_positions - self.config.overtrading_threshold
        if excess <= 0:
            return 0.0
        return -self.config.overtrading_penalty * excess

    def _theta_bonus(self, state: RLState) -> float:
        if state.portfolio_theta < 0:
            return abs(state.portfolio_theta) * self.config.theta_bonus_rate
        return 0.0

    def _hedge_bonus(self, state: RLState, action: RLAction, next_state: RLState) -> float:
        if action.type is not ActionType.HEDGE:
            return 0.0
        if abs(next_state.portfolio_delta) < abs(state.portfolio_delta):
            return self.config.hedge_bonus
        return 0.0
