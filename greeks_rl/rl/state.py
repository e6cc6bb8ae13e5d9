"""
State representation for the options-portfolio Q-learning agent.

The caller observes its live portfolio and the market and packs the
numbers into an immutable :class:`RLState`.  Because the Q-table is
tabular, the continuous state is mapped onto a small grid by the
:class:`StateDiscretizer`: every dimension is clipped into a fixed range
and bucketed into equal-width bins.  The resulting tuple of bin indices
is the key under which learned values are stored.

Discretisation conventions:
* Out-of-range values are clipped, never rejected.
* P&L is binned in thousands of dollars.
* A value exactly at the upper bound lands in bin index ``bins``.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, fields
from typing import Any, Callable

from greeks_rl.config import BinSpec, DiscretizerConfig

# Ordered tuple of bin indices, one per discretised dimension.
StateKey = tuple[int, ...]


# ---------------------------------------------------------------------------
# Helper utilities
# ---------------------------------------------------------------------------

def _clip(value: float, lo: float, hi: float) -> float:
    """Clip *value* to [*lo*, *hi*]."""
    return max(lo, min(hi, value))


def safe_div(numerator: float, denominator: float, default: float = 0.0) -> float:
    """Return *numerator / denominator*, or *default* when division is undefined."""
    if denominator == 0.0:
        return default
    return numerator / denominator


def bin_value(value: float, spec: BinSpec) -> int:
    """Return the bin index of *value* under *spec*."""
    clipped = _clip(value, spec.min, spec.max)
    bin_size = (spec.max - spec.min) / spec.bins
    return math.floor((clipped - spec.min) / bin_size)


# Accepted camelCase spellings for payloads coming from the dashboard.
_CAMEL_ALIASES: dict[str, str] = {
    "portfolioDelta": "portfolio_delta",
    "portfolioGamma": "portfolio_gamma",
    "portfolioTheta": "portfolio_theta",
    "portfolioVega": "portfolio_vega",
    "totalPositions": "total_positions",
    "cashBalance": "cash_balance",
    "totalPnL": "total_pnl",
    "vixLevel": "vix_level",
    "ivRank": "iv_rank",
    "priceChange": "price_change",
    "volumeRatio": "volume_ratio",
    "positionDelta": "position_delta",
    "positionSize": "position_size",
    "daysToExpiration": "days_to_expiration",
    "profitPercent": "profit_percent",
}


# ---------------------------------------------------------------------------
# RLState
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RLState:
    """Snapshot of portfolio Greeks, account figures and market indicators.

    Attributes:
        portfolio_delta: Net delta of all open positions.
        portfolio_gamma: Net gamma.
        portfolio_theta: Net theta (negative when paying decay).
        portfolio_vega: Net vega.
        total_positions: Number of open positions.
        cash_balance: Available cash.
        total_pnl: Realised P&L in dollars.
        vix_level: Current VIX.
        iv_rank: Implied-volatility rank, 0-100.
        price_change: Underlying price change in percent.
        volume_ratio: Volume relative to its trailing average.
        position_delta: Delta of the position under consideration, if any.
        position_size: Size of that position, if any.
        days_to_expiration: Days until that position expires, if any.
        profit_percent: Unrealised profit of that position in percent, if any.
    """

    portfolio_delta: float
    portfolio_gamma: float
    portfolio_theta: float
    portfolio_vega: float
    total_positions: float
    cash_balance: float
    total_pnl: float
    vix_level: float
    iv_rank: float
    price_change: float
    volume_ratio: float
    position_delta: float | None = None
    position_size: float | None = None
    days_to_expiration: float | None = None
    profit_percent: float | None = None

    def __post_init__(self) -> None:
        for f in fields(self):
            value = getattr(self, f.name)
            if value is not None and not math.isfinite(value):
                raise ValueError(f"{f.name} must be a finite number, got {value!r}")

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RLState":
        """Build a state from snake_case or camelCase keys.

        Unknown keys are ignored; missing required keys raise ``TypeError``.
        """
        known = {f.name for f in fields(cls)}
        kwargs: dict[str, Any] = {}
        for key, value in data.items():
            name = _CAMEL_ALIASES.get(key, key)
            if name in known:
                kwargs[name] = value
        return cls(**kwargs)


# ---------------------------------------------------------------------------
# StateDiscretizer
# ---------------------------------------------------------------------------

# Dimension order defines the order of indices inside a StateKey.
_DIMENSIONS: tuple[tuple[str, Callable[[RLState], float]], ...] = (
    ("delta", lambda s: s.portfolio_delta),
    ("gamma", lambda s: s.portfolio_gamma),
    ("theta", lambda s: s.portfolio_theta),
    ("vega", lambda s: s.portfolio_vega),
    ("positions", lambda s: s.total_positions),
    ("vix", lambda s: s.vix_level),
    ("iv_rank", lambda s: s.iv_rank),
    ("pnl", lambda s: s.total_pnl / 1000.0),
)

DIMENSION_NAMES: tuple[str, ...] = tuple(name for name, _ in _DIMENSIONS)


class StateDiscretizer:
    """Maps an :class:`RLState` onto a hashable :data:`StateKey`.

    The discretizer is stateless apart from its bin layout, so two
    states falling into the same bins always produce equal keys.
    """

    def __init__(self, config: DiscretizerConfig | None = None):
        self.config = config or DiscretizerConfig()
        self._specs: tuple[BinSpec, ...] = tuple(
            getattr(self.config, name) for name in DIMENSION_NAMES
        )

    def discretize(self, state: RLState) -> StateKey:
        return tuple(
            bin_value(extract(state), spec)
            for (_, extract), spec in zip(_DIMENSIONS, self._specs)
        )

    def describe(self, key: StateKey) -> dict[str, int]:
        """Return *key* as a ``{dimension: bin}`` dict for display."""
        return dict(zip(DIMENSION_NAMES, key))
