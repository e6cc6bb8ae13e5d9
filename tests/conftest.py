"""
Pytest configuration and shared fixtures for the agent tests.
"""

import random

import pytest

from greeks_rl.config import AgentConfig
from greeks_rl.rl.agent import ReinforcementLearningAgent
from greeks_rl.rl.state import RLState


def make_state(**overrides) -> RLState:
    """A calm, mid-grid portfolio state; override any field by keyword."""
    values = dict(
        portfolio_delta=10.0,
        portfolio_gamma=5.0,
        portfolio_theta=-50.0,
        portfolio_vega=20.0,
        total_positions=3,
        cash_balance=50_000.0,
        total_pnl=1_000.0,
        vix_level=18.0,
        iv_rank=45.0,
        price_change=0.5,
        volume_ratio=1.1,
    )
    values.update(overrides)
    return RLState(**values)


@pytest.fixture
def state_factory():
    return make_state


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def agent(rng):
    return ReinforcementLearningAgent(AgentConfig(), rng=rng)
