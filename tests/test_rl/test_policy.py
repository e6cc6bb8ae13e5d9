"""
Tests for the EpsilonGreedyPolicy.
"""

import random

from greeks_rl.rl.actions import ActionKey, ActionSpace, ActionType, RLAction
from greeks_rl.rl.policy import EpsilonGreedyPolicy
from greeks_rl.rl.q_table import QTable
from greeks_rl.rl.state import StateDiscretizer


class TestGreedySelection:
    """Test exploitation against a hand-seeded Q-table."""

    def setup_method(self):
        self.table = QTable()
        self.space = ActionSpace()
        self.discretizer = StateDiscretizer()
        self.policy = EpsilonGreedyPolicy(
            self.table, self.space, self.discretizer, epsilon=0.0, rng=random.Random(0)
        )

    def _seed(self, state, action, value):
        key = self.discretizer.discretize(state)
        self.table.get_or_create(key, ActionKey.from_action(action)).value = value

    def test_unseen_state_returns_hold(self, state_factory):
        state = state_factory(portfolio_delta=150.0)
        assert self.policy.select(state, explore=False) == RLAction.hold()

    def test_picks_seeded_best_action(self, state_factory):
        state = state_factory(portfolio_delta=150.0)
        legal = self.space.legal_actions(state)
        target = RLAction(ActionType.HEDGE, 100.0)
        for action in legal:
            self._seed(state, action, 0.0)
        self._seed(state, target, 10.0)

        assert self.policy.select(state, explore=False) == target

    def test_unvisited_actions_count_as_zero(self, state_factory):
        state = state_factory()
        self._seed(state, RLAction.hold(), -5.0)

        legal = self.space.legal_actions(state)
        assert self.policy.select(state, explore=False) == legal[1]

    def test_ties_resolved_by_enumeration_order(self, state_factory):
        state = state_factory()
        legal = self.space.legal_actions(state)
        # legal[8] is sell 25%, legal[10] is sell 50%
        self._seed(state, legal[8], 2.0)
        self._seed(state, legal[10], 2.0)

        assert self.policy.select(state, explore=False) == legal[8]

    def test_all_zero_row_prefers_hold(self, state_factory):
        state = state_factory()
        self._seed(state, RLAction(ActionType.SELL, 50.0), 0.0)
        assert self.policy.select(state, explore=False) == RLAction.hold()

    def test_illegal_actions_are_never_chosen(self, state_factory):
        state = state_factory(cash_balance=100.0)
        self._seed(state, RLAction(ActionType.BUY, 25.0), 50.0)
        self._seed(state, RLAction.hold(), 1.0)

        assert self.policy.select(state, explore=False) == RLAction.hold()

    def test_explore_false_ignores_epsilon(self, state_factory):
        self.policy.epsilon = 1.0
        state = state_factory()
        self._seed(state, RLAction(ActionType.SELL, 75.0), 3.0)
        for _ in range(20):
            assert self.policy.select(state, explore=False) == RLAction(ActionType.SELL, 75.0)


class TestExploration:
    """Test the random branch of the policy."""

    def test_full_exploration_returns_legal_actions(self, state_factory):
        space = ActionSpace()
        policy = EpsilonGreedyPolicy(QTable(), space, StateDiscretizer(), epsilon=1.0, rng=random.Random(5))
        state = state_factory(total_positions=0, portfolio_delta=0.0)
        legal = set(space.legal_actions(state))

        chosen = {policy.select(state, explore=True) for _ in range(200)}
        assert chosen <= legal
        assert len(chosen) > 1

    def test_zero_epsilon_never_explores(self, state_factory):
        policy = EpsilonGreedyPolicy(QTable(), ActionSpace(), StateDiscretizer(), epsilon=0.0)
        for _ in range(50):
            assert policy.select(state_factory(), explore=True) == RLAction.hold()


class TestEpsilonDecay:
    """Test the exploration schedule."""

    def test_decay_and_floor(self):
        policy = EpsilonGreedyPolicy(
            QTable(), ActionSpace(), StateDiscretizer(),
            epsilon=0.1, epsilon_decay=0.5, epsilon_min=0.02,
        )
        assert policy.decay_epsilon() == 0.05
        assert policy.decay_epsilon() == 0.025
        assert policy.decay_epsilon() == 0.02
        assert policy.decay_epsilon() == 0.02
