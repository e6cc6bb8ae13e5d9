"""Epsilon-greedy action selection over the Q-table."""

from __future__ import annotations

import random

from greeks_rl.rl.actions import ActionKey, ActionSpace, RLAction
from greeks_rl.rl.q_table import QTable
from greeks_rl.rl.state import RLState, StateDiscretizer


class EpsilonGreedyPolicy:
    """Chooses actions from the legal set, exploring with probability epsilon.

    Greedy choice scores each legal action by its stored value (0 when
    the pair was never visited) and keeps the first maximum in
    enumeration order.  A state with no Q-table row at all yields
    ``hold``.
    """

    def __init__(
        self,
        q_table: QTable,
        action_space: ActionSpace,
        discretizer: StateDiscretizer,
        epsilon: float = 0.1,
        epsilon_decay: float = 0.995,
        epsilon_min: float = 0.01,
        rng: random.Random | None = None,
    ):
        self.q_table = q_table
        self.action_space = action_space
        self.discretizer = discretizer
        self.epsilon = epsilon
        self.epsilon_decay = epsilon_decay
        self.epsilon_min = epsilon_min
        self._rng = rng or random.Random()

    def select(self, state: RLState, explore: bool = True) -> RLAction:
        legal = self.action_space.legal_actions(state)

        if explore and self._rng.random() < self.epsilon:
            return self._rng.choice(legal)

        return self.greedy(state, legal)

    def greedy(self, state: RLState, legal: tuple[RLAction, ...] | None = None) -> RLAction:
        if legal is None:
            legal = self.action_space.legal_actions(state)

        row = self.q_table.row(self.discretizer.discretize(state))
        if not row:
            return RLAction.hold()

        best_action = legal[0]
        best_value = float("-inf")
        for action in legal:
            q = row.get(ActionKey.from_action(action))
            value = q.value if q is not None else 0.0
            if value > best_value:
                best_value = value
                best_action = action
        return best_action

    def decay_epsilon(self) -> float:
        self.epsilon = max(self.epsilon_min, self.epsilon * self.epsilon_decay)
        return self.epsilon
