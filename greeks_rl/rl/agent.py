"""
The options-portfolio Q-learning agent.

:class:`ReinforcementLearningAgent` wires the discretizer, action space,
reward shaper, Q-table, replay buffer, policy, trainer, recommender and
codec together behind one object.  It is constructed explicitly with an
:class:`AgentConfig` and owned by the caller; there is no module-level
instance.

Every public method runs under a single re-entrant lock, so the agent
can be shared between request handlers: mutators (``learn``,
``import_model``) are serialised, and readers never see a value/visits
pair mid-update.
"""

from __future__ import annotations

import random
import threading
from typing import Any

from greeks_rl.config import AgentConfig
from greeks_rl.rl.actions import ActionSpace, RLAction
from greeks_rl.rl.codec import ModelCodec, ModelImportError
from greeks_rl.rl.policy import EpsilonGreedyPolicy
from greeks_rl.rl.q_table import QTable
from greeks_rl.rl.recommender import Recommendation, Recommender
from greeks_rl.rl.replay_buffer import ExperienceBuffer
from greeks_rl.rl.rewards import RewardBreakdown, RewardShaper
from greeks_rl.rl.state import RLState, StateDiscretizer, StateKey
from greeks_rl.rl.trainer import LearnResult, QLearningTrainer
from greeks_rl.utils.logging import get_logger

logger = get_logger(__name__)


class ReinforcementLearningAgent:
    """Tabular Q-learning agent recommending buy/sell/hedge/close/hold.

    Usage::

        agent = ReinforcementLearningAgent(AgentConfig(epsilon=0.2))
        action = agent.select_action(state, explore=True)
        agent.learn(state, action, next_state, done=False)
        rec = agent.recommend(state)
        blob = agent.export_model()
    """

    def __init__(self, config: AgentConfig | None = None, rng: random.Random | None = None):
        self.config = config or AgentConfig()
        self._rng = rng or random.Random()
        self._lock = threading.RLock()

        self.discretizer = StateDiscretizer(self.config.bins)
        self.action_space = ActionSpace(self.config.actions)
        self.shaper = RewardShaper(self.config.reward)
        self.buffer = ExperienceBuffer(self.config.buffer_size, rng=self._rng)
        self.codec = ModelCodec()
        self._install(QTable(), self.config.epsilon)

    def _install(self, q_table: QTable, epsilon: float) -> None:
        """Point every Q-table consumer at *q_table* and set epsilon."""
        self.q_table = q_table
        self.policy = EpsilonGreedyPolicy(
            q_table,
            self.action_space,
            self.discretizer,
            epsilon=epsilon,
            epsilon_decay=self.config.epsilon_decay,
            epsilon_min=self.config.epsilon_min,
            rng=self._rng,
        )
        self.trainer = QLearningTrainer(
            q_table, self.buffer, self.shaper, self.discretizer, self.policy, self.config
        )
        self.recommender = Recommender(self.policy, q_table, self.discretizer)

    @property
    def epsilon(self) -> float:
        return self.policy.epsilon

    # ------------------------------------------------------------------
    # Decision making
    # ------------------------------------------------------------------

    def discretize(self, state: RLState) -> StateKey:
        return self.discretizer.discretize(state)

    def legal_actions(self, state: RLState) -> tuple[RLAction, ...]:
        return self.action_space.legal_actions(state)

    def select_action(self, state: RLState, explore: bool = True) -> RLAction:
        with self._lock:
            return self.policy.select(state, explore=explore)

    def recommend(self, state: RLState) -> Recommendation:
        with self._lock:
            return self.recommender.recommend(state)

    def reward_breakdown(self, state: RLState, action: RLAction, next_state: RLState) -> RewardBreakdown:
        return self.shaper.breakdown(state, action, next_state)

    # ------------------------------------------------------------------
    # Learning
    # ------------------------------------------------------------------

    def learn(
        self,
        state: RLState,
        action: RLAction,
        next_state: RLState,
        done: bool = False,
    ) -> LearnResult:
        """Record an executed transition and update the Q-table."""
        if not self.action_space.is_legal(state, action):
            logger.debug("learning_from_illegal_action", action=action.to_dict())
        with self._lock:
            return self.trainer.learn(state, action, next_state, done)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def export_model(self) -> str:
        with self._lock:
            blob = self.codec.encode(
                self.q_table,
                self.policy.epsilon,
                self.buffer.size(),
                hyperparameters=self.config.model_dump(mode="json"),
            )
            logger.info("model_exported", states=len(self.q_table), epsilon=self.policy.epsilon)
            return blob

    def import_model(self, blob: str) -> None:
        """Replace the Q-table and epsilon with the contents of *blob*.

        The imported epsilon is raised to ``epsilon_min`` if it sits below
        the floor; a legacy blob without one keeps the current epsilon.

        Raises:
            ModelImportError: If the blob is invalid; the agent is left
                exactly as it was.
        """
        try:
            decoded = self.codec.decode(blob, fallback_epsilon=self.policy.epsilon)
        except ModelImportError as exc:
            logger.warning("model_import_rejected", error=str(exc))
            raise

        epsilon = max(self.config.epsilon_min, decoded.epsilon)
        with self._lock:
            self._install(decoded.q_table, epsilon)

        logger.info(
            "model_imported",
            states=len(decoded.q_table),
            epsilon=epsilon,
            format_version=decoded.format_version,
        )

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def get_statistics(self) -> dict[str, Any]:
        with self._lock:
            return {
                "total_states": len(self.q_table),
                "total_experiences": self.buffer.size(),
                "epsilon": self.policy.epsilon,
                "avg_q_value": self.q_table.average_value(),
                "learned_actions": self.q_table.entry_count(),
                "td_updates": self.trainer.update_count,
                "buffer": self.buffer.get_stats(),
            }
