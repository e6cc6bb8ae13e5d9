"""
Q-learning trainer for the options-portfolio agent.

Every call to :meth:`QLearningTrainer.learn` closes one feedback loop:

1. The transition is scored by the :class:`RewardShaper`.
2. The experience is stored in the replay buffer.
3. One online TD(0) update is applied to the transition itself.
4. Epsilon decays towards its floor.
5. Once the buffer holds at least ``batch_size`` experiences, a batch is
   sampled with replacement and replayed through the same TD rule.

Steps 3 and 5 can be switched off independently through
``AgentConfig.online_update`` / ``AgentConfig.batch_replay``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from greeks_rl.config import AgentConfig
from greeks_rl.rl.actions import ActionKey, RLAction
from greeks_rl.rl.policy import EpsilonGreedyPolicy
from greeks_rl.rl.q_table import QTable
from greeks_rl.rl.replay_buffer import Experience, ExperienceBuffer
from greeks_rl.rl.rewards import RewardShaper
from greeks_rl.rl.state import RLState, StateDiscretizer
from greeks_rl.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class LearnResult:
    """Outcome of one ``learn`` call."""

    reward: float
    td_error: float | None
    replayed: int
    epsilon: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "reward": self.reward,
            "td_error": self.td_error,
            "replayed": self.replayed,
            "epsilon": self.epsilon,
        }


class QLearningTrainer:
    """Applies tabular TD(0) updates from live transitions and replay."""

    def __init__(
        self,
        q_table: QTable,
        buffer: ExperienceBuffer,
        shaper: RewardShaper,
        discretizer: StateDiscretizer,
        policy: EpsilonGreedyPolicy,
        config: AgentConfig,
    ):
        self.q_table = q_table
        self.buffer = buffer
        self.shaper = shaper
        self.discretizer = discretizer
        self.policy = policy
        self.config = config
        self.update_count = 0

    def learn(
        self,
        state: RLState,
        action: RLAction,
        next_state: RLState,
        done: bool = False,
    ) -> LearnResult:
        reward = self.shaper.reward(state, action, next_state)
        experience = Experience(state, action, reward, next_state, done)
        self.buffer.push(experience)

        td_error = self.td_update(experience) if self.config.online_update else None
        epsilon = self.policy.decay_epsilon()

        replayed = 0
        if self.config.batch_replay and self.buffer.size() >= self.config.batch_size:
            replayed = self.train_batch()

        return LearnResult(reward=reward, td_error=td_error, replayed=replayed, epsilon=epsilon)

    def train_batch(self, batch_size: int | None = None) -> int:
        """Replay a sampled batch; returns the number of updates applied."""
        batch = self.buffer.sample_batch(batch_size or self.config.batch_size)
        if not batch:
            return 0

        total_error = 0.0
        for experience in batch:
            total_error += abs(self.td_update(experience))

        logger.debug(
            "batch_replayed",
            batch_size=len(batch),
            mean_abs_td_error=round(total_error / len(batch), 6),
        )
        return len(batch)

    def td_update(self, experience: Experience) -> float:
        """Apply the TD(0) rule for one experience and return the TD error."""
        state_key = self.discretizer.discretize(experience.state)
        current = self.q_table.get_or_create(state_key, ActionKey.from_action(experience.action))

        max_next_q = 0.0
        if not experience.done:
            max_next_q = self.q_table.max_value(self.discretizer.discretize(experience.next_state))

        td_target = experience.reward + self.config.discount_factor * max_next_q
        td_error = td_target - current.value

        current.value += self.config.learning_rate * td_error
        current.visits += 1
        self.update_count += 1
        return td_error
