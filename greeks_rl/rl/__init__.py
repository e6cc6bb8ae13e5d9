"""Reinforcement learning core of the options decision agent.

Key components:

- :class:`StateDiscretizer` -- Maps a continuous :class:`RLState` to a bin key.
- :class:`ActionSpace` -- Enumerates legal actions for a portfolio state.
- :class:`RewardShaper` -- Computes the shaped reward for a transition.
- :class:`QTable` -- Sparse (state, action) value store.
- :class:`ExperienceBuffer` -- Bounded replay buffer with uniform sampling.
- :class:`EpsilonGreedyPolicy` -- Exploring / greedy action selection.
- :class:`QLearningTrainer` -- TD(0) updates, online and from replay.
- :class:`Recommender` -- Greedy action with confidence and explanation.
- :class:`ModelCodec` -- Versioned snapshot export/import.
- :class:`ReinforcementLearningAgent` -- Lock-guarded facade over all of the above.
"""

from greeks_rl.rl.state import RLState, StateDiscretizer
from greeks_rl.rl.actions import ActionKey, ActionSpace, ActionType, RLAction
from greeks_rl.rl.rewards import RewardBreakdown, RewardShaper
from greeks_rl.rl.q_table import QTable, QValue
from greeks_rl.rl.replay_buffer import Experience, ExperienceBuffer
from greeks_rl.rl.policy import EpsilonGreedyPolicy
from greeks_rl.rl.trainer import LearnResult, QLearningTrainer
from greeks_rl.rl.recommender import Recommendation, Recommender
from greeks_rl.rl.codec import ModelCodec, ModelImportError
from greeks_rl.rl.agent import ReinforcementLearningAgent

__all__ = [
    "RLState",
    "StateDiscretizer",
    "ActionKey",
    "ActionSpace",
    "ActionType",
    "RLAction",
    "RewardBreakdown",
    "RewardShaper",
    "QTable",
    "QValue",
    "Experience",
    "ExperienceBuffer",
    "EpsilonGreedyPolicy",
    "LearnResult",
    "QLearningTrainer",
    "Recommendation",
    "Recommender",
    "ModelCodec",
    "ModelImportError",
    "ReinforcementLearningAgent",
]
