"""
Experience replay buffer for the options-portfolio Q-learning agent.

Stores transitions (state, action, reward, next_state, done) and supports
uniform sampling *with replacement*: every slot of a batch is an
independent draw, so the same experience may appear more than once.

The buffer uses a fixed-size deque so that old experiences are automatically
evicted when the buffer is full, keeping the training data fresh.
"""

from __future__ import annotations

import random
from collections import Counter, deque
from dataclasses import dataclass
from typing import Any

from greeks_rl.rl.actions import RLAction
from greeks_rl.rl.state import RLState


@dataclass(frozen=True)
class Experience:
    """A single transition recorded after executing an action.

    Attributes:
        state: The observation before acting.
        action: The action that was executed.
        reward: The shaped reward for the transition.
        next_state: The observation after the action.
        done: Whether the trade/episode closed with this transition.
    """

    state: RLState
    action: RLAction
    reward: float
    next_state: RLState
    done: bool = False


class ExperienceBuffer:
    """Fixed-capacity FIFO of experiences with uniform sampling.

    Usage::

        buffer = ExperienceBuffer(capacity=10_000)
        buffer.push(experience)
        batch = buffer.sample_batch(32)
    """

    def __init__(self, capacity: int = 10000, rng: random.Random | None = None) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self.capacity = capacity
        self._rng = rng or random.Random()
        self._buffer: deque[Experience] = deque(maxlen=capacity)

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    def push(self, experience: Experience) -> None:
        """Store an experience, evicting the oldest one when full."""
        self._buffer.append(experience)

    def sample_batch(self, n: int) -> list[Experience]:
        """Draw *n* experiences uniformly at random, with replacement.

        Returns an empty list when the buffer is empty.
        """
        if not self._buffer or n <= 0:
            return []
        size = len(self._buffer)
        return [self._buffer[self._rng.randrange(size)] for _ in range(n)]

    def size(self) -> int:
        """Return the number of experiences currently in the buffer."""
        return len(self._buffer)

    def __len__(self) -> int:
        return len(self._buffer)

    def snapshot(self) -> list[Experience]:
        """Return the stored experiences, oldest first."""
        return list(self._buffer)

    def clear(self) -> None:
        """Remove all experiences from the buffer."""
        self._buffer.clear()

    def get_stats(self) -> dict[str, Any]:
        """Return summary statistics about the buffer contents.

        Returns:
            Dictionary with keys:
            - ``size``: current number of experiences.
            - ``capacity``: maximum buffer capacity.
            - ``utilization_pct``: percentage of capacity used.
            - ``avg_reward``: mean reward across all experiences.
            - ``reward_std``: standard deviation of rewards.
            - ``reward_min``: minimum reward.
            - ``reward_max``: maximum reward.
            - ``action_counts``: number of experiences per action type.
            - ``terminal_count``: experiences that closed a trade.
        """
        if not self._buffer:
            return {
                "size": 0,
                "capacity": self.capacity,
                "utilization_pct": 0.0,
                "avg_reward": 0.0,
                "reward_std": 0.0,
                "reward_min": 0.0,
                "reward_max": 0.0,
                "action_counts": {},
                "terminal_count": 0,
            }

        rewards = [exp.reward for exp in self._buffer]
        n = len(rewards)
        avg_reward = sum(rewards) / n
        variance = sum((r - avg_reward) ** 2 for r in rewards) / n

        return {
            "size": n,
            "capacity": self.capacity,
            "utilization_pct": round(n / self.capacity * 100.0, 2),
            "avg_reward": round(avg_reward, 6),
            "reward_std": round(variance ** 0.5, 6),
            "reward_min": min(rewards),
            "reward_max": max(rewards),
            "action_counts": dict(Counter(exp.action.type.value for exp in self._buffer)),
            "terminal_count": sum(1 for exp in self._buffer if exp.done),
        }
