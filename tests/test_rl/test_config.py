"""
Tests for agent hyperparameter validation and settings.
"""

import pytest
from pydantic import ValidationError

from greeks_rl.config import ActionConfig, AgentConfig, BinSpec, Settings


class TestAgentConfig:
    """Test hyperparameter validation at construction time."""

    def test_defaults(self):
        config = AgentConfig()
        assert config.learning_rate == 0.001
        assert config.discount_factor == 0.95
        assert config.epsilon == 0.1
        assert config.epsilon_decay == 0.995
        assert config.epsilon_min == 0.01
        assert config.buffer_size == 10000
        assert config.batch_size == 32
        assert config.online_update and config.batch_replay

    @pytest.mark.parametrize(
        "overrides",
        [
            {"epsilon": 1.5},
            {"epsilon": -0.1},
            {"discount_factor": 1.1},
            {"learning_rate": 0.0},
            {"learning_rate": 2.0},
            {"epsilon_decay": 0.0},
            {"buffer_size": 0},
            {"batch_size": 0},
            {"epsilon": 0.05, "epsilon_min": 0.1},
        ],
    )
    def test_invalid_values_rejected(self, overrides):
        with pytest.raises(ValidationError):
            AgentConfig(**overrides)

    def test_nested_groups_accept_dicts(self):
        config = AgentConfig(reward={"hedge_bonus": 2.0}, actions={"max_positions": 4})
        assert config.reward.hedge_bonus == 2.0
        assert config.actions.max_positions == 4


class TestBinSpec:
    """Test bin layout validation."""

    def test_inverted_range_rejected(self):
        with pytest.raises(ValidationError):
            BinSpec(min=10, max=-10, bins=4)

    def test_zero_bins_rejected(self):
        with pytest.raises(ValidationError):
            BinSpec(min=0, max=10, bins=0)


class TestActionConfig:
    """Test action size validation."""

    @pytest.mark.parametrize("field", ["size_steps", "hedge_sizes"])
    def test_sizes_must_be_percentages(self, field):
        with pytest.raises(ValidationError):
            ActionConfig(**{field: (10, 150)})


class TestSettings:
    """Test environment-driven settings."""

    def test_agent_config_from_settings(self):
        settings = Settings(rl_learning_rate=0.05, rl_epsilon=0.2, rl_batch_size=8)
        config = settings.agent_config()
        assert config.learning_rate == 0.05
        assert config.epsilon == 0.2
        assert config.batch_size == 8

    def test_small_epsilon_lowers_floor(self):
        config = Settings(rl_epsilon=0.005).agent_config()
        assert config.epsilon_min == 0.005

    def test_database_url_normalised(self):
        settings = Settings(database_url="postgres://u:p@db:5432/greeks")
        assert settings.database_url == "postgresql+asyncpg://u:p@db:5432/greeks"

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("RL_MODEL_NAME", "desk_agent")
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")
        settings = Settings()
        assert settings.rl_model_name == "desk_agent"
        assert settings.log_level == "DEBUG"
