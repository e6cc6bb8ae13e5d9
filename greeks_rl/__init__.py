"""Q-learning decision agent for options portfolio management."""

__version__ = "0.1.0"
