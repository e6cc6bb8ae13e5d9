"""Persisted snapshots of the learned Q-table.

Each row holds one export blob together with a few columns pulled out
of it so snapshots can be listed without decoding the payload.
"""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, Float, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from greeks_rl.models.base import Base


class RLModelSnapshot(Base):
    """A stored export of the agent's Q-table and exploration rate."""

    __tablename__ = "rl_model_snapshots"

    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    algorithm: Mapped[str] = mapped_column(String(64), nullable=False, default="q_learning")
    format_version: Mapped[int] = mapped_column(Integer, nullable=False)
    epsilon: Mapped[float] = mapped_column(Float, nullable=False)
    total_states: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    experience_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    payload: Mapped[str] = mapped_column(Text, nullable=False)
    hyperparameters: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    exported_at: Mapped[datetime] = mapped_column(nullable=False, index=True)

    def __repr__(self) -> str:
        return (
            f"<RLModelSnapshot(id={self.id!r}, name={self.name!r}, "
            f"total_states={self.total_states!r}, epsilon={self.epsilon!r})>"
        )
