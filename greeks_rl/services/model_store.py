"""
Database storage for agent snapshots.

The agent core never touches the database; this module moves export
blobs between an agent and the ``rl_model_snapshots`` table through a
caller-supplied :class:`AsyncSession`.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from greeks_rl.models.rl import RLModelSnapshot
from greeks_rl.rl.agent import ReinforcementLearningAgent
from greeks_rl.rl.codec import FORMAT_VERSION
from greeks_rl.utils.logging import get_logger

logger = get_logger(__name__)


async def save_snapshot(
    session: AsyncSession,
    agent: ReinforcementLearningAgent,
    name: str,
) -> RLModelSnapshot:
    """Export *agent* and store the blob under *name*."""
    blob = agent.export_model()
    stats = agent.get_statistics()

    snapshot = RLModelSnapshot(
        name=name,
        format_version=FORMAT_VERSION,
        epsilon=stats["epsilon"],
        total_states=stats["total_states"],
        experience_count=stats["total_experiences"],
        payload=blob,
        hyperparameters=agent.config.model_dump(mode="json"),
        # Naive UTC; the column is TIMESTAMP WITHOUT TIME ZONE
        exported_at=datetime.now(timezone.utc).replace(tzinfo=None),
    )
    session.add(snapshot)
    await session.flush()

    logger.info("snapshot_saved", name=name, snapshot_id=snapshot.id, states=snapshot.total_states)
    return snapshot


async def list_snapshots(
    session: AsyncSession,
    name: str,
    limit: int = 20,
) -> list[RLModelSnapshot]:
    """Return stored snapshots for *name*, newest first."""
    result = await session.execute(
        select(RLModelSnapshot)
        .where(RLModelSnapshot.name == name)
        .order_by(RLModelSnapshot.exported_at.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def load_latest_snapshot(session: AsyncSession, name: str) -> RLModelSnapshot | None:
    snapshots = await list_snapshots(session, name, limit=1)
    return snapshots[0] if snapshots else None


async def restore_latest(
    session: AsyncSession,
    agent: ReinforcementLearningAgent,
    name: str,
) -> RLModelSnapshot | None:
    """Import the newest snapshot for *name* into *agent*.

    Returns the snapshot that was applied, or ``None`` if none exists.
    Raises :class:`~greeks_rl.rl.codec.ModelImportError` if the stored
    payload is unreadable; the agent is left unchanged in that case.
    """
    snapshot = await load_latest_snapshot(session, name)
    if snapshot is None:
        logger.info("snapshot_not_found", name=name)
        return None

    agent.import_model(snapshot.payload)
    logger.info("snapshot_restored", name=name, snapshot_id=snapshot.id)
    return snapshot
