"""
Tests for snapshot persistence.
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from greeks_rl.models import base as db_base
from greeks_rl.models.base import Base
from greeks_rl.models.rl import RLModelSnapshot
from greeks_rl.rl.actions import RLAction
from greeks_rl.rl.agent import ReinforcementLearningAgent
from greeks_rl.rl.codec import FORMAT_VERSION, ModelImportError
from greeks_rl.services import model_store


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'store.db'}")
    yield engine
    await engine.dispose()


@pytest.fixture
async def session(engine):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = async_sessionmaker(engine, expire_on_commit=False)
    async with factory() as session:
        yield session


def learned_agent(state_factory, steps=3):
    agent = ReinforcementLearningAgent()
    for pnl in range(steps):
        state = state_factory(total_pnl=pnl * 10_000.0)
        agent.learn(state, RLAction.hold(), state)
    return agent


class TestSaveSnapshot:
    async def test_save_records_summary_columns(self, session, state_factory):
        agent = learned_agent(state_factory)

        snapshot = await model_store.save_snapshot(session, agent, "desk")

        assert snapshot.id
        assert snapshot.name == "desk"
        assert snapshot.algorithm == "q_learning"
        assert snapshot.format_version == FORMAT_VERSION
        assert snapshot.total_states == len(agent.q_table)
        assert snapshot.experience_count == 3
        assert snapshot.hyperparameters["discount_factor"] == 0.95

    async def test_exported_at_is_naive_utc(self, session, state_factory):
        before = datetime.now(timezone.utc).replace(tzinfo=None)
        snapshot = await model_store.save_snapshot(session, learned_agent(state_factory), "desk")
        after = datetime.now(timezone.utc).replace(tzinfo=None)

        assert snapshot.exported_at.tzinfo is None
        assert before <= snapshot.exported_at <= after

    async def test_list_is_newest_first_and_filtered(self, session, state_factory):
        agent = learned_agent(state_factory)
        first = await model_store.save_snapshot(session, agent, "desk")
        first.exported_at = first.exported_at - timedelta(minutes=5)
        await session.flush()
        second = await model_store.save_snapshot(session, agent, "desk")
        await model_store.save_snapshot(session, agent, "other")

        snapshots = await model_store.list_snapshots(session, "desk")

        assert [s.id for s in snapshots] == [second.id, first.id]
        assert len(await model_store.list_snapshots(session, "desk", limit=1)) == 1


class TestRestore:
    async def test_restore_latest(self, session, state_factory):
        source = learned_agent(state_factory)
        await model_store.save_snapshot(session, source, "desk")

        target = ReinforcementLearningAgent()
        restored = await model_store.restore_latest(session, target, "desk")

        assert restored is not None
        assert len(target.q_table) == len(source.q_table)
        assert target.epsilon == pytest.approx(source.epsilon)

    async def test_restore_missing_returns_none(self, session):
        agent = ReinforcementLearningAgent()
        assert await model_store.restore_latest(session, agent, "nothing") is None

    async def test_corrupt_payload_raises_and_keeps_agent(self, session, state_factory):
        agent = learned_agent(state_factory)
        before = len(agent.q_table)
        session.add(
            RLModelSnapshot(
                name="desk",
                format_version=FORMAT_VERSION,
                epsilon=0.1,
                payload="garbage",
                exported_at=datetime.now(timezone.utc).replace(tzinfo=None),
            )
        )
        await session.flush()

        with pytest.raises(ModelImportError):
            await model_store.restore_latest(session, agent, "desk")
        assert len(agent.q_table) == before


class TestInitDb:
    async def test_init_db_marks_ready(self, engine, monkeypatch):
        monkeypatch.setattr(db_base, "db_ready", False)
        await db_base.init_db(engine, retries=1)
        assert db_base.db_ready is True
