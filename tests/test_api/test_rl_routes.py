"""
Tests for the RL agent HTTP routes.
"""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from greeks_rl.config import AgentConfig
from greeks_rl.main import create_app
from greeks_rl.models.base import Base, get_session
from greeks_rl.rl.agent import ReinforcementLearningAgent

STATE = {
    "portfolioDelta": 10.0,
    "portfolioGamma": 5.0,
    "portfolioTheta": -50.0,
    "portfolioVega": 20.0,
    "totalPositions": 3,
    "cashBalance": 50000.0,
    "totalPnL": 1000.0,
    "vixLevel": 18.0,
    "ivRank": 45.0,
    "priceChange": 0.5,
    "volumeRatio": 1.1,
}

NEXT_STATE = {**STATE, "totalPnL": 1500.0}


@pytest.fixture
def api_agent():
    return ReinforcementLearningAgent(AgentConfig(learning_rate=0.5))


@pytest.fixture
def client(api_agent, tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'api.db'}", poolclass=NullPool)
    factory = async_sessionmaker(engine, expire_on_commit=False)

    async def override_session():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        async with factory() as session:
            yield session
            await session.commit()

    app = create_app(api_agent, init_database=False, model_name="test_agent")
    app.dependency_overrides[get_session] = override_session
    with TestClient(app) as test_client:
        yield test_client


class TestHealth:
    def test_health(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"


class TestRecommendRoute:
    """Test POST /api/rl/recommend."""

    def test_camel_case_state(self, client):
        response = client.post("/api/rl/recommend", json={"state": STATE})

        assert response.status_code == 200
        rec = response.json()["recommendation"]
        assert rec["action"]["type"] == "hold"
        assert rec["confidence"] == 0.0
        assert set(rec["state_bins"]) == {
            "delta", "gamma", "theta", "vega", "positions", "vix", "iv_rank", "pnl",
        }

    def test_snake_case_state(self, client):
        state = {
            "portfolio_delta": 10.0,
            "portfolio_gamma": 5.0,
            "portfolio_theta": -50.0,
            "portfolio_vega": 20.0,
            "total_positions": 3,
            "cash_balance": 50000.0,
            "total_pnl": 1000.0,
            "vix_level": 18.0,
            "iv_rank": 45.0,
            "price_change": 0.5,
            "volume_ratio": 1.1,
        }
        response = client.post("/api/rl/recommend", json={"state": state})
        assert response.status_code == 200

    def test_missing_field_is_422(self, client):
        state = {k: v for k, v in STATE.items() if k != "vixLevel"}
        response = client.post("/api/rl/recommend", json={"state": state})
        assert response.status_code == 422


class TestLearnRoute:
    """Test POST /api/rl/learn."""

    def test_learn_updates_agent(self, client, api_agent):
        body = {
            "state": STATE,
            "action": {"type": "sell", "sizePercent": 50},
            "nextState": NEXT_STATE,
            "done": False,
        }
        response = client.post("/api/rl/learn", json=body)

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["reward_components"]["profit"] == 500.0
        assert data["reward"] == pytest.approx(sum(data["reward_components"].values()))
        assert data["stats"]["td_updates"] == 1
        assert data["stats"]["total_experiences"] == 1
        assert api_agent.get_statistics()["learned_actions"] == 1

    def test_hold_with_size_is_422(self, client):
        body = {
            "state": STATE,
            "action": {"type": "hold", "size_percent": 10},
            "next_state": NEXT_STATE,
        }
        assert client.post("/api/rl/learn", json=body).status_code == 422

    def test_unknown_action_type_is_422(self, client):
        body = {"state": STATE, "action": {"type": "teleport"}, "nextState": NEXT_STATE}
        assert client.post("/api/rl/learn", json=body).status_code == 422

    @pytest.mark.parametrize("bad", ["inf", "-inf", "nan"])
    def test_non_finite_number_is_422(self, client, api_agent, bad):
        body = {
            "state": {**STATE, "cashBalance": bad},
            "action": {"type": "sell", "sizePercent": 50},
            "nextState": NEXT_STATE,
        }
        assert client.post("/api/rl/learn", json=body).status_code == 422
        assert api_agent.get_statistics()["td_updates"] == 0
        assert client.get("/api/rl/model").status_code == 200

    def test_stats(self, client):
        response = client.get("/api/rl/stats")
        assert response.status_code == 200
        assert response.json()["total_states"] == 0


class TestModelRoutes:
    """Test blob export/import and stored snapshots."""

    def _learn_once(self, client):
        body = {"state": STATE, "action": {"type": "hold"}, "nextState": NEXT_STATE}
        assert client.post("/api/rl/learn", json=body).status_code == 200

    def test_export_then_import(self, client):
        self._learn_once(client)
        blob = client.get("/api/rl/model").json()["blob"]

        other = create_app(ReinforcementLearningAgent(), init_database=False)
        with TestClient(other) as other_client:
            response = other_client.put("/api/rl/model", json={"blob": blob})

        assert response.status_code == 200
        assert response.json()["total_states"] == 1

    def test_invalid_blob_is_400(self, client, api_agent):
        self._learn_once(client)
        response = client.put("/api/rl/model", json={"blob": "{not json"})

        assert response.status_code == 400
        assert api_agent.get_statistics()["total_states"] == 1

    def test_restore_without_snapshot_is_404(self, client):
        response = client.post("/api/rl/model/snapshots/restore")
        assert response.status_code == 404

    def test_save_list_restore(self, client, api_agent):
        self._learn_once(client)

        saved = client.post("/api/rl/model/snapshots")
        assert saved.status_code == 201
        assert saved.json()["name"] == "test_agent"
        assert saved.json()["total_states"] == 1

        listed = client.get("/api/rl/model/snapshots")
        assert listed.status_code == 200
        assert [s["id"] for s in listed.json()] == [saved.json()["id"]]

        api_agent.import_model(ReinforcementLearningAgent().export_model())
        assert api_agent.get_statistics()["total_states"] == 0

        restored = client.post("/api/rl/model/snapshots/restore")
        assert restored.status_code == 200
        assert restored.json()["id"] == saved.json()["id"]
        assert api_agent.get_statistics()["total_states"] == 1
