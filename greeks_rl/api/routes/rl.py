"""
RL agent API routes.

Exposes the Q-learning agent to the dashboard: greedy recommendations,
the learn-from-trade feedback loop, statistics, and model export/import
(both as raw blobs and as stored database snapshots).

The agent instance lives on ``app.state.rl_agent``; handlers receive it
through :func:`get_agent`.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import AliasChoices, BaseModel, Field, model_validator
from sqlalchemy.ext.asyncio import AsyncSession

from greeks_rl.models.base import get_session
from greeks_rl.models.rl import RLModelSnapshot
from greeks_rl.rl.actions import ActionType, RLAction
from greeks_rl.rl.agent import ReinforcementLearningAgent
from greeks_rl.rl.codec import ModelImportError
from greeks_rl.rl.state import RLState
from greeks_rl.services import model_store
from greeks_rl.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()


def get_agent(request: Request) -> ReinforcementLearningAgent:
    return request.app.state.rl_agent


def get_model_name(request: Request) -> str:
    return request.app.state.rl_model_name


def _field(snake: str, camel: str, **kwargs: Any) -> Any:
    """Finite float field accepting the snake_case or the dashboard's camelCase key."""
    return Field(validation_alias=AliasChoices(snake, camel), allow_inf_nan=False, **kwargs)


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------


class StateIn(BaseModel):
    portfolio_delta: float = _field("portfolio_delta", "portfolioDelta")
    portfolio_gamma: float = _field("portfolio_gamma", "portfolioGamma")
    portfolio_theta: float = _field("portfolio_theta", "portfolioTheta")
    portfolio_vega: float = _field("portfolio_vega", "portfolioVega")
    total_positions: float = _field("total_positions", "totalPositions", ge=0)
    cash_balance: float = _field("cash_balance", "cashBalance")
    total_pnl: float = _field("total_pnl", "totalPnL")
    vix_level: float = _field("vix_level", "vixLevel")
    iv_rank: float = _field("iv_rank", "ivRank")
    price_change: float = _field("price_change", "priceChange")
    volume_ratio: float = _field("volume_ratio", "volumeRatio")
    position_delta: Optional[float] = _field("position_delta", "positionDelta", default=None)
    position_size: Optional[float] = _field("position_size", "positionSize", default=None)
    days_to_expiration: Optional[float] = _field(
        "days_to_expiration", "daysToExpiration", default=None
    )
    profit_percent: Optional[float] = _field("profit_percent", "profitPercent", default=None)

    def to_state(self) -> RLState:
        return RLState(**self.model_dump())


class ActionIn(BaseModel):
    type: ActionType
    size_percent: float = _field("size_percent", "sizePercent", default=0.0, ge=0.0, le=100.0)
    symbol: Optional[str] = None

    @model_validator(mode="after")
    def _hold_has_no_size(self) -> "ActionIn":
        if self.type is ActionType.HOLD and self.size_percent != 0.0:
            raise ValueError("hold actions carry size_percent = 0")
        return self

    def to_action(self) -> RLAction:
        return RLAction(self.type, self.size_percent, self.symbol)


class RecommendRequest(BaseModel):
    state: StateIn


class LearnRequest(BaseModel):
    state: StateIn
    action: ActionIn
    next_state: StateIn = Field(validation_alias=AliasChoices("next_state", "nextState"))
    done: bool = False


class ActionOut(BaseModel):
    type: str
    size_percent: float
    symbol: Optional[str] = None


class RecommendationOut(BaseModel):
    action: ActionOut
    confidence: float = Field(..., description="0-100")
    q_value: float
    visits: int
    explanation: str
    state_bins: dict[str, int]


class RecommendResponse(BaseModel):
    recommendation: RecommendationOut
    timestamp: str


class AgentStats(BaseModel):
    total_states: int
    total_experiences: int
    epsilon: float
    avg_q_value: float
    learned_actions: int
    td_updates: int
    buffer: dict[str, Any]


class LearnResponse(BaseModel):
    success: bool
    reward: float
    reward_components: dict[str, float]
    td_error: Optional[float] = None
    replayed: int
    epsilon: float
    stats: AgentStats
    message: str


class ModelBlob(BaseModel):
    blob: str


class ModelImportResponse(BaseModel):
    success: bool
    total_states: int
    epsilon: float


class SnapshotOut(BaseModel):
    id: str
    name: str
    format_version: int
    epsilon: float
    total_states: int
    experience_count: int
    exported_at: str

    @classmethod
    def from_model(cls, snapshot: RLModelSnapshot) -> "SnapshotOut":
        return cls(
            id=snapshot.id,
            name=snapshot.name,
            format_version=snapshot.format_version,
            epsilon=snapshot.epsilon,
            total_states=snapshot.total_states,
            experience_count=snapshot.experience_count,
            exported_at=snapshot.exported_at.isoformat(),
        )


# ---------------------------------------------------------------------------
# Decision endpoints
# ---------------------------------------------------------------------------


@router.post("/recommend", response_model=RecommendResponse)
async def recommend(
    body: RecommendRequest,
    agent: ReinforcementLearningAgent = Depends(get_agent),
):
    """Get the greedy action, its confidence and rationale for a state."""
    rec = agent.recommend(body.state.to_state())
    return RecommendResponse(
        recommendation=RecommendationOut(**rec.to_dict()),
        timestamp=datetime.now(timezone.utc).isoformat(),
    )


@router.post("/learn", response_model=LearnResponse)
async def learn(
    body: LearnRequest,
    agent: ReinforcementLearningAgent = Depends(get_agent),
):
    """Feed an executed trade's before/after states back to the agent."""
    state = body.state.to_state()
    next_state = body.next_state.to_state()
    action = body.action.to_action()

    result = agent.learn(state, action, next_state, done=body.done)
    breakdown = agent.reward_breakdown(state, action, next_state)

    return LearnResponse(
        success=True,
        reward=result.reward,
        reward_components=breakdown.components,
        td_error=result.td_error,
        replayed=result.replayed,
        epsilon=result.epsilon,
        stats=AgentStats(**agent.get_statistics()),
        message="Experience recorded and agent updated",
    )


@router.get("/stats", response_model=AgentStats)
async def get_stats(agent: ReinforcementLearningAgent = Depends(get_agent)):
    """Get Q-table, exploration and replay-buffer statistics."""
    return AgentStats(**agent.get_statistics())


# ---------------------------------------------------------------------------
# Model persistence endpoints
# ---------------------------------------------------------------------------


@router.get("/model", response_model=ModelBlob)
async def export_model(agent: ReinforcementLearningAgent = Depends(get_agent)):
    """Export the learned Q-table and epsilon as a versioned blob."""
    return ModelBlob(blob=agent.export_model())


@router.put("/model", response_model=ModelImportResponse)
async def import_model(
    body: ModelBlob,
    agent: ReinforcementLearningAgent = Depends(get_agent),
):
    """Replace the learned state with an exported blob."""
    try:
        agent.import_model(body.blob)
    except ModelImportError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    stats = agent.get_statistics()
    return ModelImportResponse(
        success=True,
        total_states=stats["total_states"],
        epsilon=stats["epsilon"],
    )


@router.post("/model/snapshots", response_model=SnapshotOut, status_code=201)
async def save_snapshot(
    agent: ReinforcementLearningAgent = Depends(get_agent),
    name: str = Depends(get_model_name),
    session: AsyncSession = Depends(get_session),
):
    """Persist the current model to the database."""
    snapshot = await model_store.save_snapshot(session, agent, name)
    return SnapshotOut.from_model(snapshot)


@router.get("/model/snapshots", response_model=list[SnapshotOut])
async def list_snapshots(
    limit: int = Query(20, ge=1, le=200),
    name: str = Depends(get_model_name),
    session: AsyncSession = Depends(get_session),
):
    """List stored snapshots, newest first."""
    snapshots = await model_store.list_snapshots(session, name, limit=limit)
    return [SnapshotOut.from_model(s) for s in snapshots]


@router.post("/model/snapshots/restore", response_model=SnapshotOut)
async def restore_snapshot(
    agent: ReinforcementLearningAgent = Depends(get_agent),
    name: str = Depends(get_model_name),
    session: AsyncSession = Depends(get_session),
):
    """Load the newest stored snapshot into the running agent."""
    try:
        snapshot = await model_store.restore_latest(session, agent, name)
    except ModelImportError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    if snapshot is None:
        raise HTTPException(status_code=404, detail=f"No snapshot stored for '{name}'")
    return SnapshotOut.from_model(snapshot)
