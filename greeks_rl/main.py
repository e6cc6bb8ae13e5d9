from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from greeks_rl import __version__
from greeks_rl.api.routes import rl
from greeks_rl.config import settings
from greeks_rl.models import base as db_base
from greeks_rl.rl.agent import ReinforcementLearningAgent
from greeks_rl.rl.codec import ModelImportError
from greeks_rl.services.model_store import restore_latest
from greeks_rl.utils.logging import configure_logging, get_logger

logger = get_logger(__name__)


def create_app(
    agent: ReinforcementLearningAgent | None = None,
    init_database: bool = True,
    model_name: str | None = None,
) -> FastAPI:
    """Build the API around an explicitly constructed agent.

    Args:
        agent: Agent to serve.  A fresh one is built from ``settings``
            when omitted.
        init_database: Create tables and restore the newest snapshot on
            startup.  Disable for tests that supply their own session.
        model_name: Snapshot name used for save/restore.
    """
    configure_logging(settings.log_level, settings.log_json)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if init_database:
            await db_base.init_db()
            if db_base.db_ready:
                async with db_base.get_session_factory()() as session:
                    try:
                        await restore_latest(session, app.state.rl_agent, app.state.rl_model_name)
                    except ModelImportError as exc:
                        logger.warning("startup_restore_failed", error=str(exc))
        yield

    app = FastAPI(
        title="Greeks RL",
        description="Q-learning decision agent for options portfolios",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.rl_agent = agent or ReinforcementLearningAgent(settings.agent_config())
    app.state.rl_model_name = model_name or settings.rl_model_name

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(rl.router, prefix="/api/rl", tags=["rl"])

    @app.get("/api/health")
    async def health():
        return {
            "status": "ok",
            "version": __version__,
            "database": "connected" if db_base.db_ready else "unavailable",
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
