"""Base model and database session setup for policy snapshot storage."""

import asyncio
from collections.abc import AsyncGenerator
from datetime import datetime
from functools import lru_cache
from uuid import uuid4

from sqlalchemy import MetaData, String, func
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from greeks_rl.config import settings
from greeks_rl.utils.logging import get_logger

logger = get_logger(__name__)

# Naming convention for constraints (helps Alembic generate clean migrations)
convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


def create_engine_for(url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine; pool sizing only applies to server databases."""
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=echo)
    return create_async_engine(
        url,
        echo=echo,
        pool_size=20,
        max_overflow=10,
        pool_pre_ping=True,
    )


@lru_cache(maxsize=1)
def get_engine() -> AsyncEngine:
    return create_engine_for(settings.database_url, echo=settings.app_debug)


@lru_cache(maxsize=1)
def get_session_factory() -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(get_engine(), class_=AsyncSession, expire_on_commit=False)


class Base(DeclarativeBase):
    """Base declarative model with common fields for all tables."""

    metadata = MetaData(naming_convention=convention)

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
        index=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        default=func.now(),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        default=func.now(),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


db_ready: bool = False
"""Module-level flag indicating whether the database is reachable."""


async def init_db(
    engine: AsyncEngine | None = None,
    retries: int = 5,
    delay: float = 2.0,
) -> None:
    """Create all database tables.

    Retries connection with exponential backoff.  If the database is
    still unreachable after all retries the error is logged and the
    application starts anyway; only the snapshot endpoints need it.
    """
    global db_ready  # noqa: PLW0603

    engine = engine or get_engine()
    logger.info("database_init", host=_safe_url(str(engine.url)))

    for attempt in range(1, retries + 1):
        try:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            logger.info("database_ready")
            db_ready = True
            return
        except Exception as exc:
            if attempt == retries:
                logger.error(
                    "database_unavailable",
                    attempts=retries,
                    error=str(exc),
                )
                return
            wait = delay * (2 ** (attempt - 1))
            logger.warning(
                "database_connect_retry",
                attempt=attempt,
                retries=retries,
                error=str(exc),
                wait_seconds=wait,
            )
            await asyncio.sleep(wait)


def _safe_url(url: str) -> str:
    """Return the host portion of a database URL for logging (no credentials)."""
    try:
        from urllib.parse import urlparse
        parsed = urlparse(url.replace("+asyncpg", "").replace("+aiosqlite", ""))
        return f"{parsed.hostname}:{parsed.port}"
    except ValueError:
        return "<unparseable>"


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session for dependency injection.

    Usage with FastAPI:
        @router.post("/model/snapshots")
        async def save(session: AsyncSession = Depends(get_session)):
            ...
    """
    async with get_session_factory()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
