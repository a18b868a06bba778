# backend/tripgate/db/session.py
from __future__ import annotations

from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from tripgate.core.config import settings

POOL_RECYCLE_SECONDS = 300


def engine_options(url: str) -> dict[str, Any]:
    """
    Pool settings for the directory database.

    Only a server-backed database (asyncpg in production) has connections that
    can go stale behind the pool; SQLite (local runs, tests) gets defaults.
    """
    if make_url(url).get_backend_name() == "sqlite":
        return {}
    return {"pool_pre_ping": True, "pool_recycle": POOL_RECYCLE_SECONDS}


# asyncpg rejects sslmode/channel_binding, so the cleaned URL is used here
engine: AsyncEngine = create_async_engine(
    settings.DATABASE_URL_ASYNC_CLEAN,
    echo=False,
    **engine_options(settings.DATABASE_URL_ASYNC_CLEAN),
)

# expire_on_commit=False: handlers render trip/member rows after committing
AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """One session per request; the access pipeline and the handler share it."""
    async with AsyncSessionLocal() as session:
        yield session


async def dispose_engine() -> None:
    await engine.dispose()
