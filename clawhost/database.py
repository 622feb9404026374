"""Async engine and session factory for the instance database."""

from collections.abc import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from clawhost.config import get_settings
from clawhost.models import Base

settings = get_settings()

# Connections can sit idle between lifecycle calls; drop stale ones on checkout
engine = create_async_engine(settings.database_url, echo=False, pool_pre_ping=True)
async_session_maker = async_sessionmaker(engine, expire_on_commit=False)


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_maker() as session:
        yield session


async def ping(session: AsyncSession) -> None:
    """Round-trip a trivial query. Raises on any connection problem."""
    await session.execute(text("SELECT 1"))


async def create_tables(bind: AsyncEngine = engine) -> None:
    """Create missing tables. Used by `clawhost init-db` and local development."""
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
