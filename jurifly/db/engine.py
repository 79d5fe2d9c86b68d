# =============================================================================
# Database Engine & Session Management
# =============================================================================
#
# DESIGN DECISION: Async SQLAlchemy Engine
# FastAPI is an async framework, so we use SQLAlchemy's async engine to avoid
# blocking the event loop during database operations:
# - All DB queries use `await` (e.g., `await session.execute(...)`)
# - `asyncpg` is the PostgreSQL driver
#
# SESSION LIFECYCLE:
# The SQL document store opens one session per store operation through
# `session_scope()`: create → yield → commit (or rollback on error) → close.
# Operations that must be atomic (credit deduction, referral bonus, access
# pass redemption) run entirely inside one such scope.
#
# DESIGN DECISION: Lazy engine creation. Nothing touches asyncpg until the
# SQL store is first used, so the in-memory backend runs without Postgres.
# =============================================================================

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from jurifly.config import settings

_async_engine: AsyncEngine | None = None
_async_session_factory: async_sessionmaker[AsyncSession] | None = None


def get_async_engine() -> AsyncEngine:
    """
    Lazily create and cache the async engine.

    - echo=settings.debug: logs all SQL statements in development
    - pool_size=5 / max_overflow=10: modest pool for a single API process
    """
    global _async_engine
    if _async_engine is None:
        _async_engine = create_async_engine(
            settings.database_url,
            echo=settings.debug,
            pool_size=5,
            max_overflow=10,
        )
    return _async_engine


def get_async_session_factory() -> async_sessionmaker[AsyncSession]:
    """
    Lazily create and cache the session factory.

    expire_on_commit=False: attributes stay readable after commit. Without
    it, touching a loaded row after commit would trigger a lazy load, which
    fails outside a session in async context.
    """
    global _async_session_factory
    if _async_session_factory is None:
        _async_session_factory = async_sessionmaker(
            bind=get_async_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _async_session_factory


@asynccontextmanager
async def session_scope() -> AsyncGenerator[AsyncSession, None]:
    """
    Provide a transactional session.

    Usage:
        async with session_scope() as session:
            row = await session.get(ProfileRow, uid)
            row.credits += 10
            # Auto-commits on exit, rolls back on exception
    """
    factory = get_async_session_factory()
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def create_all_tables() -> None:
    """Create any missing tables. Called on startup for the SQL backend."""
    from jurifly.db.models import Base

    async with get_async_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
