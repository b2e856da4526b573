"""Database connection and session management."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, AsyncGenerator
from uuid import UUID

from sqlalchemy import inspect, text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from dtr_engine.config import get_settings
from dtr_engine.models import Base

if TYPE_CHECKING:
    from datetime import date

    from sqlalchemy.ext.asyncio import AsyncEngine


def get_engine(database_url: str | None = None) -> AsyncEngine:
    """Create async database engine."""
    url = make_url(database_url or get_settings().database_url)
    if url.get_backend_name() == "sqlite":
        return create_async_engine(url, echo=False)
    return create_async_engine(
        url,
        echo=False,
        pool_pre_ping=True,
        pool_size=10,
        max_overflow=20,
    )


# Global engine and session factory
_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def init_db() -> tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    """Initialize database engine and session factory."""
    global _engine, _session_factory
    if _engine is None:
        _engine = get_engine()
        _session_factory = async_sessionmaker(
            _engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
    return _engine, _session_factory


async def dispose_db() -> None:
    """Dispose the global engine, if any."""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None


@asynccontextmanager
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Get a database session."""
    _, factory = init_db()
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def create_schema(engine: AsyncEngine) -> None:
    """Create all tables known to the ORM metadata."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def missing_tables(session: AsyncSession) -> list[str]:
    """ORM tables the connected database does not have yet."""

    def _table_names(sync_session) -> set[str]:
        return set(inspect(sync_session.connection()).get_table_names())

    present = await session.run_sync(_table_names)
    return sorted(set(Base.metadata.tables) - present)


def dtr_lock_key(employee_id: UUID, work_date: date) -> str:
    """Key identifying the (employee, date) unit of recomputation."""
    return f"dtr:{employee_id}:{work_date.isoformat()}"


async def acquire_dtr_lock(session: AsyncSession, employee_id: UUID, work_date: date) -> None:
    """Serialize recomputation of one employee/date.

    Uses a transaction-scoped advisory lock on PostgreSQL; released on
    commit or rollback. Other dialects have no advisory locks and rely on
    the unique (employee_id, date) constraint instead.
    """
    if session.get_bind().dialect.name != "postgresql":
        return
    await session.execute(
        text("SELECT pg_advisory_xact_lock(hashtext(:key))"),
        {"key": dtr_lock_key(employee_id, work_date)},
    )
