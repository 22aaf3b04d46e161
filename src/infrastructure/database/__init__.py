"""
Database Infrastructure
=======================

Engine, sessions and the declarative base for every bounded context.

SQLAlchemy 2.0 async: asyncpg for PostgreSQL, aiosqlite for local
development and tests. Sessions never expire on commit, so domain objects
mapped from rows stay usable after the unit of work that loaded them.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncGenerator, Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from src.config import Settings, settings


class Base(DeclarativeBase):
    """Declarative base shared by identity, routing and incident models."""


_engine: AsyncEngine | None = None
_session_maker: async_sessionmaker[AsyncSession] | None = None


def utcnow() -> datetime:
    """Timezone-aware current time used for every persisted timestamp."""
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite returns naive datetimes; treat them as UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def build_engine(config: Settings) -> AsyncEngine:
    """Engine for the configured URL; pooling options only apply to server databases."""
    if config.is_sqlite:
        return create_async_engine(config.database_url, echo=config.debug)

    # asyncpg spells the libpq `sslmode` parameter as `ssl`
    return create_async_engine(
        config.database_url.replace("sslmode=", "ssl="),
        echo=config.debug,
        pool_size=config.db_pool_size,
        max_overflow=config.db_max_overflow,
        pool_pre_ping=True,
    )


def get_engine() -> AsyncEngine:
    if _engine is None:
        raise RuntimeError("Database engine not initialized. Call init_database() first.")
    return _engine


def configure_engine(engine: AsyncEngine) -> None:
    """Install an engine and bind the session factory to it."""
    global _engine, _session_maker

    _engine = engine
    _session_maker = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


def init_database(config: Optional[Settings] = None) -> AsyncEngine:
    """
    Create the engine at startup.

    A no-op when an engine is already installed (tests configure an
    in-memory SQLite engine before the app starts).
    """
    if _engine is not None:
        return _engine

    engine = build_engine(config or settings)
    configure_engine(engine)
    return engine


async def close_database() -> None:
    global _engine, _session_maker

    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_maker = None


@asynccontextmanager
async def _unit_of_work() -> AsyncGenerator[AsyncSession, None]:
    """Commit on success, roll back and re-raise on any error."""
    if _session_maker is None:
        raise RuntimeError("Database not initialized. Call init_database() first.")

    async with _session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency: one unit of work per request.

    Services commit explicitly before emitting realtime events; anything
    still pending when the request ends is committed here.
    """
    async with _unit_of_work() as session:
        yield session


def get_session_context():
    """
    Unit of work for scripts and tests.

    Usage:
        async with get_session_context() as session:
            user = await SQLAlchemyUserRepository(session).get_by_email(email)
    """
    return _unit_of_work()


async def create_tables() -> None:
    """Create any missing tables for all registered models."""
    # Register every model on the metadata before create_all
    import src.identity.infrastructure.models  # noqa: F401
    import src.routing.infrastructure.models  # noqa: F401
    import src.incidents.infrastructure.models  # noqa: F401

    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
