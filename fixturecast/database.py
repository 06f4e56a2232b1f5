"""Async database engine factory (supports SQLite and PostgreSQL)."""

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

from fixturecast.config import get_settings

logger = logging.getLogger(__name__)


def get_database_url(url: Optional[str] = None) -> str:
    """Convert database URL to async format."""
    url = url or get_settings().DATABASE_URL

    # SQLite
    if url.startswith("sqlite://"):
        return url.replace("sqlite://", "sqlite+aiosqlite://", 1)

    # PostgreSQL
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+asyncpg://", 1)
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)

    return url


def build_engine(url: Optional[str] = None) -> AsyncEngine:
    """Create an async engine with backend-specific pool settings."""
    database_url = get_database_url(url)
    engine_kwargs = {
        "echo": False,
    }

    if database_url.startswith("sqlite"):
        # SQLite-specific settings
        engine_kwargs["connect_args"] = {"check_same_thread": False}
        engine_kwargs["poolclass"] = StaticPool
    else:
        # PostgreSQL-specific settings
        engine_kwargs["pool_pre_ping"] = True
        engine_kwargs["pool_size"] = 5
        engine_kwargs["max_overflow"] = 5
        engine_kwargs["pool_recycle"] = 300  # Hosted Postgres can drop idle connections
        engine_kwargs["pool_reset_on_return"] = "rollback"

    return create_async_engine(database_url, **engine_kwargs)


def build_session_maker(engine: AsyncEngine) -> sessionmaker:
    return sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


async def init_db(engine: AsyncEngine) -> None:
    """Initialize database tables."""
    # Register table metadata before create_all
    from fixturecast import models  # noqa: F401

    logger.info("Initializing database tables...")
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    logger.info("Database tables created successfully.")

