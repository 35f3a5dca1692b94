"""
Database Session Management

Provides the async SQLAlchemy engine and session factory for the feature
store. SQLite (aiosqlite) is the default; PostgreSQL (asyncpg) works with the
same schema.
"""

from __future__ import annotations

from pathlib import Path

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    create_async_engine,
    AsyncSession,
    async_sessionmaker,
)

from ..config import settings
from .models import Base


def build_engine(database_url: str) -> AsyncEngine:
    """
    Create an async engine with pool settings suited to the backend.
    """
    url = make_url(database_url)

    if url.get_backend_name() == "sqlite":
        return create_async_engine(url, echo=False)

    return create_async_engine(
        url,
        echo=False,  # Set True for SQL debugging
        pool_pre_ping=True,
        pool_size=5,
        max_overflow=10,
    )


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def init_db(engine: AsyncEngine) -> None:
    """
    Create tables if missing. For file-backed SQLite the parent directory is
    created first.
    """
    url = engine.url
    if url.get_backend_name() == "sqlite" and url.database not in (None, "", ":memory:"):
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


# Create async engine
async_engine = build_engine(settings.database_url)

# Session factory
AsyncSessionLocal = build_session_factory(async_engine)

