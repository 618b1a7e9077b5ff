"""
Database connection for PostgreSQL (production) or SQLite (local dev, tests).

Env vars (set in deployment variables or .env):
    DATABASE_URL  -- full postgres:// connection string
    DATABASE_URL_FALLBACK -- optional sqlite+aiosqlite:///./callhub.db for local dev
"""

from __future__ import annotations

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool

from callhub.config import DATABASE_URL as _raw_url, DATABASE_URL_FALLBACK, DB_ECHO

if _raw_url:
    # Hosting providers hand out postgres:// but asyncpg needs postgresql+asyncpg://
    if _raw_url.startswith("postgres://"):
        _raw_url = _raw_url.replace("postgres://", "postgresql+asyncpg://", 1)
    elif _raw_url.startswith("postgresql://"):
        _raw_url = _raw_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    DATABASE_URL = _raw_url
else:
    DATABASE_URL = DATABASE_URL_FALLBACK

if DATABASE_URL.startswith("sqlite"):
    # Pooled aiosqlite
    # connections must not outlive the event loop that opened them.
    engine = create_async_engine(DATABASE_URL, echo=DB_ECHO, poolclass=NullPool)
else:
    engine = create_async_engine(DATABASE_URL, echo=DB_ECHO, pool_pre_ping=True)

async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


class Base(DeclarativeBase):
    pass


async def init_db():
    """Create all tables (safe to call multiple times)."""
    from callhub import models  # noqa: F401  -- registers tables on Base.metadata

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def drop_db():
    """Drop all tables. Used by the seed script's --reset flag and tests."""
    from callhub import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


async def ping():
    """Run ``SELECT 1`` on a fresh connection."""
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))


async def get_session() -> AsyncSession:
    async with async_session() as session:
        yield session
