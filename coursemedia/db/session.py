from __future__ import annotations

import asyncio
from collections.abc import AsyncGenerator
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from coursemedia.core.settings import get_settings
from coursemedia.db.base import Base


@dataclass
class _LoopDatabase:
    engine: AsyncEngine | None
    maker: async_sessionmaker[AsyncSession]


# asyncpg/aiosqlite connections belong to the loop that opened them, so every
# loop (one per pytest-asyncio test, one per background worker) gets its own.
_by_loop: dict[int, _LoopDatabase] = {}


def _current_loop_id() -> int:
    try:
        return id(asyncio.get_running_loop())
    except RuntimeError:
        return 0


def _current() -> _LoopDatabase:
    key = _current_loop_id()
    db = _by_loop.get(key)
    if db is None:
        engine = create_async_engine(get_settings().database_url, pool_pre_ping=True)
        db = _LoopDatabase(
            engine=engine,
            maker=async_sessionmaker(bind=engine, expire_on_commit=False, autoflush=False),
        )
        _by_loop[key] = db
    return db


def get_engine() -> AsyncEngine:
    db = _current()
    if db.engine is None:
        raise RuntimeError("Session factory was pinned without an engine")
    return db.engine


def get_session_maker() -> async_sessionmaker[AsyncSession]:
    return _current().maker


def set_session_maker(maker: async_sessionmaker[AsyncSession]) -> None:
    """Pin the session factory for the running loop (background work in tests uses it)."""
    _by_loop[_current_loop_id()] = _LoopDatabase(engine=None, maker=maker)


async def create_tables(engine: AsyncEngine | None = None) -> None:
    """Create the tables directly. Deployed databases go through Alembic instead."""
    from coursemedia.db.models import lesson, media_resource, transcript_record  # noqa: F401

    engine = engine or get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    SessionLocal = get_session_maker()
    async with SessionLocal() as session:
        yield session
