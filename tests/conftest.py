from __future__ import annotations

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from coursemedia.core.enums import LessonType
from coursemedia.core.settings import get_settings
from coursemedia.db.models.lesson import Lesson
from coursemedia.db.session import create_tables, set_session_maker


@pytest.fixture(autouse=True)
def fresh_settings(monkeypatch):
    """Keep cached settings isolated from the developer's .env and between tests."""
    for key in ("MUX_TOKEN_ID", "MUX_TOKEN_SECRET", "YOUTUBE_API_KEY", "RUNPOD_API_KEY", "RUNPOD_ENDPOINT_ID"):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("MUX_WEBHOOK_SECRET", "hook-secret")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest_asyncio.fixture
async def session_maker(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'media.db'}")
    maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await create_tables(engine)
    # Background generation opens its own session through the loop's maker.
    set_session_maker(maker)
    yield maker
    await engine.dispose()


@pytest_asyncio.fixture
async def db(session_maker):
    async with session_maker() as session:
        yield session


@pytest_asyncio.fixture
async def make_lesson(session_maker):
    async def _make(title: str = "Intro", *, video_url: str | None = None, content: str | None = None) -> Lesson:
        async with session_maker() as session:
            lesson = Lesson(title=title, lesson_type=LessonType.VIDEO.value, video_url=video_url, content=content)
            session.add(lesson)
            await session.commit()
            await session.refresh(lesson)
            return lesson

    return _make
