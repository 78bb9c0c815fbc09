from __future__ import annotations

import argparse
import asyncio

from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from coursemedia.core.enums import LessonType
from coursemedia.core.settings import get_settings
from coursemedia.db.models.lesson import Lesson
from coursemedia.db.session import create_tables


async def main() -> None:
    parser = argparse.ArgumentParser(description="Create the media tables and a dev lesson.")
    parser.add_argument("--title", required=True)
    parser.add_argument("--type", default=LessonType.VIDEO.value, choices=[t.value for t in LessonType])
    parser.add_argument("--video-url", default=None)
    args = parser.parse_args()

    settings = get_settings()
    engine = create_async_engine(settings.database_url, pool_pre_ping=True)
    SessionLocal = async_sessionmaker(engine, expire_on_commit=False)

    try:
        await create_tables(engine)
        async with SessionLocal() as session:
            res = await session.execute(select(Lesson).where(Lesson.title == args.title))
            existing = res.scalars().first()
            if existing is not None:
                print(f"Lesson already exists: id={existing.id} title={existing.title}")
                return

            lesson = Lesson(
                title=args.title.strip(),
                lesson_type=args.type,
                video_url=(args.video_url.strip() if args.video_url else None),
            )
            session.add(lesson)
            await session.commit()
            await session.refresh(lesson)
            print(f"Created lesson: id={lesson.id} title={lesson.title}")
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
