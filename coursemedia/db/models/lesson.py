from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import DateTime, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from coursemedia.core.enums import LessonType
from coursemedia.db.base import Base


class Lesson(Base):
    __tablename__ = "lessons"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    lesson_type: Mapped[str] = mapped_column(String(32), nullable=False, default=LessonType.VIDEO.value)

    # Reference the lesson was last saved with (playback id or external URL).
    video_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Display string, e.g. "5m 30s".
    duration: Mapped[str | None] = mapped_column(String(32), nullable=True)

    # Legacy free-text transcript (pre dual-transcript columns).
    content: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
