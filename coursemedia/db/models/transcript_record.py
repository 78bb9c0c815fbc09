from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import DateTime, ForeignKey, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from coursemedia.core.enums import TranscriptOrigin, TranscriptStatus
from coursemedia.db.base import Base


class TranscriptRecord(Base):
    __tablename__ = "transcript_records"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)

    lesson_id: Mapped[UUID] = mapped_column(
        ForeignKey("lessons.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )

    ai_transcript: Mapped[str | None] = mapped_column(Text, nullable=True)
    user_transcript: Mapped[str | None] = mapped_column(Text, nullable=True)

    transcript_source: Mapped[str] = mapped_column(
        String(32), nullable=False, default=TranscriptOrigin.NONE.value
    )
    # GENERATING is exclusive; flipped only through a conditional UPDATE.
    transcript_status: Mapped[str] = mapped_column(
        String(32), nullable=False, default=TranscriptStatus.PENDING.value, index=True
    )

    # Media reference the current ai_transcript was produced from.
    generated_from_reference: Mapped[str | None] = mapped_column(Text, nullable=True)

    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    generation_started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    generation_completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

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
