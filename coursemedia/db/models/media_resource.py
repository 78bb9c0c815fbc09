from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from coursemedia.core.enums import MediaStatus, SourceKind
from coursemedia.db.base import Base


class MediaResource(Base):
    __tablename__ = "media_resources"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)

    # Owned 1:1 by the lesson; removed with it.
    lesson_id: Mapped[UUID] = mapped_column(
        ForeignKey("lessons.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )

    source_kind: Mapped[str] = mapped_column(String(32), nullable=False, default=SourceKind.NONE.value)
    platform: Mapped[str | None] = mapped_column(String(32), nullable=True)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default=MediaStatus.IDLE.value, index=True)

    # Upload session handle while uploading, playback id once ready, or the external URL.
    reference: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Last known-good playable reference. Survives failed replacements.
    ready_reference: Mapped[str | None] = mapped_column(Text, nullable=True)
    ready_platform: Mapped[str | None] = mapped_column(String(32), nullable=True)
    ready_source_kind: Mapped[str | None] = mapped_column(String(32), nullable=True)

    # Upload provider bookkeeping.
    upload_session_id: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    upload_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    completed_session_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    provider_asset_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    duration_seconds: Mapped[int | None] = mapped_column(Integer, nullable=True)
    title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    thumbnail_url: Mapped[str | None] = mapped_column(Text, nullable=True)

    error: Mapped[str | None] = mapped_column(Text, nullable=True)

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
