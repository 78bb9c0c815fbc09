from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from coursemedia.services.save_guard import Resolution


class LessonUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: str | None = Field(default=None, max_length=255)
    duration: str | None = Field(default=None, max_length=32)
    content: str | None = None
    video_url: str | None = Field(default=None, max_length=2048)
    user_transcript: str | None = None

    # Answer to a previous 409 from the transcript guard.
    resolution: Resolution | None = None


class LessonPublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    lesson_type: str
    video_url: str | None
    duration: str | None
    content: str | None
    created_at: datetime
    updated_at: datetime


class LessonSaveResponse(BaseModel):
    lesson: LessonPublic
    resolution: str | None = None
    generation_queued: bool = False
