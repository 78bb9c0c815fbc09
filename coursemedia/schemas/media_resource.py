from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class PrepareUploadRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: str = Field(default="", max_length=255)


class PrepareUploadResponse(BaseModel):
    resource_id: UUID
    upload_session_id: str
    upload_url: str


class CompleteUploadResponse(BaseModel):
    resource_id: UUID
    playback_id: str


class RegisterExternalRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    url: str = Field(min_length=1, max_length=2048)
    # Callers that fetch on an explicit action (e.g. a "Fetch" button) can turn this off.
    auto_fetch: bool = True


class MediaResourcePublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    lesson_id: UUID

    source_kind: str
    platform: str | None
    status: str
    reference: str | None
    ready_reference: str | None

    duration_seconds: int | None
    title: str | None
    thumbnail_url: str | None
    error: str | None

    created_at: datetime
    updated_at: datetime


class MetadataResponse(BaseModel):
    available: bool
    duration_seconds: int | None = None
    duration: str | None = None
    title: str | None = None
    thumbnail_url: str | None = None
    error: str | None = None


class ClassificationPublic(BaseModel):
    platform: str
    supports_auto_metadata_fetch: bool
    video_id: str | None = None
