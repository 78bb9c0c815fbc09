from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class TranscriptPublic(BaseModel):
    """Effective transcript plus the display hints derived from it."""

    content: str | None
    source: str
    status: str
    recorded_status: str
    has_user_override: bool
    has_ai_transcript: bool
    needs_generation: bool

    status_label: str
    source_label: str
    status_color: str
    can_regenerate: bool

    ai_transcript: str | None = None
    user_transcript: str | None = None
    generated_from_reference: str | None = None
    error: str | None = None
    generation_started_at: datetime | None = None
    generation_completed_at: datetime | None = None


class GenerateTranscriptRequest(BaseModel):
    force: bool = False


class GenerateTranscriptResponse(BaseModel):
    status: str
    reference: str
    queued: bool = Field(description="False when the existing AI transcript already matches the video")
