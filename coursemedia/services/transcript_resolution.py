"""
Transcript resolution.

Decides which transcript a lesson actually has right now. Persistence, the
save-time guard, display, and indexing all go through `resolve()` so they can
never disagree.

Priority:
1. User transcript (non-empty after trimming)
2. AI transcript (non-empty, from a generation that has run)
3. Legacy `content` field
4. None
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from coursemedia.core.enums import TranscriptOrigin, TranscriptStatus


@dataclass(frozen=True)
class EffectiveTranscript:
    content: str | None
    source: TranscriptOrigin
    display_status: TranscriptStatus
    has_user_override: bool = False
    has_ai_transcript: bool = False

    @property
    def is_empty(self) -> bool:
        return not self.content


def _clean(value: str | None) -> str | None:
    value = (value or "").strip()
    return value or None


def resolve(
    user_text: str | None,
    ai_text: str | None,
    legacy_text: str | None,
    recorded_status: TranscriptStatus | str | None = None,
    origin: TranscriptOrigin | str | None = None,
) -> EffectiveTranscript:
    user = _clean(user_text)
    ai = _clean(ai_text)
    legacy = _clean(legacy_text)
    status = TranscriptStatus(recorded_status) if recorded_status else TranscriptStatus.PENDING

    if user:
        return EffectiveTranscript(
            content=user,
            source=TranscriptOrigin.USER,
            display_status=TranscriptStatus.READY,
            has_user_override=True,
            has_ai_transcript=bool(ai),
        )

    # AI text left over from a generation that never completed (status still
    # PENDING) is not surfaced.
    if ai and status != TranscriptStatus.PENDING:
        source = TranscriptOrigin(origin) if origin else TranscriptOrigin.AI_MODEL
        if source in (TranscriptOrigin.NONE, TranscriptOrigin.USER, TranscriptOrigin.LEGACY):
            source = TranscriptOrigin.AI_MODEL
        return EffectiveTranscript(
            content=ai,
            source=source,
            display_status=status,
            has_ai_transcript=True,
        )

    if legacy:
        return EffectiveTranscript(
            content=legacy,
            source=TranscriptOrigin.LEGACY,
            display_status=TranscriptStatus.READY,
            has_ai_transcript=bool(ai),
        )

    return EffectiveTranscript(
        content=None,
        source=TranscriptOrigin.NONE,
        display_status=status,
        has_ai_transcript=bool(ai),
    )


def resolve_record(record, legacy_text: str | None = None) -> EffectiveTranscript:
    """Resolve from a TranscriptRecord row (or None when no record exists yet)."""
    if record is None:
        return resolve(None, None, legacy_text, None)
    return resolve(
        record.user_transcript,
        record.ai_transcript,
        legacy_text,
        record.transcript_status,
        record.transcript_source,
    )


def is_valid_transcript(resolved: EffectiveTranscript, *, min_chars: int) -> bool:
    return len((resolved.content or "").strip()) >= int(min_chars)


def has_transcript(resolved: EffectiveTranscript) -> bool:
    return bool(resolved.content)


def needs_generation(resolved: EffectiveTranscript, video_reference: str | None) -> bool:
    if not (video_reference or "").strip():
        return False
    return resolved.source == TranscriptOrigin.NONE or resolved.display_status == TranscriptStatus.FAILED


StatusColor = Literal["green", "yellow", "red", "blue", "gray"]

STATUS_LABELS: dict[TranscriptStatus, str] = {
    TranscriptStatus.PENDING: "Pending",
    TranscriptStatus.GENERATING: "Generating...",
    TranscriptStatus.READY: "Ready",
    TranscriptStatus.FAILED: "Failed",
}

SOURCE_LABELS: dict[TranscriptOrigin, str] = {
    TranscriptOrigin.NONE: "None",
    TranscriptOrigin.AI_MODEL: "AI Generated",
    TranscriptOrigin.USER: "User Entered",
    TranscriptOrigin.CAPTION_EXTRACTION: "Auto-Caption",
    TranscriptOrigin.SPEECH_MODEL: "Speech Model",
    TranscriptOrigin.EXTERNAL_CAPTIONS: "Platform Captions",
    TranscriptOrigin.LEGACY: "Legacy",
}

STATUS_COLORS: dict[TranscriptStatus, StatusColor] = {
    TranscriptStatus.READY: "green",
    TranscriptStatus.GENERATING: "blue",
    TranscriptStatus.PENDING: "yellow",
    TranscriptStatus.FAILED: "red",
}


@dataclass(frozen=True)
class DisplayInfo:
    status_label: str
    source_label: str
    status_color: StatusColor
    can_regenerate: bool


def display_info(resolved: EffectiveTranscript, recorded_status: TranscriptStatus | str | None = None) -> DisplayInfo:
    # The regenerate button follows the record, not the display status: a user
    # override shows READY even while a generation runs underneath.
    generating = TranscriptStatus(recorded_status) == TranscriptStatus.GENERATING if recorded_status else False
    generating = generating or resolved.display_status == TranscriptStatus.GENERATING
    if resolved.has_user_override:
        return DisplayInfo(
            status_label="User Override",
            source_label=SOURCE_LABELS[resolved.source],
            status_color="green",
            can_regenerate=not generating,
        )
    return DisplayInfo(
        status_label=STATUS_LABELS[resolved.display_status],
        source_label=SOURCE_LABELS[resolved.source],
        status_color=STATUS_COLORS[resolved.display_status],
        can_regenerate=not generating,
    )
