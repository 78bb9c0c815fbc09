from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from coursemedia.core.enums import MediaStatus, TranscriptStatus
from coursemedia.core.errors import AlreadyInProgress, ValidationBlocked
from coursemedia.core.settings import get_settings
from coursemedia.db.models.lesson import Lesson
from coursemedia.services.ingestion import format_duration, get_lesson, get_resource_for_lesson
from coursemedia.services.transcript_resolution import EffectiveTranscript, is_valid_transcript, resolve
from coursemedia.services.transcription import (
    GenerationClaim,
    claim_generation,
    get_or_create_record,
    get_record,
)

logger = logging.getLogger(__name__)


class GuardReason(str, Enum):
    TRANSCRIPT_REQUIRED = "transcript_required"
    VIDEO_CHANGED = "video_changed"


class Resolution(str, Enum):
    KEEP_EXISTING = "keep_existing"
    REGENERATE = "regenerate"
    ENTER_MANUALLY = "enter_manually"
    GENERATE_NOW = "generate_now"


# "Wait" is never offered: row 1 only fires when nothing is generating.
TRANSCRIPT_REQUIRED_CHOICES = (Resolution.ENTER_MANUALLY, Resolution.GENERATE_NOW)
VIDEO_CHANGED_CHOICES = (Resolution.KEEP_EXISTING, Resolution.REGENERATE, Resolution.ENTER_MANUALLY)


@dataclass(frozen=True)
class GuardDecision:
    allowed: bool
    reason: GuardReason | None = None
    choices: tuple[Resolution, ...] = ()
    message: str = ""

    def blocked(self) -> ValidationBlocked:
        return ValidationBlocked(
            reason=self.reason.value if self.reason else "",
            choices=[c.value for c in self.choices],
            message=self.message,
        )


ALLOW = GuardDecision(allowed=True)


def evaluate(
    candidate_reference: str | None,
    saved_reference: str | None,
    resolved: EffectiveTranscript,
    generation_in_flight: bool,
    min_chars: int,
) -> GuardDecision:
    """Decide whether a lesson save may proceed. Pure; never touches storage."""
    candidate = (candidate_reference or "").strip()
    if not candidate:
        return ALLOW

    if not is_valid_transcript(resolved, min_chars=min_chars):
        if generation_in_flight:
            return ALLOW
        return GuardDecision(
            allowed=False,
            reason=GuardReason.TRANSCRIPT_REQUIRED,
            choices=TRANSCRIPT_REQUIRED_CHOICES,
            message="A video lesson needs a transcript. Enter one manually or generate it now.",
        )

    previous = (saved_reference or "").strip()
    if previous and previous != candidate:
        return GuardDecision(
            allowed=False,
            reason=GuardReason.VIDEO_CHANGED,
            choices=VIDEO_CHANGED_CHOICES,
            message="The video changed. Keep the existing transcript, regenerate it, or edit it manually.",
        )
    return ALLOW


@dataclass(frozen=True)
class LessonChanges:
    """Fields to persist. None means "leave unchanged"; an empty video_url removes the video."""

    title: str | None = None
    duration: str | None = None
    content: str | None = None
    video_url: str | None = None
    user_transcript: str | None = None


@dataclass(frozen=True)
class SaveResult:
    lesson: Lesson
    decision: GuardDecision
    resolution: Resolution | None = None
    claim: GenerationClaim | None = None


def _accepts(decision: GuardDecision, resolution: Resolution | None, user_text_valid: bool) -> bool:
    if resolution is None or resolution not in decision.choices:
        return False
    if resolution == Resolution.ENTER_MANUALLY:
        return user_text_valid
    return True


async def save_lesson(
    db: AsyncSession,
    lesson_id: UUID,
    changes: LessonChanges,
    resolution: Resolution | None = None,
    *,
    min_chars: int | None = None,
) -> SaveResult:
    """
    Persist lesson edits behind the transcript consistency guard.

    Raises ValidationBlocked (carrying the reason and choices) when the guard
    blocks and `resolution` does not settle it. A blank `user_transcript` is
    treated as unchanged; clearing goes through clear_user_transcript.
    """
    min_chars = int(min_chars if min_chars is not None else get_settings().transcript_min_chars)
    lesson = await get_lesson(db, lesson_id)
    record = await get_record(db, lesson_id)

    new_user_text = (changes.user_transcript or "").strip() or None
    candidate_ref = (changes.video_url.strip() or None) if changes.video_url is not None else lesson.video_url
    candidate_legacy = changes.content if changes.content is not None else lesson.content

    resolved = resolve(
        new_user_text or (record.user_transcript if record else None),
        record.ai_transcript if record else None,
        candidate_legacy,
        record.transcript_status if record else None,
        record.transcript_source if record else None,
    )
    in_flight = record is not None and record.transcript_status == TranscriptStatus.GENERATING.value
    decision = evaluate(candidate_ref, lesson.video_url, resolved, in_flight, min_chars)

    if not decision.allowed:
        user_text_valid = len(new_user_text or "") >= min_chars
        if not _accepts(decision, resolution, user_text_valid):
            logger.info("Save of lesson %s blocked: %s", lesson_id, decision.reason.value if decision.reason else "")
            raise decision.blocked()
    else:
        resolution = None

    # Claim before writing the lesson: if another generation holds the lesson,
    # nothing of this save may land.
    claim: GenerationClaim | None = None
    if resolution in (Resolution.REGENERATE, Resolution.GENERATE_NOW):
        if in_flight:
            raise AlreadyInProgress(lesson_id)
        claim = await claim_generation(
            db, lesson_id, reference=candidate_ref, force=resolution == Resolution.REGENERATE
        )

    if changes.title is not None and changes.title.strip():
        lesson.title = changes.title.strip()[:255]
    if changes.content is not None:
        lesson.content = changes.content
    lesson.video_url = candidate_ref
    if changes.duration is not None:
        lesson.duration = changes.duration.strip() or None
    elif candidate_ref:
        resource = await get_resource_for_lesson(db, lesson_id)
        if (
            resource is not None
            and resource.status == MediaStatus.READY.value
            and resource.reference == candidate_ref
            and resource.duration_seconds is not None
        ):
            lesson.duration = format_duration(resource.duration_seconds)
    if new_user_text:
        record = await get_or_create_record(db, lesson_id)
        record.user_transcript = new_user_text
    await db.commit()
    await db.refresh(lesson)

    if resolution is not None:
        logger.info("Lesson %s saved with resolution %s", lesson_id, resolution.value)

    return SaveResult(lesson=lesson, decision=decision, resolution=resolution, claim=claim)
