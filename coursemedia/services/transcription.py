from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from coursemedia.core.enums import MediaStatus, TranscriptOrigin, TranscriptStatus
from coursemedia.core.errors import AlreadyInProgress, GenerationFailure
from coursemedia.core.settings import get_settings
from coursemedia.db.models.transcript_record import TranscriptRecord
from coursemedia.db.session import get_session_maker
from coursemedia.platforms.adapters import build_registry
from coursemedia.services.ingestion import get_lesson, get_resource_for_lesson
from coursemedia.services.transcript_providers import TranscriptGenerator, TranscriptionResult, build_generator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenerationClaim:
    reference: str
    # False when the stored AI transcript already matches `reference`.
    claimed: bool


async def get_record(db: AsyncSession, lesson_id: UUID) -> TranscriptRecord | None:
    res = await db.execute(select(TranscriptRecord).where(TranscriptRecord.lesson_id == lesson_id))
    return res.scalar_one_or_none()


async def get_or_create_record(db: AsyncSession, lesson_id: UUID) -> TranscriptRecord:
    record = await get_record(db, lesson_id)
    if record is None:
        record = TranscriptRecord(
            lesson_id=lesson_id,
            transcript_source=TranscriptOrigin.NONE.value,
            transcript_status=TranscriptStatus.PENDING.value,
        )
        db.add(record)
        await db.flush()
    return record


async def current_reference(db: AsyncSession, lesson_id: UUID) -> str | None:
    """The playable reference transcripts are generated against."""
    lesson = await get_lesson(db, lesson_id)
    resource = await get_resource_for_lesson(db, lesson_id)
    if resource is not None:
        if resource.status == MediaStatus.READY.value and resource.reference:
            return resource.reference
        if resource.ready_reference:
            return resource.ready_reference
    return (lesson.video_url or "").strip() or None


async def claim_generation(
    db: AsyncSession,
    lesson_id: UUID,
    *,
    reference: str | None = None,
    force: bool = False,
) -> GenerationClaim:
    """
    Atomically move the lesson's record to GENERATING.

    Raises AlreadyInProgress when another generation holds the claim. Returns
    an unclaimed result when the AI transcript is already up to date for the
    reference and `force` is not set.
    """
    ref = (reference or "").strip() or await current_reference(db, lesson_id)
    if not ref:
        raise GenerationFailure("Lesson has no playable video to transcribe")

    record = await get_or_create_record(db, lesson_id)
    await db.commit()

    if (
        not force
        and record.transcript_status == TranscriptStatus.READY.value
        and (record.ai_transcript or "").strip()
        and record.generated_from_reference == ref
    ):
        return GenerationClaim(reference=ref, claimed=False)

    # Check-and-set: only one caller can flip a non-GENERATING row.
    res = await db.execute(
        update(TranscriptRecord)
        .where(
            TranscriptRecord.lesson_id == lesson_id,
            TranscriptRecord.transcript_status != TranscriptStatus.GENERATING.value,
        )
        .values(
            transcript_status=TranscriptStatus.GENERATING.value,
            error=None,
            generation_started_at=datetime.now(timezone.utc),
            generation_completed_at=None,
        )
        .execution_options(synchronize_session=False)
    )
    if res.rowcount == 0:
        await db.rollback()
        raise AlreadyInProgress(lesson_id)
    await db.commit()
    await db.refresh(record)
    logger.info("Transcript generation claimed for lesson %s (%s)", lesson_id, ref)
    return GenerationClaim(reference=ref, claimed=True)


async def _finish(
    db: AsyncSession,
    lesson_id: UUID,
    *,
    status: TranscriptStatus,
    error: str | None = None,
    result: TranscriptionResult | None = None,
    reference: str | None = None,
) -> None:
    record = await get_or_create_record(db, lesson_id)
    await db.refresh(record)
    record.transcript_status = status.value
    record.error = error
    record.generation_completed_at = datetime.now(timezone.utc)
    if result is not None:
        record.ai_transcript = result.text
        record.transcript_source = result.origin.value
        record.generated_from_reference = reference
    await db.commit()


async def run_generation(
    db: AsyncSession,
    lesson_id: UUID,
    reference: str,
    *,
    generator: TranscriptGenerator,
) -> TranscriptionResult:
    """Run the provider chain for a claimed record and persist the outcome.

    On failure the previous AI transcript (if any) is left in place.
    """
    try:
        result = await generator.transcribe(reference)
    except GenerationFailure as e:
        logger.warning("Transcript generation failed for lesson %s: %s", lesson_id, e)
        await _finish(db, lesson_id, status=TranscriptStatus.FAILED, error=str(e))
        raise
    except Exception as e:
        logger.exception("Transcript generation crashed for lesson %s", lesson_id)
        await _finish(db, lesson_id, status=TranscriptStatus.FAILED, error=str(e) or e.__class__.__name__)
        raise GenerationFailure(str(e) or e.__class__.__name__) from e

    await _finish(db, lesson_id, status=TranscriptStatus.READY, result=result, reference=reference)
    logger.info("Transcript ready for lesson %s via %s (%d chars)", lesson_id, result.origin.value, len(result.text))
    return result


async def generate(
    db: AsyncSession,
    lesson_id: UUID,
    *,
    generator: TranscriptGenerator,
    reference: str | None = None,
    force: bool = False,
) -> TranscriptionResult:
    claim = await claim_generation(db, lesson_id, reference=reference, force=force)
    if not claim.claimed:
        record = await get_or_create_record(db, lesson_id)
        return TranscriptionResult(
            text=record.ai_transcript or "",
            origin=TranscriptOrigin(record.transcript_source),
        )
    return await run_generation(db, lesson_id, claim.reference, generator=generator)


async def generate_in_background(
    lesson_id: UUID,
    reference: str,
    generator: TranscriptGenerator | None = None,
) -> None:
    """Background task: run an already-claimed generation with its own session."""
    if generator is None:
        settings = get_settings()
        generator = build_generator(settings, build_registry(settings))
    SessionLocal = get_session_maker()
    async with SessionLocal() as db:
        try:
            await run_generation(db, lesson_id, reference, generator=generator)
        except GenerationFailure:
            # Already recorded on the row as FAILED.
            pass


async def set_user_transcript(db: AsyncSession, lesson_id: UUID, text: str | None) -> TranscriptRecord:
    """Store (or clear, when blank) the editor's override. Never touches the AI transcript."""
    await get_lesson(db, lesson_id)
    record = await get_or_create_record(db, lesson_id)
    record.user_transcript = (text or "").strip() or None
    await db.commit()
    return record


async def clear_user_transcript(db: AsyncSession, lesson_id: UUID) -> TranscriptRecord:
    return await set_user_transcript(db, lesson_id, None)
