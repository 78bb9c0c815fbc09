from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from coursemedia.api.deps import get_generator, to_http
from coursemedia.core.enums import TranscriptStatus
from coursemedia.core.errors import MediaEngineError
from coursemedia.core.settings import Settings, get_settings
from coursemedia.db.session import get_db
from coursemedia.schemas.lesson import LessonPublic, LessonSaveResponse, LessonUpdate
from coursemedia.schemas.transcript import GenerateTranscriptRequest, GenerateTranscriptResponse, TranscriptPublic
from coursemedia.services import transcription
from coursemedia.services.ingestion import get_lesson
from coursemedia.services.save_guard import LessonChanges, save_lesson
from coursemedia.services.transcript_providers import TranscriptGenerator
from coursemedia.services.transcript_resolution import display_info, needs_generation, resolve_record

router = APIRouter(prefix="/lessons", tags=["lessons"])


async def _transcript_view(db: AsyncSession, lesson_id: UUID) -> TranscriptPublic:
    lesson = await get_lesson(db, lesson_id)
    record = await transcription.get_record(db, lesson_id)
    if record is not None:
        await db.refresh(record)
    resolved = resolve_record(record, lesson.content)
    recorded = record.transcript_status if record else TranscriptStatus.PENDING.value
    info = display_info(resolved, recorded)
    reference = await transcription.current_reference(db, lesson_id)
    return TranscriptPublic(
        content=resolved.content,
        source=resolved.source.value,
        status=resolved.display_status.value,
        recorded_status=recorded,
        has_user_override=resolved.has_user_override,
        has_ai_transcript=resolved.has_ai_transcript,
        needs_generation=needs_generation(resolved, reference),
        status_label=info.status_label,
        source_label=info.source_label,
        status_color=info.status_color,
        can_regenerate=info.can_regenerate,
        ai_transcript=record.ai_transcript if record else None,
        user_transcript=record.user_transcript if record else None,
        generated_from_reference=record.generated_from_reference if record else None,
        error=record.error if record else None,
        generation_started_at=record.generation_started_at if record else None,
        generation_completed_at=record.generation_completed_at if record else None,
    )


@router.get("/{lesson_id}/transcript", response_model=TranscriptPublic)
async def get_transcript(lesson_id: UUID, db: AsyncSession = Depends(get_db)) -> TranscriptPublic:
    try:
        return await _transcript_view(db, lesson_id)
    except MediaEngineError as e:
        raise to_http(e)


@router.post("/{lesson_id}/transcript/generate", response_model=GenerateTranscriptResponse)
async def generate_transcript(
    lesson_id: UUID,
    background_tasks: BackgroundTasks,
    body: GenerateTranscriptRequest | None = None,
    db: AsyncSession = Depends(get_db),
    generator: TranscriptGenerator = Depends(get_generator),
) -> GenerateTranscriptResponse:
    """
    Claim the lesson's generation slot and run the provider chain in the background.

    409 while another generation for the same lesson is running.
    """
    force = bool(body.force) if body else False
    try:
        if await transcription.current_reference(db, lesson_id) is None:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Lesson has no video")
        claim = await transcription.claim_generation(db, lesson_id, force=force)
    except MediaEngineError as e:
        raise to_http(e)

    if not claim.claimed:
        return GenerateTranscriptResponse(status=TranscriptStatus.READY.value, reference=claim.reference, queued=False)

    background_tasks.add_task(transcription.generate_in_background, lesson_id, claim.reference, generator)
    return GenerateTranscriptResponse(status=TranscriptStatus.GENERATING.value, reference=claim.reference, queued=True)


@router.delete("/{lesson_id}/transcript/user", response_model=TranscriptPublic)
async def clear_user_transcript(lesson_id: UUID, db: AsyncSession = Depends(get_db)) -> TranscriptPublic:
    try:
        await transcription.clear_user_transcript(db, lesson_id)
        return await _transcript_view(db, lesson_id)
    except MediaEngineError as e:
        raise to_http(e)


@router.put("/{lesson_id}", response_model=LessonSaveResponse)
async def update_lesson(
    lesson_id: UUID,
    body: LessonUpdate,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
    generator: TranscriptGenerator = Depends(get_generator),
) -> LessonSaveResponse:
    """
    Guarded save. A 409 carries `reason` and `choices`; resend with one of the
    choices in `resolution` to proceed.
    """
    changes = LessonChanges(
        title=body.title,
        duration=body.duration,
        content=body.content,
        video_url=body.video_url,
        user_transcript=body.user_transcript,
    )
    try:
        result = await save_lesson(
            db,
            lesson_id,
            changes,
            body.resolution,
            min_chars=settings.transcript_min_chars,
        )
    except MediaEngineError as e:
        raise to_http(e)

    queued = False
    if result.claim is not None and result.claim.claimed:
        background_tasks.add_task(transcription.generate_in_background, lesson_id, result.claim.reference, generator)
        queued = True

    return LessonSaveResponse(
        lesson=LessonPublic.model_validate(result.lesson),
        resolution=result.resolution.value if result.resolution else None,
        generation_queued=queued,
    )
