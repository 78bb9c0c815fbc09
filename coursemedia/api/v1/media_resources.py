from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from coursemedia.api.deps import get_registry, get_upload_provider, to_http
from coursemedia.core.errors import MediaEngineError
from coursemedia.db.models.media_resource import MediaResource
from coursemedia.db.session import get_db
from coursemedia.mux.client import UploadProvider
from coursemedia.platforms.registry import PlatformRegistry
from coursemedia.schemas.media_resource import (
    CompleteUploadResponse,
    MediaResourcePublic,
    MetadataResponse,
    PrepareUploadRequest,
    PrepareUploadResponse,
    RegisterExternalRequest,
)
from coursemedia.services import ingestion

router = APIRouter(tags=["media-resources"])


@router.get("/lessons/{lesson_id}/video", response_model=MediaResourcePublic | None)
async def get_lesson_video(lesson_id: UUID, db: AsyncSession = Depends(get_db)) -> MediaResource | None:
    try:
        await ingestion.get_lesson(db, lesson_id)
    except MediaEngineError as e:
        raise to_http(e)
    return await ingestion.get_resource_for_lesson(db, lesson_id)


@router.post("/lessons/{lesson_id}/video/uploads", response_model=PrepareUploadResponse)
async def prepare_upload(
    lesson_id: UUID,
    body: PrepareUploadRequest,
    db: AsyncSession = Depends(get_db),
    provider: UploadProvider = Depends(get_upload_provider),
) -> PrepareUploadResponse:
    """Open an upload session. The client PUTs the file bytes straight to `upload_url`."""
    try:
        prepared = await ingestion.prepare(db, lesson_id, body.title, provider=provider)
    except MediaEngineError as e:
        raise to_http(e)
    return PrepareUploadResponse(
        resource_id=prepared.resource_id,
        upload_session_id=prepared.upload_session_id,
        upload_url=prepared.upload_url,
    )


@router.post(
    "/media-resources/{resource_id}/uploads/{upload_session_id}/complete",
    response_model=CompleteUploadResponse,
)
async def complete_upload(
    resource_id: UUID,
    upload_session_id: str,
    db: AsyncSession = Depends(get_db),
    provider: UploadProvider = Depends(get_upload_provider),
) -> CompleteUploadResponse:
    try:
        playback_id = await ingestion.complete_upload(db, resource_id, upload_session_id, provider=provider)
    except MediaEngineError as e:
        raise to_http(e)
    return CompleteUploadResponse(resource_id=resource_id, playback_id=playback_id)


@router.post("/lessons/{lesson_id}/video/external", response_model=MediaResourcePublic)
async def register_external(
    lesson_id: UUID,
    body: RegisterExternalRequest,
    db: AsyncSession = Depends(get_db),
    registry: PlatformRegistry = Depends(get_registry),
) -> MediaResource:
    try:
        resource = await ingestion.register_external(
            db, lesson_id, body.url, registry=registry, auto_fetch=body.auto_fetch
        )
    except MediaEngineError as e:
        raise to_http(e)
    await db.refresh(resource)
    return resource


@router.post("/media-resources/{resource_id}/metadata", response_model=MetadataResponse)
async def fetch_metadata(
    resource_id: UUID,
    db: AsyncSession = Depends(get_db),
    registry: PlatformRegistry = Depends(get_registry),
) -> MetadataResponse:
    # Explicit fetch; works for every platform, including ones without auto fetch.
    try:
        result = await ingestion.fetch_metadata(db, resource_id, registry=registry)
    except MediaEngineError as e:
        raise to_http(e)
    return MetadataResponse(
        available=result.available,
        duration_seconds=result.duration_seconds,
        duration=ingestion.format_duration(result.duration_seconds),
        title=result.title,
        thumbnail_url=result.thumbnail_url,
        error=result.error,
    )
