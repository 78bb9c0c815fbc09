from __future__ import annotations

import logging
from dataclasses import dataclass
from urllib.parse import urlsplit
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from coursemedia.core.enums import MediaStatus, Platform, SourceKind
from coursemedia.core.errors import MetadataUnavailable, NotFoundError, PreparationError, UploadFailure
from coursemedia.db.models.lesson import Lesson
from coursemedia.db.models.media_resource import MediaResource
from coursemedia.mux.client import UploadProvider
from coursemedia.platforms.registry import PlatformRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PreparedUpload:
    resource_id: UUID
    upload_session_id: str
    upload_url: str


@dataclass(frozen=True)
class MetadataResult:
    available: bool
    duration_seconds: int | None = None
    title: str | None = None
    thumbnail_url: str | None = None
    error: str | None = None


def format_duration(seconds: int | None) -> str | None:
    """300 -> "5 min", 330 -> "5m 30s", 3720 -> "1h 2m"."""
    if seconds is None or seconds < 0:
        return None
    mins, secs = divmod(int(seconds), 60)
    if mins >= 60:
        hrs, rem = divmod(mins, 60)
        return f"{hrs}h {rem}m"
    return f"{mins}m {secs}s" if secs > 0 else f"{mins} min"


async def get_lesson(db: AsyncSession, lesson_id: UUID) -> Lesson:
    res = await db.execute(select(Lesson).where(Lesson.id == lesson_id))
    lesson = res.scalar_one_or_none()
    if lesson is None:
        raise NotFoundError("Lesson not found")
    return lesson


async def get_resource(db: AsyncSession, resource_id: UUID) -> MediaResource:
    res = await db.execute(select(MediaResource).where(MediaResource.id == resource_id))
    resource = res.scalar_one_or_none()
    if resource is None:
        raise NotFoundError("Media resource not found")
    return resource


async def get_resource_for_lesson(db: AsyncSession, lesson_id: UUID) -> MediaResource | None:
    res = await db.execute(select(MediaResource).where(MediaResource.lesson_id == lesson_id))
    return res.scalar_one_or_none()


async def _get_or_create_resource(db: AsyncSession, lesson_id: UUID) -> MediaResource:
    await get_lesson(db, lesson_id)
    resource = await get_resource_for_lesson(db, lesson_id)
    if resource is None:
        resource = MediaResource(lesson_id=lesson_id, status=MediaStatus.IDLE.value, source_kind=SourceKind.NONE.value)
        db.add(resource)
        await db.flush()
    return resource


def _mark_failed(resource: MediaResource, error: str) -> None:
    # Replace-on-error: fall back to the last playable reference, never drop it.
    resource.status = MediaStatus.ERROR.value
    resource.error = error
    if resource.ready_reference:
        resource.reference = resource.ready_reference
        resource.platform = resource.ready_platform
        resource.source_kind = resource.ready_source_kind or resource.source_kind


def _mark_ready(
    resource: MediaResource,
    *,
    reference: str,
    platform: Platform,
    source_kind: SourceKind,
    duration_seconds: int | None,
) -> None:
    resource.status = MediaStatus.READY.value
    resource.reference = reference
    resource.platform = platform.value
    resource.source_kind = source_kind.value
    resource.ready_reference = reference
    resource.ready_platform = platform.value
    resource.ready_source_kind = source_kind.value
    resource.duration_seconds = duration_seconds
    resource.error = None


async def prepare(
    db: AsyncSession,
    lesson_id: UUID,
    title: str | None,
    *,
    provider: UploadProvider,
) -> PreparedUpload:
    """Allocate (or reuse) the lesson's media resource and open an upload session."""
    clean_title = (title or "").strip()
    if not clean_title:
        raise PreparationError("A title is required before uploading a video", caller_error=True)

    resource = await _get_or_create_resource(db, lesson_id)
    resource.status = MediaStatus.PREPARING.value
    resource.title = clean_title[:255]
    resource.error = None
    await db.commit()

    try:
        session = await provider.create_session(passthrough=str(resource.id))
    except Exception as e:
        logger.warning("Upload session creation failed for resource %s: %s", resource.id, e)
        _mark_failed(resource, f"Failed to create upload session: {e}")
        await db.commit()
        raise PreparationError(f"Failed to create upload session: {e}") from e

    resource.source_kind = SourceKind.UPLOADED.value
    resource.platform = Platform.UPLOAD.value
    resource.reference = session.session_id
    if resource.completed_session_id == session.session_id:
        # Providers may recycle ids; a fresh session must not short-circuit as already completed.
        resource.completed_session_id = None
    resource.upload_session_id = session.session_id
    resource.upload_url = session.upload_url
    resource.status = MediaStatus.UPLOADING.value
    await db.commit()
    logger.info("Resource %s uploading via session %s", resource.id, session.session_id)

    return PreparedUpload(
        resource_id=resource.id,
        upload_session_id=session.session_id,
        upload_url=session.upload_url,
    )


async def complete_upload(
    db: AsyncSession,
    resource_id: UUID,
    upload_session_id: str,
    *,
    provider: UploadProvider,
) -> str:
    """
    Called once the byte transfer finished. Returns the playback handle.

    Idempotent per (resource, session): a repeated signal for a completed
    session returns the stored handle without touching the provider.
    """
    resource = await get_resource(db, resource_id)
    session_id = (upload_session_id or "").strip()

    if session_id and session_id == resource.completed_session_id and resource.ready_reference:
        return resource.ready_reference
    if not session_id or session_id != resource.upload_session_id:
        raise UploadFailure("Unknown upload session for this resource")

    resource.status = MediaStatus.PROCESSING.value
    resource.error = None
    await db.commit()

    try:
        outcome = await provider.await_outcome(session_id)
    except Exception as e:
        logger.warning("Upload %s for resource %s failed: %s", session_id, resource.id, e)
        _mark_failed(resource, str(e) or "Upload provider did not respond")
        await db.commit()
        raise UploadFailure(str(e) or "Upload provider did not respond") from e

    # A concurrent completion may have finished first.
    await db.refresh(resource)
    if resource.completed_session_id == session_id and resource.ready_reference:
        return resource.ready_reference

    if not outcome.ready or not outcome.playback_id:
        _mark_failed(resource, outcome.error or "Upload processing failed")
        await db.commit()
        raise UploadFailure(outcome.error or "Upload processing failed")

    _apply_upload_success(
        resource,
        session_id=session_id,
        playback_id=outcome.playback_id,
        asset_id=outcome.asset_id,
        duration_seconds=outcome.duration_seconds,
    )
    await db.commit()
    logger.info("Resource %s ready with playback %s", resource.id, outcome.playback_id)
    return outcome.playback_id


def _apply_upload_success(
    resource: MediaResource,
    *,
    session_id: str,
    playback_id: str,
    asset_id: str | None,
    duration_seconds: int | None,
) -> None:
    _mark_ready(
        resource,
        reference=playback_id,
        platform=Platform.UPLOAD,
        source_kind=SourceKind.UPLOADED,
        duration_seconds=duration_seconds,
    )
    resource.completed_session_id = session_id
    resource.provider_asset_id = asset_id
    resource.upload_url = None


async def register_external(
    db: AsyncSession,
    lesson_id: UUID,
    url: str,
    *,
    registry: PlatformRegistry,
    auto_fetch: bool = True,
) -> MediaResource:
    raw = (url or "").strip()
    try:
        parts = urlsplit(raw)
    except ValueError:
        parts = None
    if parts is None or parts.scheme.lower() not in {"http", "https"} or not parts.netloc:
        raise PreparationError("Video URL must start with http:// or https://", caller_error=True)

    classification = registry.classify(raw)
    resource = await _get_or_create_resource(db, lesson_id)
    _mark_ready(
        resource,
        reference=raw,
        platform=classification.platform,
        source_kind=SourceKind.EXTERNAL_URL,
        duration_seconds=None,
    )
    resource.upload_session_id = None
    resource.upload_url = None
    resource.provider_asset_id = None
    resource.title = None
    resource.thumbnail_url = None
    await db.commit()
    logger.info("Resource %s registered external %s URL", resource.id, classification.platform.value)

    if auto_fetch and classification.supports_auto_metadata_fetch:
        await fetch_metadata(db, resource.id, registry=registry)
    return resource


async def fetch_metadata(db: AsyncSession, resource_id: UUID, *, registry: PlatformRegistry) -> MetadataResult:
    """Best-effort duration/title/thumbnail lookup. Never raises for provider errors."""
    resource = await get_resource(db, resource_id)
    ref = resource.reference if resource.status == MediaStatus.READY.value else resource.ready_reference
    if not ref:
        return MetadataResult(available=False, error="No playable video yet")

    try:
        meta = await registry.fetch_metadata(ref)
    except MetadataUnavailable as e:
        logger.warning("Metadata unavailable for resource %s: %s", resource.id, e)
        return MetadataResult(available=False, error=str(e))
    except Exception as e:
        logger.exception("Metadata lookup crashed for resource %s", resource.id)
        return MetadataResult(available=False, error=f"Metadata lookup failed: {e}")

    await db.refresh(resource)
    if ref not in (resource.reference, resource.ready_reference):
        # Video was replaced while we were fetching.
        return MetadataResult(available=False, error="Video changed during metadata fetch")

    if meta.duration_seconds is not None:
        resource.duration_seconds = meta.duration_seconds
    if meta.title:
        resource.title = meta.title[:255]
    if meta.thumbnail_url:
        resource.thumbnail_url = meta.thumbnail_url
    await db.commit()
    return MetadataResult(
        available=True,
        duration_seconds=meta.duration_seconds,
        title=meta.title,
        thumbnail_url=meta.thumbnail_url,
    )


async def handle_provider_event(
    db: AsyncSession,
    *,
    upload_session_id: str,
    event: str,
    playback_id: str | None = None,
    asset_id: str | None = None,
    duration_seconds: int | None = None,
    error: str | None = None,
) -> MediaResource | None:
    """
    Apply an asynchronous upload-provider notification.

    `event` is one of "asset_created", "ready", "errored". Delivery is
    at-least-once, so replays of an already-applied event are no-ops.
    """
    res = await db.execute(
        select(MediaResource).where(
            or_(
                MediaResource.upload_session_id == upload_session_id,
                MediaResource.completed_session_id == upload_session_id,
            )
        )
    )
    resource = res.scalars().first()
    if resource is None:
        return None
    if resource.completed_session_id == upload_session_id:
        return resource
    if resource.upload_session_id != upload_session_id:
        return resource

    if event == "asset_created":
        if resource.status in (MediaStatus.UPLOADING.value, MediaStatus.PREPARING.value):
            resource.status = MediaStatus.PROCESSING.value
            resource.provider_asset_id = asset_id or resource.provider_asset_id
    elif event == "ready":
        if not playback_id:
            return resource
        _apply_upload_success(
            resource,
            session_id=upload_session_id,
            playback_id=playback_id,
            asset_id=asset_id,
            duration_seconds=duration_seconds,
        )
        logger.info("Resource %s ready via provider event", resource.id)
    elif event == "errored":
        _mark_failed(resource, error or "Upload processing failed")
        logger.warning("Resource %s errored via provider event: %s", resource.id, error)
    else:
        return resource

    await db.commit()
    return resource
