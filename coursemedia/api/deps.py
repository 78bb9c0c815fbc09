from __future__ import annotations

from fastapi import Depends, HTTPException, status

from coursemedia.core.errors import (
    AlreadyInProgress,
    GenerationFailure,
    MediaEngineError,
    NotFoundError,
    PreparationError,
    UploadFailure,
    ValidationBlocked,
)
from coursemedia.core.settings import Settings, get_settings
from coursemedia.mux.client import MuxUploadProvider, UploadProvider
from coursemedia.platforms.adapters import build_registry
from coursemedia.platforms.registry import PlatformRegistry
from coursemedia.services.transcript_providers import TranscriptGenerator, build_generator


def get_registry(settings: Settings = Depends(get_settings)) -> PlatformRegistry:
    return build_registry(settings)


def get_upload_provider(settings: Settings = Depends(get_settings)) -> UploadProvider:
    if not settings.mux_configured:
        raise HTTPException(
            status_code=status.HTTP_501_NOT_IMPLEMENTED,
            detail="Video uploads are not configured (missing MUX_TOKEN_ID/MUX_TOKEN_SECRET)",
        )
    return MuxUploadProvider.from_settings(settings)


def get_generator(
    settings: Settings = Depends(get_settings),
    registry: PlatformRegistry = Depends(get_registry),
) -> TranscriptGenerator:
    return build_generator(settings, registry)


def to_http(e: MediaEngineError) -> HTTPException:
    """Map the engine's error taxonomy onto HTTP status codes."""
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    if isinstance(e, ValidationBlocked):
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"reason": e.reason, "choices": list(e.choices), "message": str(e)},
        )
    if isinstance(e, AlreadyInProgress):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    if isinstance(e, PreparationError) and e.caller_error:
        return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    if isinstance(e, (PreparationError, UploadFailure, GenerationFailure)):
        return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
