from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from coursemedia.api.deps import get_registry
from coursemedia.platforms.registry import PlatformRegistry
from coursemedia.schemas.media_resource import ClassificationPublic

router = APIRouter(tags=["platforms"])


@router.get("/platforms/classify", response_model=ClassificationPublic)
async def classify(
    url: str = Query(default="", max_length=2048),
    registry: PlatformRegistry = Depends(get_registry),
) -> ClassificationPublic:
    c = registry.classify(url)
    return ClassificationPublic(
        platform=c.platform.value,
        supports_auto_metadata_fetch=c.supports_auto_metadata_fetch,
        video_id=c.video_id,
    )
