from __future__ import annotations

from fastapi import APIRouter

from coursemedia.api.v1 import lessons, media_resources, platforms

api_router = APIRouter()
api_router.include_router(lessons.router)
api_router.include_router(media_resources.router)
api_router.include_router(platforms.router)
