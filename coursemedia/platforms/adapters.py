from __future__ import annotations

import logging
import re
from functools import partial
from typing import Any

import httpx

from coursemedia.core.enums import Platform
from coursemedia.core.errors import MetadataUnavailable
from coursemedia.core.settings import Settings, get_settings
from coursemedia.mux.client import MuxClient
from coursemedia.platforms.registry import (
    VIMEO_DOMAINS,
    VIMEO_PATTERNS,
    WISTIA_DOMAINS,
    WISTIA_PATTERNS,
    YOUTUBE_DOMAINS,
    YOUTUBE_PATTERNS,
    PlatformAdapter,
    PlatformRegistry,
    VideoMetadata,
)

logger = logging.getLogger(__name__)

YOUTUBE_API_URL = "https://www.googleapis.com/youtube/v3/videos"
VIMEO_OEMBED_URL = "https://vimeo.com/api/oembed.json"
WISTIA_OEMBED_URL = "https://fast.wistia.com/oembed"

_ISO_DURATION_RE = re.compile(r"P(?:(?P<d>\d+)D)?(?:T(?:(?P<h>\d+)H)?(?:(?P<m>\d+)M)?(?:(?P<s>\d+)S)?)?")


def parse_iso8601_duration(value: str | None) -> int | None:
    """"PT1H2M10S" -> 3730. Returns None for unparseable input."""
    m = _ISO_DURATION_RE.fullmatch((value or "").strip())
    if not m or not any(m.groupdict().values()):
        return None
    d, h, mi, s = (int(m.group(k) or 0) for k in ("d", "h", "m", "s"))
    return d * 86400 + h * 3600 + mi * 60 + s


async def _get_json(url: str, *, params: dict[str, Any] | None = None, timeout_seconds: float = 10.0) -> Any:
    async with httpx.AsyncClient(timeout=timeout_seconds, follow_redirects=True) as client:
        res = await client.get(url, params=params, headers={"Accept": "application/json"})
        res.raise_for_status()
        return res.json()


async def fetch_youtube_metadata(url: str, video_id: str | None, *, settings: Settings) -> VideoMetadata:
    if not video_id:
        raise MetadataUnavailable("Invalid YouTube URL or video ID")
    if not settings.youtube_api_key:
        raise MetadataUnavailable("YouTube Data API key is not configured")
    try:
        data = await _get_json(
            YOUTUBE_API_URL,
            params={"part": "snippet,contentDetails", "id": video_id, "key": settings.youtube_api_key},
            timeout_seconds=settings.metadata_timeout_seconds,
        )
    except (httpx.HTTPError, ValueError) as e:
        raise MetadataUnavailable(f"YouTube metadata request failed: {e}") from e

    items = data.get("items") if isinstance(data, dict) else None
    if not items:
        raise MetadataUnavailable("YouTube video not found")
    video = items[0]
    snippet = video.get("snippet") or {}
    thumbs = snippet.get("thumbnails") or {}
    thumbnail = None
    for size in ("maxres", "high", "medium", "default"):
        if isinstance(thumbs.get(size), dict) and thumbs[size].get("url"):
            thumbnail = thumbs[size]["url"]
            break
    return VideoMetadata(
        duration_seconds=parse_iso8601_duration((video.get("contentDetails") or {}).get("duration")),
        title=snippet.get("title"),
        thumbnail_url=thumbnail,
    )


async def fetch_oembed_metadata(url: str, video_id: str | None, *, endpoint: str, settings: Settings) -> VideoMetadata:
    try:
        data = await _get_json(endpoint, params={"url": url}, timeout_seconds=settings.metadata_timeout_seconds)
    except (httpx.HTTPError, ValueError) as e:
        raise MetadataUnavailable(f"oEmbed request failed: {e}") from e
    if not isinstance(data, dict):
        raise MetadataUnavailable("Unexpected oEmbed response")

    duration = data.get("duration")
    # Vimeo reports integer seconds, Wistia a float.
    duration_seconds = int(round(float(duration))) if isinstance(duration, (int, float)) else None
    return VideoMetadata(
        duration_seconds=duration_seconds,
        title=data.get("title"),
        thumbnail_url=data.get("thumbnail_url"),
    )


async def fetch_upload_metadata(reference: str, video_id: str | None, *, settings: Settings) -> VideoMetadata:
    if not settings.mux_configured:
        raise MetadataUnavailable("Upload provider is not configured")
    client = MuxClient.from_settings(settings)
    try:
        asset_id = await client.lookup_playback_id(video_id or reference)
        if not asset_id:
            raise MetadataUnavailable("Playback id does not resolve to an asset")
        asset = await client.get_asset(asset_id)
    except (httpx.HTTPError, ValueError, TypeError) as e:
        raise MetadataUnavailable(f"Upload provider lookup failed: {e}") from e
    duration = int(round(asset.duration)) if asset.duration is not None else None
    return VideoMetadata(duration_seconds=duration)


def build_registry(settings: Settings | None = None) -> PlatformRegistry:
    settings = settings or get_settings()
    registry = PlatformRegistry()
    # YouTube's Data API is quota-limited: fetch only on an explicit request.
    registry.register(
        PlatformAdapter(
            platform=Platform.YOUTUBE,
            domains=YOUTUBE_DOMAINS,
            patterns=YOUTUBE_PATTERNS,
            supports_auto_metadata_fetch=False,
            fetch_metadata=partial(fetch_youtube_metadata, settings=settings),
        )
    )
    registry.register(
        PlatformAdapter(
            platform=Platform.VIMEO,
            domains=VIMEO_DOMAINS,
            patterns=VIMEO_PATTERNS,
            supports_auto_metadata_fetch=True,
            fetch_metadata=partial(fetch_oembed_metadata, endpoint=VIMEO_OEMBED_URL, settings=settings),
        )
    )
    registry.register(
        PlatformAdapter(
            platform=Platform.WISTIA,
            domains=WISTIA_DOMAINS,
            patterns=WISTIA_PATTERNS,
            supports_auto_metadata_fetch=True,
            fetch_metadata=partial(fetch_oembed_metadata, endpoint=WISTIA_OEMBED_URL, settings=settings),
        )
    )
    registry.register(
        PlatformAdapter(
            platform=Platform.UPLOAD,
            supports_auto_metadata_fetch=True,
            fetch_metadata=partial(fetch_upload_metadata, settings=settings),
        )
    )
    registry.register(PlatformAdapter(platform=Platform.GENERIC_URL))
    return registry
