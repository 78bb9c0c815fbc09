from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

import httpx

from coursemedia.core.settings import Settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UploadSession:
    session_id: str
    upload_url: str


@dataclass(frozen=True)
class TextTrack:
    id: str
    language_code: str | None
    status: str
    text_source: str | None = None


@dataclass(frozen=True)
class MuxAsset:
    id: str
    status: str
    duration: float | None = None
    playback_id: str | None = None
    text_tracks: tuple[TextTrack, ...] = ()
    errors: tuple[str, ...] = ()


@dataclass(frozen=True)
class UploadOutcome:
    """What the provider eventually reported for an upload session."""

    ready: bool
    playback_id: str | None = None
    asset_id: str | None = None
    duration_seconds: int | None = None
    error: str | None = None
    details: dict[str, Any] = field(default_factory=dict)


class UploadProvider(Protocol):
    async def create_session(self, *, passthrough: str | None = None) -> UploadSession: ...

    async def await_outcome(self, session_id: str) -> UploadOutcome: ...


class MuxClient:
    """Minimal Mux Video REST client.

    Endpoints used:
      POST /video/v1/uploads
      GET  /video/v1/uploads/{upload_id}
      GET  /video/v1/assets/{asset_id}
      GET  /video/v1/playback-ids/{playback_id}

    Parsing is tolerant; missing optional fields come back as None.
    """

    def __init__(
        self,
        *,
        token_id: str,
        token_secret: str,
        base_url: str = "https://api.mux.com",
        stream_base_url: str = "https://stream.mux.com",
        timeout: float = 30.0,
    ):
        self._auth = (token_id, token_secret)
        self._base = base_url.rstrip("/")
        self._stream_base = stream_base_url.rstrip("/")
        self._timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "MuxClient":
        if not settings.mux_configured:
            raise RuntimeError("Mux is not configured (MUX_TOKEN_ID/MUX_TOKEN_SECRET missing)")
        return cls(
            token_id=settings.mux_token_id or "",
            token_secret=settings.mux_token_secret or "",
            base_url=settings.mux_api_base_url,
            stream_base_url=settings.mux_stream_base_url,
        )

    async def _request(self, method: str, path: str, *, json: dict[str, Any] | None = None) -> dict[str, Any]:
        async with httpx.AsyncClient(timeout=self._timeout, auth=self._auth) as client:
            res = await client.request(method, f"{self._base}{path}", json=json)
            res.raise_for_status()
            body = res.json()
        data = body.get("data") if isinstance(body, dict) else None
        return data if isinstance(data, dict) else {}

    async def create_upload(self, *, cors_origin: str, passthrough: str | None = None) -> UploadSession:
        settings_payload: dict[str, Any] = {"playback_policy": ["public"], "encoding_tier": "smart"}
        if passthrough:
            settings_payload["passthrough"] = passthrough
        data = await self._request(
            "POST",
            "/video/v1/uploads",
            json={"new_asset_settings": settings_payload, "cors_origin": cors_origin},
        )
        upload_id = data.get("id")
        url = data.get("url")
        if not upload_id or not url:
            raise RuntimeError("Mux upload response missing id/url")
        return UploadSession(session_id=str(upload_id), upload_url=str(url))

    async def get_upload(self, upload_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/video/v1/uploads/{upload_id}")

    async def get_asset(self, asset_id: str) -> MuxAsset:
        return parse_asset(await self._request("GET", f"/video/v1/assets/{asset_id}"))

    async def lookup_playback_id(self, playback_id: str) -> str | None:
        data = await self._request("GET", f"/video/v1/playback-ids/{playback_id}")
        obj = data.get("object") or {}
        if isinstance(obj, dict) and obj.get("type") == "asset" and obj.get("id"):
            return str(obj["id"])
        return None

    def caption_vtt_url(self, playback_id: str, track_id: str) -> str:
        return f"{self._stream_base}/{playback_id}/text/{track_id}.vtt"

    def audio_url(self, playback_id: str) -> str:
        # Requires the audio-only static rendition to be enabled on the asset.
        return f"{self._stream_base}/{playback_id}/audio.m4a"


def parse_asset(data: dict[str, Any]) -> MuxAsset:
    playback_ids = data.get("playback_ids") or []
    playback_id = None
    if isinstance(playback_ids, list):
        for p in playback_ids:
            if isinstance(p, dict) and p.get("id"):
                playback_id = str(p["id"])
                break

    tracks: list[TextTrack] = []
    for t in data.get("tracks") or []:
        if not isinstance(t, dict) or t.get("type") != "text" or not t.get("id"):
            continue
        tracks.append(
            TextTrack(
                id=str(t["id"]),
                language_code=t.get("language_code"),
                status=str(t.get("status") or ""),
                text_source=t.get("text_source"),
            )
        )

    errors: list[str] = []
    err = data.get("errors")
    if isinstance(err, dict):
        errors = [str(m) for m in (err.get("messages") or [])] or [str(err.get("type") or "errored")]

    duration = data.get("duration")
    return MuxAsset(
        id=str(data.get("id") or ""),
        status=str(data.get("status") or ""),
        duration=float(duration) if duration is not None else None,
        playback_id=playback_id,
        text_tracks=tuple(tracks),
        errors=tuple(errors),
    )


class MuxUploadProvider:
    """Upload provider backed by Mux Direct Uploads."""

    _UPLOAD_FAILED = {"errored", "cancelled", "timed_out"}

    def __init__(self, client: MuxClient, *, cors_origin: str, poll_interval_seconds: float, max_attempts: int):
        self._client = client
        self._cors_origin = cors_origin
        self._poll_interval = poll_interval_seconds
        self._max_attempts = max_attempts

    @classmethod
    def from_settings(cls, settings: Settings) -> "MuxUploadProvider":
        return cls(
            MuxClient.from_settings(settings),
            cors_origin=settings.mux_cors_origin,
            poll_interval_seconds=float(settings.mux_asset_poll_interval_seconds),
            max_attempts=int(settings.mux_asset_poll_max_attempts),
        )

    async def create_session(self, *, passthrough: str | None = None) -> UploadSession:
        session = await self._client.create_upload(cors_origin=self._cors_origin, passthrough=passthrough)
        logger.info("Mux upload created: %s", session.session_id)
        return session

    async def await_outcome(self, session_id: str) -> UploadOutcome:
        asset_id: str | None = None
        for _ in range(self._max_attempts):
            if asset_id is None:
                upload = await self._client.get_upload(session_id)
                status = str(upload.get("status") or "").lower()
                if status in self._UPLOAD_FAILED:
                    err = upload.get("error") or {}
                    msg = err.get("message") if isinstance(err, dict) else None
                    return UploadOutcome(ready=False, error=msg or f"Upload {status}")
                if upload.get("asset_id"):
                    asset_id = str(upload["asset_id"])

            if asset_id is not None:
                asset = await self._client.get_asset(asset_id)
                if asset.status == "ready" and asset.playback_id:
                    duration = int(round(asset.duration)) if asset.duration is not None else None
                    return UploadOutcome(
                        ready=True,
                        playback_id=asset.playback_id,
                        asset_id=asset.id,
                        duration_seconds=duration,
                    )
                if asset.status == "errored":
                    return UploadOutcome(
                        ready=False,
                        asset_id=asset.id,
                        error="; ".join(asset.errors) or "Asset processing failed",
                    )

            await asyncio.sleep(self._poll_interval)

        raise TimeoutError(f"Mux upload {session_id} did not become ready in time")
