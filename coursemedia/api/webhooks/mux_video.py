from __future__ import annotations

import hmac
import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from coursemedia.core.settings import Settings, get_settings
from coursemedia.db.session import get_db
from coursemedia.mux.client import parse_asset
from coursemedia.services.ingestion import handle_provider_event

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/webhooks/mux", tags=["webhooks"])


# Mux event type -> engine event.
EVENT_MAP = {
    "video.upload.asset_created": "asset_created",
    "video.asset.ready": "ready",
    "video.asset.errored": "errored",
    "video.upload.errored": "errored",
    "video.upload.cancelled": "errored",
}


class MuxWebhookPayload(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: str = Field(..., min_length=1, max_length=128)
    data: dict[str, Any] = Field(default_factory=dict)


def _session_id_for(event_type: str, data: dict[str, Any]) -> str | None:
    # Upload events carry the upload as `data`; asset events reference it via `upload_id`.
    if event_type.startswith("video.upload."):
        return data.get("id")
    return data.get("upload_id")


@router.post("/{secret}")
async def mux_webhook(
    secret: str,
    payload: MuxWebhookPayload,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> dict:
    """
    Webhook handler for Mux Video.

    Delivery is at-least-once: the ingestion state machine ignores events for
    sessions that already completed, so replays are harmless. Unknown event
    types and unknown sessions are acknowledged and ignored.
    """
    expected = (settings.mux_webhook_secret or "").strip()
    if not expected:
        raise HTTPException(status_code=status.HTTP_501_NOT_IMPLEMENTED, detail="Mux webhook is not configured")
    if not hmac.compare_digest(secret, expected):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid webhook secret")

    event = EVENT_MAP.get(payload.type)
    if event is None:
        return {"ok": True, "ignored": True, "reason": "unhandled event type"}

    data = payload.data or {}
    session_id = _session_id_for(payload.type, data)
    if not session_id:
        return {"ok": True, "ignored": True, "reason": "event has no upload id"}

    playback_id = asset_id = error = None
    duration_seconds: int | None = None
    if payload.type.startswith("video.asset."):
        asset = parse_asset(data)
        asset_id = asset.id or None
        playback_id = asset.playback_id
        if asset.duration is not None:
            duration_seconds = int(round(asset.duration))
        error = "; ".join(asset.errors) or None
    else:
        asset_id = data.get("asset_id")
        err = data.get("error")
        if isinstance(err, dict):
            error = err.get("message")
        if payload.type == "video.upload.cancelled":
            error = error or "Upload cancelled"

    resource = await handle_provider_event(
        db,
        upload_session_id=str(session_id),
        event=event,
        playback_id=playback_id,
        asset_id=asset_id,
        duration_seconds=duration_seconds,
        error=error,
    )
    if resource is None:
        # The session may belong to another environment sharing the Mux account.
        logger.info("Mux %s for unknown upload %s ignored", payload.type, session_id)
        return {"ok": True, "ignored": True, "reason": "media resource not found"}
    return {"ok": True, "status": resource.status}
