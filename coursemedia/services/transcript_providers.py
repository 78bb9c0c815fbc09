from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Protocol

import httpx
from youtube_transcript_api import CouldNotRetrieveTranscript, YouTubeTranscriptApi

from coursemedia.core.enums import Platform, TranscriptOrigin
from coursemedia.core.errors import GenerationFailure
from coursemedia.core.settings import Settings
from coursemedia.mux.client import MuxClient
from coursemedia.mux.vtt import webvtt_to_text
from coursemedia.platforms.registry import Classification, PlatformRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TranscriptionResult:
    text: str
    origin: TranscriptOrigin


class TranscriptProvider(Protocol):
    name: str

    async def transcribe(self, reference: str, classification: Classification) -> TranscriptionResult: ...


async def _fetch_text(url: str, *, timeout_seconds: float = 15.0) -> str:
    async with httpx.AsyncClient(timeout=timeout_seconds, follow_redirects=True) as client:
        res = await client.get(url)
        res.raise_for_status()
        return res.text


class MuxCaptionProvider:
    """Reads the upload provider's auto-generated caption track for an uploaded asset."""

    name = "mux-captions"

    def __init__(self, client: MuxClient, *, language_codes: list[str] | None = None):
        self._client = client
        self._languages = [lc.lower() for lc in (language_codes or [])]

    def _pick_track(self, tracks) -> Any:
        ready = [t for t in tracks if t.status == "ready"]
        for lang in self._languages:
            for t in ready:
                if (t.language_code or "").lower().startswith(lang):
                    return t
        return ready[0] if ready else None

    async def transcribe(self, reference: str, classification: Classification) -> TranscriptionResult:
        try:
            asset_id = await self._client.lookup_playback_id(reference)
            if not asset_id:
                raise GenerationFailure("Playback id does not resolve to an asset")
            asset = await self._client.get_asset(asset_id)
            track = self._pick_track(asset.text_tracks)
            if track is None:
                raise GenerationFailure("No ready caption track on the asset")
            vtt = await _fetch_text(self._client.caption_vtt_url(reference, track.id))
        except httpx.HTTPError as e:
            raise GenerationFailure(f"Caption fetch failed: {e}") from e

        text = webvtt_to_text(vtt)
        if not text:
            raise GenerationFailure("Caption track is empty")
        return TranscriptionResult(text=text, origin=TranscriptOrigin.CAPTION_EXTRACTION)


class YouTubeCaptionProvider:
    name = "youtube-captions"

    def __init__(self, *, languages: list[str] | None = None):
        self._languages = languages or ["en"]

    def _fetch_sync(self, video_id: str) -> str:
        fetched = YouTubeTranscriptApi().fetch(video_id, languages=self._languages)
        return " ".join(s.text.strip() for s in fetched if s.text and s.text.strip())

    async def transcribe(self, reference: str, classification: Classification) -> TranscriptionResult:
        if not classification.video_id:
            raise GenerationFailure("Invalid YouTube URL or video ID")
        try:
            text = await asyncio.to_thread(self._fetch_sync, classification.video_id)
        except CouldNotRetrieveTranscript as e:
            raise GenerationFailure(f"YouTube captions unavailable: {e.__class__.__name__}") from e
        if not text.strip():
            raise GenerationFailure("YouTube returned an empty transcript")
        return TranscriptionResult(text=" ".join(text.split()), origin=TranscriptOrigin.EXTERNAL_CAPTIONS)


_RUNPOD_DONE = {"completed", "complete", "succeeded", "success"}
_RUNPOD_FAILED = {"failed", "error", "cancelled", "canceled", "timed_out"}


class RunpodClient:
    """Speech-to-text on a Runpod serverless faster-whisper endpoint.

    `/runsync` answers inline for short audio; otherwise (or when runsync is
    off) the job is polled on `/status/{id}` until it settles.
    """

    api_base = "https://api.runpod.ai/v2"

    def __init__(
        self,
        *,
        api_key: str,
        endpoint_id: str,
        model: str | None = None,
        use_runsync: bool = True,
        poll_interval_seconds: float = 3.0,
        timeout_seconds: float = 900.0,
        request_timeout: float = 60.0,
    ):
        self._endpoint = f"{self.api_base}/{endpoint_id}"
        self._auth_headers = {"Authorization": f"Bearer {api_key}"}
        self._model = model
        self._use_runsync = use_runsync
        self._poll_interval = poll_interval_seconds
        self._timeout = timeout_seconds
        self._request_timeout = request_timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "RunpodClient":
        if not settings.runpod_configured:
            raise GenerationFailure("Speech model is not configured (RUNPOD_API_KEY/RUNPOD_ENDPOINT_ID missing)")
        return cls(
            api_key=settings.runpod_api_key or "",
            endpoint_id=settings.runpod_endpoint_id or "",
            model=settings.runpod_whisper_model,
            use_runsync=bool(settings.runpod_use_runsync),
            poll_interval_seconds=float(settings.runpod_poll_interval_seconds),
            timeout_seconds=float(settings.runpod_timeout_seconds),
        )

    async def transcribe_url(self, audio_url: str) -> dict[str, Any]:
        """Submit `audio_url` and return the settled job payload."""
        job_input: dict[str, Any] = {"audio": audio_url}
        if self._model:
            job_input["model"] = self._model
        deadline = time.monotonic() + self._timeout

        async with httpx.AsyncClient(timeout=self._request_timeout, headers=self._auth_headers) as client:
            res = await client.post(
                f"{self._endpoint}/{'runsync' if self._use_runsync else 'run'}",
                json={"input": job_input},
            )
            res.raise_for_status()
            job = res.json()

            while _job_status(job) not in _RUNPOD_DONE | _RUNPOD_FAILED:
                job_id = job.get("id") or job.get("jobId") or job.get("job_id")
                if not job_id:
                    raise GenerationFailure("Runpod response missing job id")
                if time.monotonic() >= deadline:
                    raise TimeoutError(f"Runpod job {job_id} timed out")
                await asyncio.sleep(self._poll_interval)
                res = await client.get(f"{self._endpoint}/status/{job_id}")
                res.raise_for_status()
                job = res.json()
        return job


def _job_status(job: dict[str, Any]) -> str:
    return str(job.get("status") or "").lower()


def parse_runpod_transcript(payload: dict[str, Any]) -> str:
    """Pull plain text out of a faster-whisper job result (tolerant of schema drift)."""
    output = payload.get("output") or payload.get("result") or {}
    if isinstance(output, str):
        return output.strip()
    if not isinstance(output, dict):
        return ""
    for key in ("transcription", "text"):
        if isinstance(output.get(key), str) and output[key].strip():
            return output[key].strip()
    segments = output.get("segments")
    if not isinstance(segments, list):
        return ""
    return " ".join(str(s.get("text")).strip() for s in segments if isinstance(s, dict) and str(s.get("text") or "").strip())


class SpeechModelProvider:
    """Whisper transcription of the audio track."""

    name = "speech-model"

    def __init__(self, settings: Settings, *, mux_client: MuxClient | None = None):
        self._settings = settings
        self._mux = mux_client

    def _audio_url(self, reference: str, classification: Classification) -> str:
        if classification.platform == Platform.UPLOAD:
            if self._mux is None:
                raise GenerationFailure("Upload provider is not configured")
            return self._mux.audio_url(reference)
        return reference

    async def transcribe(self, reference: str, classification: Classification) -> TranscriptionResult:
        runpod = RunpodClient.from_settings(self._settings)
        try:
            job = await runpod.transcribe_url(self._audio_url(reference, classification))
        except (httpx.HTTPError, TimeoutError) as e:
            raise GenerationFailure(f"Speech model request failed: {e}") from e

        status = _job_status(job)
        if status not in _RUNPOD_DONE:
            err = job.get("error")
            raise GenerationFailure(str(err) if err else f"Speech model job did not complete (status={status})")
        text = parse_runpod_transcript(job)
        if not text:
            raise GenerationFailure("Speech model returned no text")
        return TranscriptionResult(text=text, origin=TranscriptOrigin.SPEECH_MODEL)


class TranscriptGenerator:
    """Runs the provider chain registered for a reference's platform, first success wins."""

    def __init__(self, registry: PlatformRegistry, chains: dict[Platform, list[TranscriptProvider]]):
        self._registry = registry
        self._chains = chains

    async def transcribe(self, reference: str) -> TranscriptionResult:
        classification = self._registry.classify(reference)
        chain = self._chains.get(classification.platform) or []
        if not chain:
            raise GenerationFailure(f"Transcripts are not supported for {classification.platform.value} videos")

        errors: list[str] = []
        for provider in chain:
            logger.info("Trying %s for %s", provider.name, reference)
            try:
                result = await provider.transcribe(reference, classification)
            except GenerationFailure as e:
                logger.info("%s failed: %s", provider.name, e)
                errors.append(f"{provider.name}: {e}")
                continue
            except Exception as e:
                logger.exception("%s crashed on %s", provider.name, reference)
                errors.append(f"{provider.name}: {e.__class__.__name__}: {e}")
                continue
            if result.text.strip():
                return result
            errors.append(f"{provider.name}: empty transcript")
        raise GenerationFailure("; ".join(errors))


def build_generator(settings: Settings, registry: PlatformRegistry) -> TranscriptGenerator:
    mux = MuxClient.from_settings(settings) if settings.mux_configured else None
    speech = SpeechModelProvider(settings, mux_client=mux)
    upload_chain: list[TranscriptProvider] = []
    if mux is not None:
        upload_chain.append(MuxCaptionProvider(mux, language_codes=settings.youtube_caption_languages))
    upload_chain.append(speech)
    return TranscriptGenerator(
        registry,
        {
            Platform.UPLOAD: upload_chain,
            Platform.YOUTUBE: [YouTubeCaptionProvider(languages=settings.youtube_caption_languages)],
            Platform.GENERIC_URL: [speech],
        },
    )
