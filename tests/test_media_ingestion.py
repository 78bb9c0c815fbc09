from __future__ import annotations

from dataclasses import replace
from uuid import uuid4

import pytest

from coursemedia.core.enums import MediaStatus, Platform, SourceKind
from coursemedia.core.errors import MetadataUnavailable, NotFoundError, PreparationError, UploadFailure
from coursemedia.core.settings import Settings
from coursemedia.mux.client import UploadOutcome, UploadSession
from coursemedia.platforms import adapters
from coursemedia.platforms.adapters import build_registry
from coursemedia.services import ingestion


class FakeUploadProvider:
    def __init__(
        self,
        *,
        outcome: UploadOutcome | None = None,
        fail_create: bool = False,
        fail_wait: bool = False,
        prefix: str = "upl",
    ):
        self.prefix = prefix
        self.outcome = outcome or UploadOutcome(ready=True, playback_id="pbk1234567890abcdef", asset_id="asset-1", duration_seconds=330)
        self.fail_create = fail_create
        self.fail_wait = fail_wait
        self.created = 0
        self.waited = 0

    async def create_session(self, *, passthrough: str | None = None) -> UploadSession:
        self.created += 1
        if self.fail_create:
            raise RuntimeError("provider unreachable")
        return UploadSession(session_id=f"{self.prefix}{self.created:04d}abcdefgh", upload_url=f"https://storage.example/{self.created}")

    async def await_outcome(self, session_id: str) -> UploadOutcome:
        self.waited += 1
        if self.fail_wait:
            raise TimeoutError("upload did not become ready in time")
        return self.outcome


def test_format_duration() -> None:
    assert ingestion.format_duration(300) == "5 min"
    assert ingestion.format_duration(330) == "5m 30s"
    assert ingestion.format_duration(3720) == "1h 2m"
    assert ingestion.format_duration(45) == "0m 45s"
    assert ingestion.format_duration(None) is None


@pytest.mark.asyncio
async def test_prepare_requires_title(db, make_lesson) -> None:
    lesson = await make_lesson()
    provider = FakeUploadProvider()
    with pytest.raises(PreparationError) as exc:
        await ingestion.prepare(db, lesson.id, "   ", provider=provider)
    assert exc.value.caller_error is True
    assert provider.created == 0
    assert await ingestion.get_resource_for_lesson(db, lesson.id) is None


@pytest.mark.asyncio
async def test_prepare_unknown_lesson(db) -> None:
    with pytest.raises(NotFoundError):
        await ingestion.prepare(db, uuid4(), "Title", provider=FakeUploadProvider())


@pytest.mark.asyncio
async def test_upload_happy_path(db, make_lesson) -> None:
    lesson = await make_lesson()
    provider = FakeUploadProvider()

    prepared = await ingestion.prepare(db, lesson.id, "My Lesson", provider=provider)
    resource = await ingestion.get_resource(db, prepared.resource_id)
    assert resource.status == MediaStatus.UPLOADING.value
    assert resource.reference == prepared.upload_session_id
    assert prepared.upload_url.startswith("https://storage.example/")

    playback = await ingestion.complete_upload(db, prepared.resource_id, prepared.upload_session_id, provider=provider)
    assert playback == "pbk1234567890abcdef"

    resource = await ingestion.get_resource(db, prepared.resource_id)
    assert resource.status == MediaStatus.READY.value
    assert resource.reference == playback
    assert resource.platform == Platform.UPLOAD.value
    assert resource.source_kind == SourceKind.UPLOADED.value
    assert resource.duration_seconds == 330


@pytest.mark.asyncio
async def test_complete_upload_is_idempotent(db, make_lesson) -> None:
    lesson = await make_lesson()
    provider = FakeUploadProvider()
    prepared = await ingestion.prepare(db, lesson.id, "My Lesson", provider=provider)

    first = await ingestion.complete_upload(db, prepared.resource_id, prepared.upload_session_id, provider=provider)
    second = await ingestion.complete_upload(db, prepared.resource_id, prepared.upload_session_id, provider=provider)

    assert first == second
    assert provider.waited == 1


@pytest.mark.asyncio
async def test_unknown_session_changes_nothing(db, make_lesson) -> None:
    lesson = await make_lesson()
    provider = FakeUploadProvider()
    prepared = await ingestion.prepare(db, lesson.id, "My Lesson", provider=provider)

    with pytest.raises(UploadFailure):
        await ingestion.complete_upload(db, prepared.resource_id, "someone-elses-session", provider=provider)

    resource = await ingestion.get_resource(db, prepared.resource_id)
    assert resource.status == MediaStatus.UPLOADING.value
    assert provider.waited == 0


@pytest.mark.asyncio
async def test_failed_replacement_keeps_previous_ready_reference(db, make_lesson) -> None:
    lesson = await make_lesson()
    ok = FakeUploadProvider()
    first = await ingestion.prepare(db, lesson.id, "My Lesson", provider=ok)
    original = await ingestion.complete_upload(db, first.resource_id, first.upload_session_id, provider=ok)

    broken = FakeUploadProvider(outcome=UploadOutcome(ready=False, error="transcode failed"), prefix="brk")
    second = await ingestion.prepare(db, lesson.id, "My Lesson", provider=broken)
    assert second.resource_id == first.resource_id

    with pytest.raises(UploadFailure):
        await ingestion.complete_upload(db, second.resource_id, second.upload_session_id, provider=broken)

    resource = await ingestion.get_resource(db, second.resource_id)
    assert resource.status == MediaStatus.ERROR.value
    assert resource.error == "transcode failed"
    assert resource.reference == original
    assert resource.ready_reference == original


@pytest.mark.asyncio
async def test_recycled_session_id_is_not_treated_as_completed(db, make_lesson) -> None:
    lesson = await make_lesson()
    ok = FakeUploadProvider()
    first = await ingestion.prepare(db, lesson.id, "My Lesson", provider=ok)
    original = await ingestion.complete_upload(db, first.resource_id, first.upload_session_id, provider=ok)

    # A second provider hands out the same session id again.
    broken = FakeUploadProvider(outcome=UploadOutcome(ready=False, error="transcode failed"))
    second = await ingestion.prepare(db, lesson.id, "My Lesson", provider=broken)
    assert second.upload_session_id == first.upload_session_id

    with pytest.raises(UploadFailure):
        await ingestion.complete_upload(db, second.resource_id, second.upload_session_id, provider=broken)
    assert broken.waited == 1

    resource = await ingestion.get_resource(db, second.resource_id)
    assert resource.status == MediaStatus.ERROR.value
    assert resource.reference == original


@pytest.mark.asyncio
async def test_provider_timeout_is_upload_failure(db, make_lesson) -> None:
    lesson = await make_lesson()
    provider = FakeUploadProvider(fail_wait=True)
    prepared = await ingestion.prepare(db, lesson.id, "My Lesson", provider=provider)

    with pytest.raises(UploadFailure):
        await ingestion.complete_upload(db, prepared.resource_id, prepared.upload_session_id, provider=provider)

    resource = await ingestion.get_resource(db, prepared.resource_id)
    assert resource.status == MediaStatus.ERROR.value


@pytest.mark.asyncio
async def test_unreachable_provider_on_prepare(db, make_lesson) -> None:
    lesson = await make_lesson()
    with pytest.raises(PreparationError) as exc:
        await ingestion.prepare(db, lesson.id, "My Lesson", provider=FakeUploadProvider(fail_create=True))
    assert exc.value.caller_error is False

    resource = await ingestion.get_resource_for_lesson(db, lesson.id)
    assert resource is not None
    assert resource.status == MediaStatus.ERROR.value


@pytest.mark.asyncio
async def test_register_external_rejects_bad_scheme(db, make_lesson) -> None:
    lesson = await make_lesson()
    registry = build_registry(Settings())
    with pytest.raises(PreparationError):
        await ingestion.register_external(db, lesson.id, "ftp://example.com/video.mp4", registry=registry)


@pytest.mark.asyncio
async def test_register_youtube_does_not_auto_fetch(db, make_lesson, monkeypatch) -> None:
    calls = []

    async def fake_get_json(url, *, params=None, timeout_seconds=10.0):
        calls.append(url)
        return {}

    monkeypatch.setattr(adapters, "_get_json", fake_get_json)
    lesson = await make_lesson()
    registry = build_registry(Settings(YOUTUBE_API_KEY="yt-key"))

    resource = await ingestion.register_external(db, lesson.id, "https://youtu.be/dQw4w9WgXcQ", registry=registry)
    assert resource.status == MediaStatus.READY.value
    assert resource.platform == Platform.YOUTUBE.value
    assert resource.source_kind == SourceKind.EXTERNAL_URL.value
    assert resource.duration_seconds is None
    assert calls == []


@pytest.mark.asyncio
async def test_register_vimeo_auto_fetches_metadata(db, make_lesson, monkeypatch) -> None:
    async def fake_get_json(url, *, params=None, timeout_seconds=10.0):
        assert url == adapters.VIMEO_OEMBED_URL
        return {"title": "Loops", "duration": 330, "thumbnail_url": "https://i.vimeocdn.com/t.jpg"}

    monkeypatch.setattr(adapters, "_get_json", fake_get_json)
    lesson = await make_lesson()
    registry = build_registry(Settings())

    resource = await ingestion.register_external(db, lesson.id, "https://vimeo.com/76979871", registry=registry)
    resource = await ingestion.get_resource(db, resource.id)
    assert resource.status == MediaStatus.READY.value
    assert resource.duration_seconds == 330
    assert resource.title == "Loops"


@pytest.mark.asyncio
async def test_metadata_failure_is_swallowed(db, make_lesson, monkeypatch) -> None:
    async def fake_get_json(url, *, params=None, timeout_seconds=10.0):
        raise MetadataUnavailable("oEmbed down")

    monkeypatch.setattr(adapters, "_get_json", fake_get_json)
    lesson = await make_lesson()
    registry = build_registry(Settings())

    resource = await ingestion.register_external(db, lesson.id, "https://vimeo.com/76979871", registry=registry)
    assert resource.status == MediaStatus.READY.value

    result = await ingestion.fetch_metadata(db, resource.id, registry=registry)
    assert result.available is False
    assert result.error


@pytest.mark.asyncio
async def test_explicit_fetch_for_youtube(db, make_lesson, monkeypatch) -> None:
    async def fake_get_json(url, *, params=None, timeout_seconds=10.0):
        return {"items": [{"snippet": {"title": "Talk"}, "contentDetails": {"duration": "PT1H2M"}}]}

    monkeypatch.setattr(adapters, "_get_json", fake_get_json)
    lesson = await make_lesson()
    registry = build_registry(Settings(YOUTUBE_API_KEY="yt-key"))
    resource = await ingestion.register_external(db, lesson.id, "https://youtu.be/dQw4w9WgXcQ", registry=registry)

    result = await ingestion.fetch_metadata(db, resource.id, registry=registry)
    assert result.available is True
    assert result.duration_seconds == 3720
    assert ingestion.format_duration(result.duration_seconds) == "1h 2m"


@pytest.mark.asyncio
async def test_provider_events_are_idempotent(db, make_lesson) -> None:
    lesson = await make_lesson()
    provider = FakeUploadProvider()
    prepared = await ingestion.prepare(db, lesson.id, "My Lesson", provider=provider)

    r1 = await ingestion.handle_provider_event(
        db, upload_session_id=prepared.upload_session_id, event="asset_created", asset_id="asset-9"
    )
    assert r1.status == MediaStatus.PROCESSING.value

    for _ in range(2):
        r2 = await ingestion.handle_provider_event(
            db,
            upload_session_id=prepared.upload_session_id,
            event="ready",
            playback_id="pbkFromWebhook123",
            asset_id="asset-9",
            duration_seconds=61,
        )
        assert r2.status == MediaStatus.READY.value
        assert r2.reference == "pbkFromWebhook123"

    # A late error for an already-completed session is ignored.
    r3 = await ingestion.handle_provider_event(db, upload_session_id=prepared.upload_session_id, event="errored")
    assert r3.status == MediaStatus.READY.value

    # The client's own completion signal now short-circuits.
    playback = await ingestion.complete_upload(db, prepared.resource_id, prepared.upload_session_id, provider=provider)
    assert playback == "pbkFromWebhook123"
    assert provider.waited == 0

    assert await ingestion.handle_provider_event(db, upload_session_id="unknown", event="ready") is None


@pytest.mark.asyncio
async def test_unexpected_metadata_error_is_not_fatal(db, make_lesson, monkeypatch) -> None:
    async def fake_get_json(url, *, params=None, timeout_seconds=10.0):
        return {"title": "Loops", "duration": 330}

    monkeypatch.setattr(adapters, "_get_json", fake_get_json)
    lesson = await make_lesson()
    registry = build_registry(Settings())
    resource = await ingestion.register_external(db, lesson.id, "https://vimeo.com/76979871", registry=registry)

    async def broken_fetcher(reference, video_id):
        raise ValueError("bad json from provider")

    vimeo = registry.adapter_for(Platform.VIMEO)
    registry.register(replace(vimeo, fetch_metadata=broken_fetcher))

    result = await ingestion.fetch_metadata(db, resource.id, registry=registry)
    assert result.available is False
    assert "bad json" in result.error

    # The auto-fetch during registration swallows it too.
    again = await ingestion.register_external(db, lesson.id, "https://vimeo.com/11111111", registry=registry)
    assert again.status == MediaStatus.READY.value
    assert again.reference == "https://vimeo.com/11111111"
