from __future__ import annotations

import pytest

from coursemedia.core.enums import TranscriptOrigin, TranscriptStatus
from coursemedia.services.transcript_resolution import (
    display_info,
    has_transcript,
    is_valid_transcript,
    needs_generation,
    resolve,
    resolve_record,
)


def test_empty_record_resolves_to_none() -> None:
    r = resolve("", "", "")
    assert r.content is None
    assert r.source == TranscriptOrigin.NONE
    assert r.display_status == TranscriptStatus.PENDING
    assert not has_transcript(r)


def test_user_text_wins_over_ai() -> None:
    r = resolve("Hello", "Goodbye", None, TranscriptStatus.READY, TranscriptOrigin.SPEECH_MODEL)
    assert r.content == "Hello"
    assert r.source == TranscriptOrigin.USER
    assert r.display_status == TranscriptStatus.READY
    assert r.has_user_override is True
    assert r.has_ai_transcript is True


def test_user_text_wins_even_while_generating() -> None:
    r = resolve("typed by hand", "old ai", "legacy", TranscriptStatus.GENERATING)
    assert r.source == TranscriptOrigin.USER
    assert r.display_status == TranscriptStatus.READY


@pytest.mark.parametrize(
    "origin",
    [TranscriptOrigin.CAPTION_EXTRACTION, TranscriptOrigin.SPEECH_MODEL, TranscriptOrigin.EXTERNAL_CAPTIONS],
)
def test_ai_branch_reports_provider_origin(origin: TranscriptOrigin) -> None:
    r = resolve("   ", "machine text", "legacy", TranscriptStatus.READY, origin)
    assert r.content == "machine text"
    assert r.source == origin
    assert r.display_status == TranscriptStatus.READY


def test_ai_branch_keeps_recorded_status() -> None:
    # A regeneration in flight keeps serving the previous AI transcript.
    r = resolve(None, "previous run", None, TranscriptStatus.GENERATING, TranscriptOrigin.SPEECH_MODEL)
    assert r.content == "previous run"
    assert r.display_status == TranscriptStatus.GENERATING

    failed = resolve(None, "previous run", None, TranscriptStatus.FAILED, TranscriptOrigin.SPEECH_MODEL)
    assert failed.content == "previous run"
    assert failed.display_status == TranscriptStatus.FAILED


def test_ai_without_specific_origin_is_ai_model() -> None:
    r = resolve(None, "text", None, TranscriptStatus.READY, TranscriptOrigin.NONE)
    assert r.source == TranscriptOrigin.AI_MODEL


def test_ai_text_with_pending_status_falls_through() -> None:
    r = resolve("", "half written", "legacy notes", TranscriptStatus.PENDING)
    assert r.source == TranscriptOrigin.LEGACY
    assert r.content == "legacy notes"

    r2 = resolve("", "half written", "", TranscriptStatus.PENDING)
    assert r2.source == TranscriptOrigin.NONE
    assert r2.content is None
    assert r2.has_ai_transcript is True


def test_legacy_is_ready() -> None:
    r = resolve(None, None, "  old free text  ", TranscriptStatus.FAILED)
    assert r.content == "old free text"
    assert r.source == TranscriptOrigin.LEGACY
    assert r.display_status == TranscriptStatus.READY


def test_none_keeps_recorded_status() -> None:
    r = resolve(None, None, None, TranscriptStatus.FAILED)
    assert r.source == TranscriptOrigin.NONE
    assert r.display_status == TranscriptStatus.FAILED


def test_resolve_record_without_record() -> None:
    r = resolve_record(None, "legacy")
    assert r.source == TranscriptOrigin.LEGACY


def test_valid_transcript_threshold() -> None:
    assert not is_valid_transcript(resolve("short", None, None), min_chars=10)
    assert is_valid_transcript(resolve("long enough text", None, None), min_chars=10)
    assert not is_valid_transcript(resolve(None, None, None), min_chars=1)


def test_needs_generation() -> None:
    assert needs_generation(resolve(None, None, None), "https://youtu.be/dQw4w9WgXcQ")
    assert not needs_generation(resolve(None, None, None), None)
    assert not needs_generation(resolve("user text", None, None), "ref")
    assert needs_generation(
        resolve(None, "stale", None, TranscriptStatus.FAILED, TranscriptOrigin.SPEECH_MODEL), "ref"
    )


def test_display_info_labels() -> None:
    info = display_info(resolve("mine", "ai", None, TranscriptStatus.READY), TranscriptStatus.READY)
    assert info.status_label == "User Override"
    assert info.source_label == "User Entered"
    assert info.can_regenerate is True

    generating = display_info(resolve(None, None, None, TranscriptStatus.GENERATING), TranscriptStatus.GENERATING)
    assert generating.status_label == "Generating..."
    assert generating.status_color == "blue"
    assert generating.can_regenerate is False

    # The user override still shows READY, but regeneration stays locked while one runs.
    override_running = display_info(resolve("mine", None, None, TranscriptStatus.GENERATING), TranscriptStatus.GENERATING)
    assert override_running.status_label == "User Override"
    assert override_running.can_regenerate is False


def _expected_branch(user: bool, ai: bool, legacy: bool, status: TranscriptStatus) -> TranscriptOrigin:
    if user:
        return TranscriptOrigin.USER
    # AI text from a generation that never completed is not surfaced.
    if ai and status != TranscriptStatus.PENDING:
        return TranscriptOrigin.SPEECH_MODEL
    if legacy:
        return TranscriptOrigin.LEGACY
    return TranscriptOrigin.NONE


@pytest.mark.parametrize("status", list(TranscriptStatus))
@pytest.mark.parametrize("user", [False, True])
@pytest.mark.parametrize("ai", [False, True])
@pytest.mark.parametrize("legacy", [False, True])
@pytest.mark.parametrize("blank", [None, "", "  \n\t "])
def test_precedence_covers_every_combination(user, ai, legacy, status, blank) -> None:
    r = resolve(
        "user words" if user else blank,
        "model words" if ai else blank,
        "legacy words" if legacy else blank,
        status,
        TranscriptOrigin.SPEECH_MODEL,
    )
    branch = _expected_branch(user, ai, legacy, status)
    assert r.source == branch

    expected_content = {
        TranscriptOrigin.USER: "user words",
        TranscriptOrigin.SPEECH_MODEL: "model words",
        TranscriptOrigin.LEGACY: "legacy words",
        TranscriptOrigin.NONE: None,
    }[branch]
    assert r.content == expected_content
    assert r.has_user_override is (branch == TranscriptOrigin.USER)
    assert r.has_ai_transcript is ai

    if branch in (TranscriptOrigin.USER, TranscriptOrigin.LEGACY):
        assert r.display_status == TranscriptStatus.READY
    else:
        assert r.display_status == status


def test_pending_ai_text_falls_through_to_legacy_then_none() -> None:
    with_legacy = resolve(None, "half-written model output", "old notes", TranscriptStatus.PENDING)
    assert with_legacy.source == TranscriptOrigin.LEGACY
    assert with_legacy.content == "old notes"

    bare = resolve(None, "half-written model output", None, TranscriptStatus.PENDING)
    assert bare.source == TranscriptOrigin.NONE
    assert bare.content is None
    assert bare.display_status == TranscriptStatus.PENDING
