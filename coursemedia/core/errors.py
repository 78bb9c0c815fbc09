from __future__ import annotations

from dataclasses import dataclass, field


class MediaEngineError(Exception):
    """Base class for lesson media / transcript errors."""


class NotFoundError(MediaEngineError):
    pass


class PreparationError(MediaEngineError):
    """An upload session or media resource could not be allocated.

    `caller_error` distinguishes bad input (missing title, bad URL scheme) from
    an unreachable provider.
    """

    def __init__(self, message: str, *, caller_error: bool = False) -> None:
        super().__init__(message)
        self.caller_error = caller_error


class UploadFailure(MediaEngineError):
    """The upload provider reported an ingest/transcode failure (or timed out)."""


class GenerationFailure(MediaEngineError):
    """Transcript provider error, timeout, or unsupported source."""


class AlreadyInProgress(MediaEngineError):
    def __init__(self, lesson_id) -> None:
        super().__init__(f"A transcript generation is already running for lesson {lesson_id}")
        self.lesson_id = lesson_id


class MetadataUnavailable(MediaEngineError):
    """Best-effort metadata fetch failed. Always recovered locally."""


@dataclass(eq=False)
class ValidationBlocked(MediaEngineError):
    """Deliberate save-time refusal.

    `reason` names the guard row that fired; `choices` are the resolutions the
    caller can offer the editor.
    """

    reason: str
    choices: list[str] = field(default_factory=list)
    message: str = ""

    def __post_init__(self) -> None:
        super().__init__(self.message or self.reason)

    def __str__(self) -> str:
        return self.message or self.reason
