from __future__ import annotations

from enum import Enum


class SourceKind(str, Enum):
    NONE = "none"
    UPLOADED = "uploaded"
    EXTERNAL_URL = "external_url"


class Platform(str, Enum):
    UPLOAD = "upload"
    GENERIC_URL = "generic_url"
    YOUTUBE = "youtube"
    VIMEO = "vimeo"
    WISTIA = "wistia"


class MediaStatus(str, Enum):
    IDLE = "idle"
    PREPARING = "preparing"
    UPLOADING = "uploading"
    PROCESSING = "processing"
    READY = "ready"
    ERROR = "error"


class TranscriptStatus(str, Enum):
    PENDING = "pending"
    GENERATING = "generating"
    READY = "ready"
    FAILED = "failed"


class TranscriptOrigin(str, Enum):
    NONE = "none"
    AI_MODEL = "ai"
    USER = "user"
    CAPTION_EXTRACTION = "caption_extraction"
    SPEECH_MODEL = "speech_model"
    EXTERNAL_CAPTIONS = "external_captions"
    LEGACY = "legacy"


class LessonType(str, Enum):
    VIDEO = "video"
    QUIZ = "quiz"
    ARTICLE = "article"
