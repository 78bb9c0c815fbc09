from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Iterable
from urllib.parse import urlsplit

from coursemedia.core.enums import Platform
from coursemedia.core.errors import MetadataUnavailable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Classification:
    platform: Platform
    supports_auto_metadata_fetch: bool
    video_id: str | None = None


@dataclass(frozen=True)
class VideoMetadata:
    duration_seconds: int | None
    title: str | None = None
    thumbnail_url: str | None = None


# (reference, video_id) -> metadata; raises MetadataUnavailable.
MetadataFetcher = Callable[[str, "str | None"], Awaitable[VideoMetadata]]


@dataclass(frozen=True)
class PlatformAdapter:
    """
    One video source.

    `domains` are matched against the URL host (exact or any subdomain);
    `patterns` pair a domain with a regex matched from the start of the
    path (plus query) and may capture the platform video id as `id`.

    `supports_auto_metadata_fetch` says whether callers may fetch metadata
    implicitly (on URL entry/blur). Providers with quota or consent-sensitive
    APIs set it to False and are only queried on an explicit user request.
    """

    platform: Platform
    domains: tuple[str, ...] = ()
    patterns: tuple[tuple[str, re.Pattern[str]], ...] = ()
    supports_auto_metadata_fetch: bool = False
    fetch_metadata: MetadataFetcher | None = None

    def match_length(self, host: str, target: str) -> tuple[int, str | None]:
        best_len = 0
        best_id: str | None = None
        for domain in self.domains:
            if _on_domain(host, domain):
                best_len = max(best_len, len(domain))
        if not best_len:
            return 0, None
        for domain, pattern in self.patterns:
            if not _on_domain(host, domain):
                continue
            m = pattern.match(target)
            if m and len(domain) + m.end() > best_len:
                best_len = len(domain) + m.end()
                best_id = m.groupdict().get("id")
        return best_len, best_id


def _on_domain(host: str, domain: str) -> bool:
    return host == domain or host.endswith("." + domain)


_HTTP_SCHEMES = {"http", "https"}

# Upload-provider playback ids / session handles: opaque, no dots or slashes.
_OPAQUE_TOKEN_RE = re.compile(r"[A-Za-z0-9][A-Za-z0-9_-]{7,127}")


def _p(*routes: tuple[str, str]) -> tuple[tuple[str, re.Pattern[str]], ...]:
    return tuple((domain, re.compile(p, re.IGNORECASE)) for domain, p in routes)


YOUTUBE_DOMAINS = ("youtube.com", "youtu.be", "youtube-nocookie.com")
YOUTUBE_PATTERNS = _p(
    ("youtube.com", r"/watch\?(?:[^#]*&)?v=(?P<id>[A-Za-z0-9_-]{11})"),
    ("youtube.com", r"/(?:embed|shorts|v|live)/(?P<id>[A-Za-z0-9_-]{11})"),
    ("youtube-nocookie.com", r"/embed/(?P<id>[A-Za-z0-9_-]{11})"),
    ("youtu.be", r"/(?P<id>[A-Za-z0-9_-]{11})"),
)

VIMEO_DOMAINS = ("vimeo.com",)
VIMEO_PATTERNS = _p(
    # Covers vimeo.com/<id>, /channels/<name>/<id> and player.vimeo.com/video/<id>.
    ("vimeo.com", r"/(?:[^?#]*/)?(?P<id>\d+)"),
)

WISTIA_DOMAINS = ("wistia.com", "wistia.net", "wi.st")
WISTIA_PATTERNS = _p(
    ("wistia.com", r"/medias/(?P<id>[A-Za-z0-9]+)"),
    ("wi.st", r"/medias/(?P<id>[A-Za-z0-9]+)"),
    ("wistia.net", r"/embed/(?:iframe|medias)/(?P<id>[A-Za-z0-9]+)"),
    ("wistia.com", r"/embed/(?:iframe|medias)/(?P<id>[A-Za-z0-9]+)"),
)


@dataclass
class PlatformRegistry:
    external: list[PlatformAdapter] = field(default_factory=list)
    upload: PlatformAdapter = field(default_factory=lambda: PlatformAdapter(platform=Platform.UPLOAD))
    generic: PlatformAdapter = field(default_factory=lambda: PlatformAdapter(platform=Platform.GENERIC_URL))

    def register(self, adapter: PlatformAdapter) -> None:
        if adapter.platform == Platform.UPLOAD:
            self.upload = adapter
        elif adapter.platform == Platform.GENERIC_URL:
            self.generic = adapter
        else:
            self.external = [a for a in self.external if a.platform != adapter.platform] + [adapter]

    def adapters(self) -> Iterable[PlatformAdapter]:
        yield from self.external
        yield self.upload
        yield self.generic

    def adapter_for(self, platform: Platform | str) -> PlatformAdapter:
        platform = Platform(platform)
        for adapter in self.adapters():
            if adapter.platform == platform:
                return adapter
        return self.generic

    def _result(self, adapter: PlatformAdapter, video_id: str | None = None) -> Classification:
        auto = bool(adapter.supports_auto_metadata_fetch and adapter.fetch_metadata is not None)
        return Classification(platform=adapter.platform, supports_auto_metadata_fetch=auto, video_id=video_id)

    def classify(self, url: str | None) -> Classification:
        """Classify a raw video reference. Never raises."""
        raw = (url or "").strip()
        malformed = Classification(platform=Platform.GENERIC_URL, supports_auto_metadata_fetch=False)
        if not raw or any(ch.isspace() for ch in raw):
            return malformed

        has_scheme = "://" in raw
        try:
            parts = urlsplit(raw)
            # Bare "host/path" input: parse it as a network path so the host lands in netloc.
            located = parts if has_scheme else urlsplit("//" + raw)
            host = (located.hostname or "").rstrip(".")
        except ValueError:
            return malformed
        scheme = (parts.scheme or "").lower()

        if host and (not has_scheme or scheme in _HTTP_SCHEMES):
            target = located.path or "/"
            if located.query:
                target = f"{target}?{located.query}"
            best: PlatformAdapter | None = None
            best_len = 0
            best_id: str | None = None
            # Longest match wins; ties keep registration order.
            for adapter in self.external:
                length, video_id = adapter.match_length(host, target)
                if length > best_len:
                    best, best_len, best_id = adapter, length, video_id
            if best is not None:
                return self._result(best, best_id)

        if has_scheme:
            if scheme in _HTTP_SCHEMES and parts.netloc:
                return self._result(self.generic)
            return malformed

        if _OPAQUE_TOKEN_RE.fullmatch(raw):
            return self._result(self.upload, raw)
        return malformed

    async def fetch_metadata(self, url: str, *, classification: Classification | None = None) -> VideoMetadata:
        c = classification or self.classify(url)
        adapter = self.adapter_for(c.platform)
        if adapter.fetch_metadata is None:
            raise MetadataUnavailable(f"No metadata source for platform {c.platform.value}")
        logger.info("Fetching %s metadata for %s", c.platform.value, url)
        return await adapter.fetch_metadata(url, c.video_id)
