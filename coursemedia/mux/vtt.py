from __future__ import annotations

import re
from dataclasses import dataclass


@dataclass(frozen=True)
class VttCue:
    start_sec: float
    end_sec: float
    text: str


_TS_RE = re.compile(
    r"^\s*(?P<s>(?:\d{1,2}:)?\d{1,2}:\d{2}\.\d{3})\s*-->\s*(?P<e>(?:\d{1,2}:)?\d{1,2}:\d{2}\.\d{3})"
)
_TAG_RE = re.compile(r"<[^>]+>")
_SETTING_RE = re.compile(r"\s+(?:align|position|line|size|vertical):\S+", re.IGNORECASE)
_REPEAT_RE = re.compile(r"\b(\w+)(\s+\1\b){2,}", re.IGNORECASE)
_SENTENCE_SPLIT_RE = re.compile(r"(?<=[.!?])\s+")


def _parse_timestamp(ts: str) -> float:
    parts = ts.strip().split(":")
    secs, ms = parts[-1].split(".")
    total = int(secs) + int(ms) / 1000.0
    if len(parts) == 3:
        total += int(parts[0]) * 3600 + int(parts[1]) * 60
    else:
        total += int(parts[0]) * 60
    return total


def clean_cue_text(line: str) -> str:
    """Strip voice/class/style tags and trailing cue settings from a caption line."""
    cleaned = _TAG_RE.sub("", line)
    cleaned = _SETTING_RE.sub("", cleaned)
    return " ".join(cleaned.split())


def parse_webvtt(text: str) -> list[VttCue]:
    """
    Parse a WebVTT captions file into cues (time-ordered).

    NOTE/STYLE/REGION blocks and cue identifiers are ignored.
    """
    lines = (text or "").replace("\r\n", "\n").replace("\r", "\n").split("\n")
    cues: list[VttCue] = []
    i = 0
    n = len(lines)

    while i < n:
        line = lines[i].strip()
        upper = line.upper()
        if not line or upper.startswith("WEBVTT"):
            i += 1
            continue
        if upper.startswith(("NOTE", "STYLE", "REGION")):
            while i < n and lines[i].strip():
                i += 1
            continue

        m = _TS_RE.match(line)
        if not m:
            # Cue identifier (or stray text) before a timing line.
            i += 1
            continue

        start = _parse_timestamp(m.group("s"))
        end = _parse_timestamp(m.group("e"))
        i += 1

        text_lines: list[str] = []
        while i < n and lines[i].strip():
            cleaned = clean_cue_text(lines[i])
            if cleaned:
                text_lines.append(cleaned)
            i += 1

        cue_text = " ".join(text_lines).strip()
        if cue_text:
            cues.append(VttCue(start_sec=start, end_sec=end, text=cue_text))

    cues.sort(key=lambda c: (c.start_sec, c.end_sec))
    return cues


def cues_to_transcript(cues: list[VttCue]) -> str:
    """
    Flatten cues into a plain-text transcript.

    Auto-generated captions repeat phrases across cue boundaries; repeated
    sentences and runs of the same word are collapsed.
    """
    joined = " ".join(c.text for c in cues)
    seen: set[str] = set()
    unique: list[str] = []
    for sentence in _SENTENCE_SPLIT_RE.split(joined):
        s = sentence.strip()
        key = s.lower()
        if s and key not in seen:
            seen.add(key)
            unique.append(s)
    result = _REPEAT_RE.sub(r"\1", " ".join(unique))
    return " ".join(result.split())


def webvtt_to_text(text: str) -> str:
    return cues_to_transcript(parse_webvtt(text))
