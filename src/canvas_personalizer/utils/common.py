from __future__ import annotations

import hashlib
import html
import math
import re
from typing import Any

_WS_RE = re.compile(r"\s+")  # collapse runs of whitespace
_NON_ALNUM_RE = re.compile(r"[^a-z0-9\s]")  # keyword matching works on letters and digits only


def clean_text(s: str) -> str:
    """Unescape HTML entities, drop stray tags and normalise whitespace."""
    if not s:
        return ""
    s = html.unescape(s)
    s = s.replace("\u00a0", " ")
    s = re.sub(r"<[^>]+>", "", s)
    return _WS_RE.sub(" ", s).strip()


def clean_text_ws(text: str) -> str:
    return _WS_RE.sub(" ", (text or "").strip())


def sanitize_for_matching(text: str) -> str:
    """Lower-case text with punctuation turned into single spaces."""
    lowered = (text or "").lower()
    return _WS_RE.sub(" ", _NON_ALNUM_RE.sub(" ", lowered)).strip()


def contains_phrase(sanitized: str, phrase: str) -> bool:
    """Word-bounded phrase lookup on sanitized text; a trailing plural 's' still matches."""
    if not sanitized or not phrase:
        return False
    return re.search(rf"\b{re.escape(phrase)}s?\b", sanitized) is not None


def clamp_confidence(value: Any, default: float = 0.0) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    if math.isnan(value) or math.isinf(value):
        return default
    return min(1.0, max(0.0, float(value)))


def truncate(text: str, max_chars: int) -> str:
    if len(text) <= max_chars:
        return text
    return text[:max_chars]


def join_notes(*parts: str | None, max_chars: int = 160) -> str | None:
    cleaned = [p.strip() for p in parts if p and p.strip()]
    if not cleaned:
        return None
    return truncate(" | ".join(cleaned), max_chars)


def hash_value(value: str, length: int = 16) -> str:
    """Short content digest used in telemetry instead of raw text."""
    return hashlib.sha256((value or "").encode("utf-8")).hexdigest()[:length]
