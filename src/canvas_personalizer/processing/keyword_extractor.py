from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, TypeVar

from canvas_personalizer.core import config
from canvas_personalizer.core.constants import (
    COMPLIANCE_KEYWORDS,
    GENERAL_COMPLIANCE_KEYWORDS,
    LARGE_TEAM_KEYWORDS,
    MID_TEAM_KEYWORDS,
    OTHER_TOOL,
    SMALL_TEAM_KEYWORDS,
    SOLO_KEYWORDS,
    TONE_KEYWORDS,
    TOOL_DEFINITIONS,
    TOOL_MENTION_RE,
    TOOL_MENTION_STOPWORDS,
)
from canvas_personalizer.models.signals import PartialSignalSet, SignalValue, TeamSizeBracket
from canvas_personalizer.utils import contains_phrase, sanitize_for_matching, truncate

logger = logging.getLogger(__name__)

T = TypeVar("T")

KEYWORD_CONFIDENCE = 1.0

_RANGE_RE = re.compile(r"(\d{1,3})\s*(?:-|to)\s*(\d{1,3})", re.IGNORECASE)
_EXPLICIT_RE = re.compile(
    r"(\d{1,3})(?:\s*-\s*(?=person|people|member|team))?\s*(?:person|people|member|team)s?\b",
    re.IGNORECASE,
)
_PLUS_RE = re.compile(r"(\d{1,3})\s*\+")
_LOOSE_NUMBER_RE = re.compile(r"\b(\d{1,3})\b")
# "SOC 2", "ISO 27001" and friends are standards, not headcounts
_STANDARD_PREFIX_RE = re.compile(r"\b(?:soc|iso|sox|pci|tier|level|step|phase|v)\s*$", re.IGNORECASE)


@dataclass(frozen=True)
class _NormalizedText:
    original: str
    lower: str
    sanitized: str


@dataclass(frozen=True)
class _RangeMatch:
    start: int
    end: int
    low: int
    high: int
    raw: str


def _signal_value(value: T, notes: str | None = None) -> SignalValue[T]:
    metadata: dict[str, Any] = {"source": "keyword", "confidence": KEYWORD_CONFIDENCE}
    if notes:
        metadata["notes"] = truncate(notes, config.SIGNAL_NOTES_MAX_CHARS)
    return {"value": value, "metadata": metadata}  # type: ignore[typeddict-item]


def bracket_for_headcount(value: int) -> TeamSizeBracket | None:
    if value <= 0:
        return None
    if value <= 1:
        return "solo"
    if value <= 9:
        return "1-9"
    if value <= 24:
        return "10-24"
    return "25+"


def _collect_ranges(text: str) -> list[_RangeMatch]:
    return [
        _RangeMatch(m.start(), m.end(), int(m.group(1)), int(m.group(2)), m.group(0))
        for m in _RANGE_RE.finditer(text)
    ]


def _within_range(ranges: list[_RangeMatch], index: int) -> bool:
    return any(r.start <= index < r.end for r in ranges)


def _detect_team_size(text: _NormalizedText) -> SignalValue[TeamSizeBracket] | None:
    for phrase in SOLO_KEYWORDS:
        if contains_phrase(text.lower, phrase):
            return _signal_value("solo", f"keyword: {phrase}")

    ranges = _collect_ranges(text.original)

    for match in _EXPLICIT_RE.finditer(text.original):
        if _within_range(ranges, match.start()):
            continue
        bracket = bracket_for_headcount(int(match.group(1)))
        if bracket:
            return _signal_value(bracket, f'matched explicit headcount "{match.group(0)}"')

    for match in _PLUS_RE.finditer(text.original):
        if _within_range(ranges, match.start()):
            continue
        bracket = bracket_for_headcount(min(int(match.group(1)), 25))
        if bracket:
            return _signal_value(bracket, f'matched plus headcount "{match.group(0)}"')

    if ranges:
        first = ranges[0]
        bracket = bracket_for_headcount(round((first.low + first.high) / 2))
        if bracket:
            return _signal_value(bracket, f'matched range "{first.raw}"')

    for phrases, bracket_name in (
        (SMALL_TEAM_KEYWORDS, "1-9"),
        (MID_TEAM_KEYWORDS, "10-24"),
        (LARGE_TEAM_KEYWORDS, "25+"),
    ):
        for phrase in phrases:
            if contains_phrase(text.lower, phrase):
                return _signal_value(bracket_name, f"keyword: {phrase}")  # type: ignore[arg-type]

    for match in _LOOSE_NUMBER_RE.finditer(text.original):
        if _within_range(ranges, match.start()):
            continue
        if _STANDARD_PREFIX_RE.search(text.original[: match.start()]):
            continue
        bracket = bracket_for_headcount(int(match.group(1)))
        if bracket:
            return _signal_value(bracket, f'matched numeric headcount "{match.group(0)}"')

    return None


def match_tool_keyword(sanitized: str) -> str | None:
    """Return the canonical tool id whose keyword appears in ``sanitized`` text."""
    for tool, keywords in TOOL_DEFINITIONS.items():
        for keyword in keywords:
            if contains_phrase(sanitized, keyword):
                return tool
    return None


def _detect_unknown_tool(text: _NormalizedText) -> str | None:
    for match in TOOL_MENTION_RE.finditer(text.original):
        name = match.group(1).strip()
        first_word = name.split()[0].lower()
        if first_word in TOOL_MENTION_STOPWORDS:
            continue
        if match_tool_keyword(sanitize_for_matching(name)):
            continue
        return name
    return None


def _detect_tools(text: _NormalizedText) -> SignalValue[list[str]] | None:
    matched: list[str] = []
    notes: list[str] = []
    for tool, keywords in TOOL_DEFINITIONS.items():
        hit = next((k for k in keywords if contains_phrase(text.sanitized, k)), None)
        if hit and tool not in matched:
            matched.append(tool)
            notes.append(f"{tool} ({hit})")

    unknown = _detect_unknown_tool(text)
    if unknown:
        matched.append(OTHER_TOOL)
        notes.append(f"{OTHER_TOOL} ({unknown})")

    if not matched:
        return None
    return _signal_value(matched, f"keywords: {', '.join(notes)}")


def _detect_compliance(text: _NormalizedText) -> SignalValue[list[str]] | None:
    tags: list[str] = []
    notes: list[str] = []
    for tag, keywords in COMPLIANCE_KEYWORDS.items():
        hit = next((k for k in keywords if contains_phrase(text.sanitized, k)), None)
        if hit:
            tags.append(tag)
            notes.append(f"{tag} ({hit})")

    if not tags:
        general = next((k for k in GENERAL_COMPLIANCE_KEYWORDS if contains_phrase(text.sanitized, k)), None)
        if general:
            tags.append("other")
            notes.append(f"other ({general})")

    if not tags:
        return None
    return _signal_value(tags, f"keywords: {', '.join(notes)}")


def _detect_tone(text: _NormalizedText) -> SignalValue[str] | None:
    for tone, keywords in TONE_KEYWORDS:
        hit = next((k for k in keywords if contains_phrase(text.sanitized, k)), None)
        if hit:
            return _signal_value(tone, f"keyword: {hit}")
    return None


def extract_signals_from_keywords(text: str) -> PartialSignalSet:
    """Deterministic lexicon pass over free text. Every hit carries confidence 1.0."""
    partial: PartialSignalSet = {}
    if not text or not text.strip():
        logger.debug("No text provided to keyword extractor")
        return partial

    normalized = _NormalizedText(original=text, lower=text.lower(), sanitized=sanitize_for_matching(text))

    team_size = _detect_team_size(normalized)
    if team_size:
        partial["teamSizeBracket"] = team_size

    tools = _detect_tools(normalized)
    if tools:
        partial["tools"] = tools

    compliance = _detect_compliance(normalized)
    if compliance:
        partial["complianceTags"] = compliance  # type: ignore[typeddict-item]

    tone = _detect_tone(normalized)
    if tone:
        partial["copyTone"] = tone  # type: ignore[typeddict-item]

    if not partial:
        logger.debug('No keyword signals detected for text snippet: "%s"', text[:80])
    return partial
