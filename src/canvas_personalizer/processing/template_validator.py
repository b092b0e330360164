"""Slot-level validation for generated template copy."""
from __future__ import annotations

import re
from typing import Iterable, Mapping

from canvas_personalizer.catalog.templates import TemplateSlot, get_template
from canvas_personalizer.core.constants import (
    COMPLIANCE_TONE_KEYWORDS,
    DEFAULT_FORBIDDEN_PATTERNS,
    INFORMAL_SENSITIVE_TONES,
    NEGATIVE_SENSITIVE_TONES,
    NEGATIVE_WORDS,
    SLANG_WORDS,
)
from canvas_personalizer.models.templates import Severity, ValidationIssue, ValidationResult
from canvas_personalizer.utils import clean_text_ws

REQUIRED_SLOT_MISSING = "required_slot_missing"
CONTAINS_FORBIDDEN_CONTENT = "contains_forbidden_content"
TONE_NEGATIVE_LANGUAGE = "tone_negative_language"
TONE_INFORMAL_LANGUAGE = "tone_informal_language"
TONE_MISSING_COMPLIANCE_KEYWORD = "tone_missing_compliance_keyword"


def exceeds_max_length_reason(max_length: int) -> str:
    return f"exceeds_max_length_{max_length}"


def _inflected(word: str) -> str:
    # penalty -> penalties, breach -> breaches, failure -> failures
    if word.endswith("y") and len(word) > 2:
        return rf"{re.escape(word[:-1])}(?:y|ies)"
    return rf"{re.escape(word)}(?:es|s)?"


def _word_pattern(words: Iterable[str], *, inflections: bool = False) -> re.Pattern[str]:
    ordered = sorted(words, key=len, reverse=True)
    alternatives = "|".join(_inflected(w) if inflections else re.escape(w) for w in ordered)
    return re.compile(rf"(?<![a-z0-9])(?:{alternatives})(?![a-z0-9])", re.IGNORECASE)


_NEGATIVE_RE = _word_pattern(NEGATIVE_WORDS, inflections=True)
_SLANG_RE = _word_pattern(SLANG_WORDS)
_COMPLIANCE_RE = re.compile(
    rf"(?<![a-z0-9])(?:{'|'.join(re.escape(w) for w in COMPLIANCE_TONE_KEYWORDS)})[a-z]*",
    re.IGNORECASE,
)


def evaluate_tone(tone: str, value: str) -> str | None:
    """Return the tone issue reason for ``value``, or None when it fits ``tone``."""
    if tone in NEGATIVE_SENSITIVE_TONES and _NEGATIVE_RE.search(value):
        return TONE_NEGATIVE_LANGUAGE
    if tone in INFORMAL_SENSITIVE_TONES and _SLANG_RE.search(value):
        return TONE_INFORMAL_LANGUAGE
    if tone == "compliance" and not _COMPLIANCE_RE.search(value):
        return TONE_MISSING_COMPLIANCE_KEYWORD
    return None


def _compile_patterns(patterns: Iterable[re.Pattern[str] | str] | None) -> list[re.Pattern[str]]:
    compiled = list(DEFAULT_FORBIDDEN_PATTERNS)
    for pattern in patterns or ():
        compiled.append(re.compile(pattern, re.IGNORECASE) if isinstance(pattern, str) else pattern)
    return compiled


def _validate_slot(
    slot: TemplateSlot,
    raw: str | None,
    *,
    allow_partial: bool,
    forbidden: list[re.Pattern[str]],
    tone: str,
) -> tuple[str, ValidationIssue | None, bool]:
    """Returns (sanitized value, issue, fallback used)."""

    def issue(reason: str, severity: Severity = "error") -> ValidationIssue:
        return {"slotId": slot.id, "reason": reason, "severity": severity}

    value = (raw or "").strip() if isinstance(raw, str) else ""
    if not value:
        if slot.required and not allow_partial:
            return slot.fallback, issue(REQUIRED_SLOT_MISSING), True
        return slot.fallback, issue(REQUIRED_SLOT_MISSING, "warning") if slot.required else None, True

    if len(value) > slot.max_length:
        return slot.fallback, issue(exceeds_max_length_reason(slot.max_length)), True

    if any(p.search(value) for p in forbidden):
        return slot.fallback, issue(CONTAINS_FORBIDDEN_CONTENT), True

    tone_reason = evaluate_tone(tone, value)
    if tone_reason:
        return slot.fallback, issue(tone_reason), True

    return clean_text_ws(value), None, False


def validate_template_slots(
    template_id: str,
    values: Mapping[str, str] | None,
    *,
    allow_partial: bool = False,
    forbidden_patterns: Iterable[re.Pattern[str] | str] | None = None,
    tone_overrides: Mapping[str, str] | None = None,
) -> ValidationResult:
    template = get_template(template_id)
    forbidden = _compile_patterns(forbidden_patterns)
    values = values or {}
    tone_overrides = tone_overrides or {}

    sanitized_values: dict[str, str] = {}
    issues: list[ValidationIssue] = []
    fallback_applied = False
    for slot in template.slots:
        sanitized, slot_issue, used_fallback = _validate_slot(
            slot,
            values.get(slot.id),
            allow_partial=allow_partial,
            forbidden=forbidden,
            tone=tone_overrides.get(slot.id, slot.tone),
        )
        sanitized_values[slot.id] = sanitized
        if slot_issue:
            issues.append(slot_issue)
        fallback_applied = fallback_applied or used_fallback

    return {
        "templateId": template_id,
        "isValid": all(i["severity"] != "error" for i in issues),
        "sanitizedValues": sanitized_values,
        "issues": issues,
        "fallbackApplied": fallback_applied,
    }
