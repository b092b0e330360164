from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Callable

from canvas_personalizer.core import config
from canvas_personalizer.core.constants import OTHER_TOOL, TOOL_DEFINITIONS
from canvas_personalizer.models.signals import PartialSignalSet, SignalValue
from canvas_personalizer.processing.json_repair import extract_json_snippet
from canvas_personalizer.processing.llm_client import generate_text
from canvas_personalizer.processing.prompts.signal_prompt import SYSTEM_PROMPT, build_user_prompt
from canvas_personalizer.processing.types import GenerateTextFunc
from canvas_personalizer.utils import clamp_confidence, sanitize_for_matching

logger = logging.getLogger(__name__)

MAX_ARRAY_ITEMS = 8
MAX_DECISION_MAKERS = 5
MAX_ROLE_CHARS = 80

TEAM_SIZE_VALUES = {"solo", "1-9", "10-24", "25+", "unknown"}
SENIORITY_VALUES = {"ic", "manager", "director+"}
APPROVAL_DEPTH_VALUES = {"single", "dual", "multi", "unknown"}
INTEGRATION_CRITICALITY_VALUES = {"must-have", "nice-to-have", "unspecified"}
COMPLIANCE_VALUES = {"SOC2", "HIPAA", "ISO27001", "GDPR", "SOX", "audit", "regulated-industry", "other"}
TONE_VALUES = {"fast-paced", "meticulous", "trusted-advisor", "onboarding", "migration", "neutral"}
INDUSTRY_VALUES = {"saas", "fintech", "healthcare", "education", "manufacturing", "public-sector", "other"}
OBJECTIVE_VALUES = {"launch", "scale", "migrate", "optimize", "compliance", "other"}
TIMELINE_VALUES = {"rush", "standard", "flexible"}
BUDGET_VALUES = {"tight", "standard", "premium"}
REGION_VALUES = {"na", "emea", "latam", "apac", "global", "unspecified"}


def _build_tool_lookup() -> dict[str, str]:
    lookup: dict[str, str] = {}
    for tool, keywords in TOOL_DEFINITIONS.items():
        lookup[sanitize_for_matching(tool)] = tool
        for keyword in keywords:
            lookup.setdefault(keyword, tool)
    lookup[sanitize_for_matching(OTHER_TOOL)] = OTHER_TOOL
    return lookup


TOOL_LOOKUP = _build_tool_lookup()


class InvalidSignalError(ValueError):
    """A field in the model payload did not match its schema."""


# ==========================================
# Field validators (raise InvalidSignalError; None means "drop the field")
# ==========================================


def _enum(allowed: set[str]) -> Callable[[Any], str]:
    def validate(value: Any) -> str:
        if not isinstance(value, str) or value not in allowed:
            raise InvalidSignalError(f"value {value!r} not in {sorted(allowed)}")
        return value

    return validate


def _dedupe(values: list[str]) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for v in values:
        if v not in seen:
            seen.add(v)
            out.append(v)
    return out


def _bounded_list(value: Any, max_items: int) -> list[Any]:
    if not isinstance(value, list) or not value or len(value) > max_items:
        raise InvalidSignalError(f"expected 1..{max_items} entries")
    return value


def _validate_tools(value: Any) -> list[str]:
    tools: list[str] = []
    for entry in _bounded_list(value, MAX_ARRAY_ITEMS):
        if not isinstance(entry, str):
            raise InvalidSignalError("tool entries must be strings")
        tools.append(TOOL_LOOKUP.get(sanitize_for_matching(entry), OTHER_TOOL))
    return _dedupe(tools)


def _validate_compliance(value: Any) -> list[str]:
    check = _enum(COMPLIANCE_VALUES)
    return _dedupe([check(entry) for entry in _bounded_list(value, MAX_ARRAY_ITEMS)])


def _validate_decision_makers(value: Any) -> list[dict[str, Any]]:
    makers: list[dict[str, Any]] = []
    for entry in _bounded_list(value, MAX_DECISION_MAKERS):
        if not isinstance(entry, dict):
            raise InvalidSignalError("decision maker must be an object")
        role = entry.get("role")
        if not isinstance(role, str) or not (1 <= len(role.strip()) <= MAX_ROLE_CHARS):
            raise InvalidSignalError("decision maker role must be 1..80 characters")
        seniority = _enum(SENIORITY_VALUES)(entry.get("seniority"))
        is_primary = entry.get("isPrimary")
        if not isinstance(is_primary, bool):
            raise InvalidSignalError("decision maker isPrimary must be a boolean")
        makers.append({"role": role.strip(), "seniority": seniority, "isPrimary": is_primary})
    return makers


def _validate_constraints(value: Any) -> dict[str, str] | None:
    if not isinstance(value, dict):
        raise InvalidSignalError("constraints must be an object")
    constraint: dict[str, str] = {}
    if value.get("timeline") is not None:
        constraint["timeline"] = _enum(TIMELINE_VALUES)(value["timeline"])
    if value.get("budget") is not None:
        constraint["budget"] = _enum(BUDGET_VALUES)(value["budget"])
    notes = value.get("notes")
    if notes is not None:
        if not isinstance(notes, str) or len(notes.strip()) > config.SIGNAL_NOTES_MAX_CHARS:
            raise InvalidSignalError("constraint notes must be a string of at most 160 characters")
        if notes.strip():
            constraint["notes"] = notes.strip()
    return constraint or None


FIELD_VALIDATORS: dict[str, Callable[[Any], Any]] = {
    "teamSizeBracket": _enum(TEAM_SIZE_VALUES),
    "decisionMakers": _validate_decision_makers,
    "approvalChainDepth": _enum(APPROVAL_DEPTH_VALUES),
    "tools": _validate_tools,
    "integrationCriticality": _enum(INTEGRATION_CRITICALITY_VALUES),
    "complianceTags": _validate_compliance,
    "copyTone": _enum(TONE_VALUES),
    "industry": _enum(INDUSTRY_VALUES),
    "primaryObjective": _enum(OBJECTIVE_VALUES),
    "constraints": _validate_constraints,
    "operatingRegion": _enum(REGION_VALUES),
}


def _normalize_notes(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    trimmed = value.strip()
    if not trimmed:
        return None
    return trimmed[: config.SIGNAL_NOTES_MAX_CHARS]


def _parse_field(key: str, raw: Any) -> SignalValue[Any] | None:
    validate = FIELD_VALIDATORS[key]
    confidence: Any = None
    notes: str | None = None
    if isinstance(raw, dict) and "value" in raw:
        value = raw.get("value")
        confidence = raw.get("confidence")
        notes = _normalize_notes(raw.get("notes"))
    else:
        value = raw

    try:
        parsed = validate(value)
    except InvalidSignalError as e:
        raise InvalidSignalError(f"invalid value for {key}: {e}") from e
    if parsed is None:
        return None

    metadata: dict[str, Any] = {
        "source": "llm",
        "confidence": clamp_confidence(confidence, default=config.LLM_CONFIDENCE_DEFAULT),
    }
    if notes:
        metadata["notes"] = notes
    return {"value": parsed, "metadata": metadata}  # type: ignore[typeddict-item]


def parse_signal_payload(payload: Any) -> PartialSignalSet:
    """Validate a decoded model payload. Any invalid field fails the whole payload."""
    if not isinstance(payload, dict):
        raise InvalidSignalError("payload is not an object")
    result: dict[str, Any] = {}
    for key in FIELD_VALIDATORS:
        raw = payload.get(key)
        if raw is None:
            continue
        signal = _parse_field(key, raw)
        if signal is not None:
            result[key] = signal
    return result  # type: ignore[return-value]


async def fetch_signals_from_llm(
    text: str,
    cancel_event: asyncio.Event | None = None,
    *,
    generate_text_func: GenerateTextFunc | None = None,
) -> PartialSignalSet:
    """One bounded model call turned into validated signals; every failure yields ``{}``."""
    if not text or not text.strip():
        return {}
    if not config.is_model_path_enabled():
        logger.debug("Model path disabled; skipping model extraction")
        return {}
    if not config.has_provider_credential():
        logger.debug("GEMINI_API_KEY is not configured; skipping model extraction")
        return {}

    generate = generate_text_func or generate_text
    try:
        raw = await generate(
            SYSTEM_PROMPT,
            build_user_prompt(text),
            timeout_sec=config.PROMPT_INTEL_TIMEOUT_SEC,
            cancel_event=cancel_event,
        )
        snippet = extract_json_snippet(raw or "")
        if not snippet:
            logger.info("Model extraction returned empty or non-JSON response")
            return {}
        signals = parse_signal_payload(json.loads(snippet))
    except Exception as e:
        logger.warning("Model extraction failed: %s", e)
        return {}

    logger.debug("Model extraction produced fields: %s", sorted(signals))
    return signals
