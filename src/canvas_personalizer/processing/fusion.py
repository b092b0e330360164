from __future__ import annotations

import asyncio
import copy
import logging
from typing import Any

from canvas_personalizer.core import config
from canvas_personalizer.models.signals import (
    SIGNAL_KEYS,
    PartialSignalSet,
    SignalSet,
    SignalSource,
    SignalSummary,
    SignalValue,
)
from canvas_personalizer.processing.format import format_signal_line
from canvas_personalizer.processing.keyword_extractor import extract_signals_from_keywords
from canvas_personalizer.processing.llm_extractor import fetch_signals_from_llm
from canvas_personalizer.utils import clamp_confidence, clean_text, join_notes

logger = logging.getLogger(__name__)

DEFAULT_SIGNAL_CONFIDENCE = 0.1

_DEFAULT_VALUES: dict[str, Any] = {
    "teamSizeBracket": "unknown",
    "decisionMakers": [],
    "approvalChainDepth": "unknown",
    "tools": [],
    "integrationCriticality": "unspecified",
    "complianceTags": [],
    "copyTone": "neutral",
    "industry": "other",
    "primaryObjective": "other",
    "constraints": {},
    "operatingRegion": "unspecified",
}


def _default_value(value: Any) -> SignalValue[Any]:
    return {
        "value": copy.deepcopy(value),
        "metadata": {"source": "merge", "confidence": DEFAULT_SIGNAL_CONFIDENCE},
    }


def create_default_signals() -> SignalSet:
    return {key: _default_value(_DEFAULT_VALUES[key]) for key in SIGNAL_KEYS}  # type: ignore[return-value]


def _with_metadata(value: Any, source: str, confidence: float, notes: str | None) -> SignalValue[Any]:
    metadata: dict[str, Any] = {"source": source, "confidence": confidence}
    if notes:
        metadata["notes"] = notes
    return {"value": copy.deepcopy(value), "metadata": metadata}  # type: ignore[typeddict-item]


def _single_source(only: SignalValue[Any], label: SignalSource, max_notes: int) -> SignalValue[Any]:
    meta = only["metadata"]
    return _with_metadata(
        only["value"],
        meta.get("source") or label,
        clamp_confidence(meta.get("confidence")),
        join_notes(meta.get("notes"), max_chars=max_notes),
    )


def _resolve(
    keyword: SignalValue[Any] | None,
    llm: SignalValue[Any] | None,
    fallback: SignalValue[Any],
) -> SignalValue[Any]:
    max_notes = config.SIGNAL_NOTES_MAX_CHARS
    if keyword is None and llm is None:
        return fallback
    if llm is None:
        return _single_source(keyword, "keyword", max_notes)
    if keyword is None:
        return _single_source(llm, "llm", max_notes)

    kw_conf = clamp_confidence(keyword["metadata"].get("confidence"))
    llm_conf = clamp_confidence(llm["metadata"].get("confidence"))
    kw_notes = keyword["metadata"].get("notes")
    llm_notes = llm["metadata"].get("notes")

    if keyword["value"] == llm["value"]:
        return _with_metadata(
            keyword["value"],
            "merge",
            max(kw_conf, llm_conf),
            join_notes("Keyword and model agreement", kw_notes, llm_notes, max_chars=max_notes),
        )

    if llm_conf > kw_conf:
        return _with_metadata(
            llm["value"],
            "merge",
            llm_conf,
            join_notes("Model value preferred over lower-confidence keyword", llm_notes, kw_notes, max_chars=max_notes),
        )
    return _with_metadata(
        keyword["value"],
        "merge",
        kw_conf,
        join_notes("Keyword value preferred", kw_notes, llm_notes, max_chars=max_notes),
    )


def merge_signals(keyword_signals: PartialSignalSet, llm_signals: PartialSignalSet) -> SignalSet:
    """Fuse both partial sets into a complete signal set, field by field."""
    defaults = create_default_signals()
    merged: dict[str, SignalValue[Any]] = {}
    for key in SIGNAL_KEYS:
        merged[key] = _resolve(
            keyword_signals.get(key),  # type: ignore[misc]
            llm_signals.get(key),  # type: ignore[misc]
            defaults[key],  # type: ignore[literal-required]
        )
    return merged  # type: ignore[return-value]


def summarize_signals(signals: SignalSet) -> list[SignalSummary]:
    rows: list[SignalSummary] = []
    for key in SIGNAL_KEYS:
        entry = signals[key]  # type: ignore[literal-required]
        row: SignalSummary = {
            "key": key,
            "value": entry["value"],
            "source": entry["metadata"]["source"],
            "confidence": clamp_confidence(entry["metadata"].get("confidence")),
        }
        notes = entry["metadata"].get("notes")
        if notes:
            row["notes"] = notes
        rows.append(row)
    return rows


async def extract_signals(text: str, cancel_event: asyncio.Event | None = None) -> SignalSet:
    """Keyword and model extraction fused into a complete signal set. Never raises."""
    if not config.is_prompt_intel_enabled():
        return create_default_signals()
    normalized = clean_text(text or "")
    if not normalized:
        logger.debug("extract_signals received empty text")
        return create_default_signals()

    try:
        keyword_signals = extract_signals_from_keywords(normalized)
    except Exception as e:
        logger.warning("Keyword extraction failed: %s", e)
        keyword_signals = {}
    logger.debug("Keyword signals extracted: %s", sorted(keyword_signals))

    try:
        llm_signals = await fetch_signals_from_llm(normalized, cancel_event)
    except Exception as e:
        logger.warning("Model extraction raised, continuing with keyword results: %s", e)
        llm_signals = {}
    logger.debug("Model signals extracted: %s", sorted(llm_signals))

    merged = merge_signals(keyword_signals, llm_signals)
    if logger.isEnabledFor(logging.DEBUG):
        for key in SIGNAL_KEYS:
            logger.debug("Merged %s", format_signal_line(key, merged[key]))  # type: ignore[literal-required]
    return merged
