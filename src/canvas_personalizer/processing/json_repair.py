"""Tolerant JSON object parsing for model output.

Three stages, each returning ``None`` on failure so callers can chain them:

1. ``parse_strict``: fences stripped, outer ``{...}`` sliced, ``json.loads``.
2. ``repair_general``: balanced block extraction, trailing commas removed, Python
   literal fallback (single quotes, True/False).
3. ``repair_structural``: output cut off mid-stream is trimmed back to a point where
   every open string and bracket can be closed.
"""
from __future__ import annotations

import ast
import json
import logging
import re
from typing import Any

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?", re.IGNORECASE)
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")
_MAX_CUT_ATTEMPTS = 64


def strip_code_fences(text: str) -> str:
    return _FENCE_RE.sub("", text or "").replace("```", "").strip()


def extract_json_snippet(text: str) -> str:
    """Slice from the first ``{`` to the last ``}``; empty string when there is no object."""
    output = strip_code_fences(text)
    start = output.find("{")
    end = output.rfind("}")
    if start == -1 or end == -1 or end <= start:
        return ""
    return output[start : end + 1]


def _load_dict(payload: str) -> dict[str, Any] | None:
    try:
        obj = json.loads(payload)
    except Exception:
        return None
    return obj if isinstance(obj, dict) else None


def _strip_trailing_commas(payload: str) -> str:
    return _TRAILING_COMMA_RE.sub(r"\1", payload)


def parse_strict(text: str) -> dict[str, Any] | None:
    if not text or not text.strip():
        return None
    snippet = extract_json_snippet(text)
    if not snippet:
        return None
    return _load_dict(snippet)


def _extract_balanced_block(payload: str) -> str | None:
    start = payload.find("{")
    if start == -1:
        return None
    depth = 0
    in_string = False
    escape = False
    for i in range(start, len(payload)):
        ch = payload[i]
        if in_string:
            if escape:
                escape = False
            elif ch == "\\":
                escape = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return payload[start : i + 1]
    return None


def repair_general(text: str) -> dict[str, Any] | None:
    if not text:
        return None
    raw = strip_code_fences(text)
    candidate = _extract_balanced_block(raw)
    if not candidate:
        match = re.search(r"\{.*\}", raw, flags=re.DOTALL)
        if not match:
            return None
        candidate = match.group(0)

    parsed = _load_dict(candidate)
    if parsed is not None:
        return parsed
    cleaned = _strip_trailing_commas(candidate)
    parsed = _load_dict(cleaned)
    if parsed is not None:
        return parsed
    try:
        obj = ast.literal_eval(cleaned)
    except Exception:
        return None
    return obj if isinstance(obj, dict) else None


def _close(prefix: str, closers: list[str]) -> str:
    trimmed = prefix.rstrip()
    while trimmed and trimmed[-1] in ",:":
        trimmed = trimmed[:-1].rstrip()
    return trimmed + "".join(reversed(closers))


def repair_structural(text: str) -> dict[str, Any] | None:
    if not text:
        return None
    raw = strip_code_fences(text)
    start = raw.find("{")
    if start == -1:
        return None
    snippet = raw[start:]

    stack: list[str] = []
    cut_points: list[tuple[int, tuple[str, ...]]] = []
    in_string = False
    escape = False
    for i, ch in enumerate(snippet):
        if in_string:
            if escape:
                escape = False
            elif ch == "\\":
                escape = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            stack.append("}")
        elif ch == "[":
            stack.append("]")
        elif ch in "}]":
            if not stack or stack[-1] != ch:
                break
            stack.pop()
            if not stack:
                return _load_dict(_strip_trailing_commas(snippet[: i + 1]))
            cut_points.append((i + 1, tuple(stack)))
        elif ch == ",":
            cut_points.append((i, tuple(stack)))

    # Close whatever is open at the end of the stream first
    tail = snippet + ('"' if in_string else "")
    parsed = _load_dict(_strip_trailing_commas(_close(tail, stack)))
    if parsed is not None:
        return parsed

    # Otherwise walk back through the last complete members
    for index, snapshot in reversed(cut_points[-_MAX_CUT_ATTEMPTS:]):
        parsed = _load_dict(_strip_trailing_commas(_close(snippet[:index], list(snapshot))))
        if parsed is not None:
            return parsed
    return None


def parse_json_with_repair(text: str | None) -> tuple[dict[str, Any] | None, str]:
    """Run the repair chain; returns ``(payload, stage)`` where stage names the step that succeeded."""
    if not text or not text.strip():
        return None, "empty"
    for stage, parser in (
        ("strict", parse_strict),
        ("general", repair_general),
        ("structural", repair_structural),
    ):
        parsed = parser(text)
        if parsed is not None:
            if stage != "strict":
                logger.debug("Model JSON recovered by %s repair", stage)
            return parsed, stage
    snippet = re.sub(r"\s+", " ", text)[:160]
    logger.info("Model JSON could not be repaired: %s", snippet)
    return None, "failed"
