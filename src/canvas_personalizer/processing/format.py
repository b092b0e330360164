"""Human-readable rendering of signals for debug panels and logs."""
from __future__ import annotations

from typing import Any

from canvas_personalizer.models.signals import SignalValue

SIGNAL_LABEL_MAP: dict[str, str] = {
    "teamSizeBracket": "Team size",
    "decisionMakers": "Decision makers",
    "approvalChainDepth": "Approval depth",
    "tools": "Tools",
    "integrationCriticality": "Integration criticality",
    "complianceTags": "Compliance",
    "copyTone": "Copy tone",
    "industry": "Industry",
    "primaryObjective": "Primary objective",
    "constraints": "Constraints",
    "operatingRegion": "Region",
}

NOT_SET = "Not set"


def format_signal_value(signal: SignalValue[Any]) -> str:
    value = signal.get("value")
    if isinstance(value, list):
        if not value:
            return NOT_SET
        if isinstance(value[0], dict):
            return f"{len(value)} entries"
        return ", ".join(str(v) for v in value)

    if isinstance(value, dict):
        parts = [str(value[k]) for k in ("timeline", "budget", "notes") if value.get(k)]
        return " • ".join(parts) if parts else "No constraints"

    if value is None or value == "":
        return NOT_SET
    return str(value)


def format_signal_line(key: str, signal: SignalValue[Any]) -> str:
    label = SIGNAL_LABEL_MAP.get(key, key)
    metadata = signal.get("metadata") or {}
    confidence = metadata.get("confidence", 0.0)
    return f"{label}: {format_signal_value(signal)} ({metadata.get('source', 'merge')}, {confidence:.2f})"
