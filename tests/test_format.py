from __future__ import annotations

from canvas_personalizer.processing.format import NOT_SET, format_signal_line, format_signal_value


def _signal(value, source="keyword", confidence=1.0):
    return {"value": value, "metadata": {"source": source, "confidence": confidence}}


def test_format_lists_and_objects() -> None:
    assert format_signal_value(_signal(["Slack", "Jira"])) == "Slack, Jira"
    assert format_signal_value(_signal([])) == NOT_SET
    makers = [{"role": "CTO", "seniority": "director+", "isPrimary": True}]
    assert format_signal_value(_signal(makers)) == "1 entries"
    assert format_signal_value(_signal({"timeline": "rush", "budget": "tight"})) == "rush • tight"
    assert format_signal_value(_signal({})) == "No constraints"
    assert format_signal_value(_signal("")) == NOT_SET


def test_format_signal_line() -> None:
    line = format_signal_line("teamSizeBracket", _signal("10-24", "merge", 0.456))
    assert line == "Team size: 10-24 (merge, 0.46)"
