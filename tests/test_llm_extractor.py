from __future__ import annotations

import asyncio
import json

import pytest

from canvas_personalizer.processing.llm_extractor import (
    InvalidSignalError,
    fetch_signals_from_llm,
    parse_signal_payload,
)


def _fake_generate(response: str, calls: list | None = None):
    async def generate(system_prompt, user_prompt, *, timeout_sec, cancel_event=None):
        if calls is not None:
            calls.append({"system": system_prompt, "user": user_prompt, "timeout": timeout_sec})
        return response

    return generate


def _failing_generate(exc: Exception):
    async def generate(system_prompt, user_prompt, *, timeout_sec, cancel_event=None):
        raise exc

    return generate


@pytest.fixture
def model_enabled(monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "test-key")
    monkeypatch.setenv("ENABLE_PERSONALIZATION_LLM", "true")


def test_parse_payload_accepts_bare_values_with_default_confidence() -> None:
    signals = parse_signal_payload({"industry": "fintech", "tools": ["slack", "JIRA"]})
    assert signals["industry"]["value"] == "fintech"
    assert signals["industry"]["metadata"] == {"source": "llm", "confidence": 0.6}
    assert signals["tools"]["value"] == ["Slack", "Jira"]


def test_parse_payload_clamps_confidence_and_truncates_notes() -> None:
    signals = parse_signal_payload(
        {
            "copyTone": {"value": "meticulous", "confidence": 1.4, "notes": "n" * 300},
            "industry": {"value": "saas", "confidence": "high"},
        }
    )
    assert signals["copyTone"]["metadata"]["confidence"] == 1.0
    assert len(signals["copyTone"]["metadata"]["notes"]) == 160
    assert signals["industry"]["metadata"]["confidence"] == 0.6


def test_parse_payload_maps_unknown_tools_to_other_and_dedupes() -> None:
    signals = parse_signal_payload({"tools": ["Frobnicator", "Slack", "slack", "Widgetron"]})
    assert signals["tools"]["value"] == ["Other", "Slack"]


def test_parse_payload_is_fail_closed() -> None:
    with pytest.raises(InvalidSignalError):
        parse_signal_payload({"industry": "fintech", "teamSizeBracket": "huge"})
    with pytest.raises(InvalidSignalError):
        parse_signal_payload({"tools": []})
    with pytest.raises(InvalidSignalError):
        parse_signal_payload({"decisionMakers": [{"role": "CTO", "seniority": "c-level", "isPrimary": True}]})
    with pytest.raises(InvalidSignalError):
        parse_signal_payload(["not", "an", "object"])


def test_parse_payload_decision_makers_and_constraints() -> None:
    signals = parse_signal_payload(
        {
            "decisionMakers": [
                {"role": " VP Engineering ", "seniority": "director+", "isPrimary": True},
                {"role": "Security lead", "seniority": "manager", "isPrimary": False},
            ],
            "constraints": {"timeline": "rush", "notes": "  launch in two weeks "},
        }
    )
    assert signals["decisionMakers"]["value"][0]["role"] == "VP Engineering"
    assert signals["constraints"]["value"] == {"timeline": "rush", "notes": "launch in two weeks"}


def test_parse_payload_drops_empty_constraints() -> None:
    assert "constraints" not in parse_signal_payload({"constraints": {}})


def test_parse_payload_rejects_long_constraint_notes() -> None:
    with pytest.raises(InvalidSignalError):
        parse_signal_payload({"constraints": {"notes": "x" * 161}})


def test_fetch_returns_empty_without_credential(monkeypatch) -> None:
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    calls: list = []
    result = asyncio.run(fetch_signals_from_llm("10 people", generate_text_func=_fake_generate("{}", calls)))
    assert result == {}
    assert calls == []


def test_fetch_returns_empty_when_model_path_disabled(monkeypatch) -> None:
    monkeypatch.setenv("GEMINI_API_KEY", "test-key")
    monkeypatch.setenv("ENABLE_PERSONALIZATION_LLM", "false")
    calls: list = []
    result = asyncio.run(fetch_signals_from_llm("10 people", generate_text_func=_fake_generate("{}", calls)))
    assert result == {}
    assert calls == []


def test_fetch_parses_fenced_response(model_enabled) -> None:
    payload = {"industry": {"value": "healthcare", "confidence": 0.8}, "complianceTags": ["HIPAA"]}
    response = "Here you go:\n```json\n" + json.dumps(payload) + "\n```"
    calls: list = []
    result = asyncio.run(fetch_signals_from_llm("clinic rollout", generate_text_func=_fake_generate(response, calls)))
    assert result["industry"]["value"] == "healthcare"
    assert result["industry"]["metadata"]["confidence"] == 0.8
    assert result["complianceTags"]["value"] == ["HIPAA"]
    assert "clinic rollout" in calls[0]["user"]


def test_fetch_returns_empty_on_invalid_field(model_enabled) -> None:
    response = json.dumps({"industry": "fintech", "operatingRegion": "mars"})
    result = asyncio.run(fetch_signals_from_llm("text", generate_text_func=_fake_generate(response)))
    assert result == {}


def test_fetch_returns_empty_on_generation_error(model_enabled) -> None:
    result = asyncio.run(
        fetch_signals_from_llm("text", generate_text_func=_failing_generate(RuntimeError("boom")))
    )
    assert result == {}


def test_fetch_returns_empty_on_non_json(model_enabled) -> None:
    result = asyncio.run(fetch_signals_from_llm("text", generate_text_func=_fake_generate("no json here")))
    assert result == {}
