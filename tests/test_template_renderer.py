from __future__ import annotations

import asyncio
import json

import pytest

from canvas_personalizer.processing.fusion import create_default_signals
from canvas_personalizer.processing.health import PersonalizationHealthMonitor
from canvas_personalizer.processing.llm_client import BackoffSettings, LLMServiceError
from canvas_personalizer.processing.scoring import score_recipe_knobs
from canvas_personalizer.processing.template_cache import TemplateCompletionCache
from canvas_personalizer.processing.template_renderer import (
    INVALID_TEMPLATE_JSON,
    LLM_ERROR,
    TemplateRenderer,
    render_template_copy,
)


async def _no_sleep(seconds: float) -> None:
    return None


class FakeModel:
    def __init__(self, *responses) -> None:
        self.responses = list(responses)
        self.calls: list[dict] = []

    async def __call__(self, system_prompt, user_prompt, *, timeout_sec, cancel_event=None):
        self.calls.append({"system": system_prompt, "user": user_prompt, "timeout": timeout_sec})
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response


def _renderer(model, telemetry: list | None = None, **kwargs) -> TemplateRenderer:
    sink = telemetry.append if telemetry is not None else (lambda record: None)
    return TemplateRenderer(
        cache=kwargs.pop("cache", TemplateCompletionCache()),
        generate_text=model,
        backoff=BackoffSettings(
            max_attempts=2, initial_delay=0.0, max_delay=0.0, backoff_multiplier=1.0, jitter_ratio=0.0, sleep=_no_sleep
        ),
        health=kwargs.pop("health", PersonalizationHealthMonitor()),
        telemetry_sink=sink,
        timeout_sec=5.0,
    )


def _context(requests, session_id=None):
    signals = create_default_signals()
    signals["tools"] = {"value": ["Slack", "Jira"], "metadata": {"source": "keyword", "confidence": 1.0}}
    context = {
        "recipeId": "R2",
        "persona": "Scaling team lead",
        "signals": signals,
        "knobOverrides": score_recipe_knobs("R2", signals)["overrides"],
        "requests": requests,
    }
    if session_id:
        context["sessionId"] = session_id
    return context


GOOD_RESPONSE = json.dumps(
    {
        "step_title": {"title": "Plan your first sprint"},
        "cta_primary": {"label": "Start planning"},
    }
)


@pytest.fixture(autouse=True)
def model_credentials(monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "test-key")
    monkeypatch.delenv("ENABLE_PERSONALIZATION_LLM", raising=False)


def test_generates_validates_and_caches() -> None:
    model = FakeModel(GOOD_RESPONSE)
    telemetry: list = []
    renderer = _renderer(model, telemetry)
    context = _context([{"templateId": "step_title"}, {"templateId": "cta_primary"}])

    result = asyncio.run(renderer.render(context))
    assert [t["templateId"] for t in result["templates"]] == ["step_title", "cta_primary"]
    assert result["templates"][0]["values"] == {"title": "Plan your first sprint"}
    assert result["templates"][1]["values"] == {"label": "Start planning"}
    assert all(t["issues"] == [] and t["fallbackApplied"] is False for t in result["templates"])
    assert result["rawResponse"] == GOOD_RESPONSE
    assert [r["cacheStatus"] for r in telemetry] == ["miss", "miss"]
    assert len(model.calls) == 1
    assert "step_title" in model.calls[0]["user"] and "cta_primary" in model.calls[0]["user"]
    assert renderer.cache.size() == 2

    second = asyncio.run(renderer.render(context))
    assert len(model.calls) == 1
    assert [r["cacheStatus"] for r in second["telemetry"]] == ["hit", "hit"]
    assert second["templates"][0]["values"] == {"title": "Plan your first sprint"}
    assert second["rawResponse"] is None


def test_telemetry_hashes_values() -> None:
    telemetry: list = []
    result = asyncio.run(_renderer(FakeModel(GOOD_RESPONSE), telemetry).render(_context([{"templateId": "step_title"}])))
    record = result["telemetry"][0]
    assert set(record["hashedValues"]) == {"title"}
    assert record["hashedValues"]["title"] != "Plan your first sprint"
    assert telemetry == result["telemetry"]


def test_invalid_slot_uses_fallback_and_is_not_cached() -> None:
    response = json.dumps({"cta_primary": {"label": "Start planning your first sprint today"}})
    renderer = _renderer(FakeModel(response))
    result = asyncio.run(renderer.render(_context([{"templateId": "cta_primary"}])))
    rendered = result["templates"][0]
    assert rendered["values"] == {"label": "Continue"}
    assert rendered["issues"][0]["reason"] == "exceeds_max_length_24"
    assert rendered["fallbackApplied"] is True
    assert renderer.cache.size() == 0


def test_existing_values_win_over_generated() -> None:
    renderer = _renderer(FakeModel(GOOD_RESPONSE))
    result = asyncio.run(
        renderer.render(_context([{"templateId": "step_title", "existingValues": {"title": "Team kickoff"}}]))
    )
    assert result["templates"][0]["values"] == {"title": "Team kickoff"}
    assert renderer.cache.size() == 0


def test_complete_partial_request_skips_model() -> None:
    model = FakeModel(GOOD_RESPONSE)
    telemetry: list = []
    result = asyncio.run(
        _renderer(model, telemetry).render(
            _context([{"templateId": "step_title", "partial": True, "existingValues": {"title": "Team kickoff"}}])
        )
    )
    assert model.calls == []
    assert result["templates"][0]["values"] == {"title": "Team kickoff"}
    assert telemetry[0]["cacheStatus"] == "skip"


def test_unparseable_response_falls_back() -> None:
    health = PersonalizationHealthMonitor(failure_threshold=5)
    result = asyncio.run(
        _renderer(FakeModel("I cannot help with that"), health=health).render(_context([{"templateId": "step_title"}]))
    )
    rendered = result["templates"][0]
    assert rendered["values"] == {"title": "Workspace setup"}
    assert rendered["fallbackApplied"] is True
    assert any(issue["reason"] == INVALID_TEMPLATE_JSON for issue in rendered["issues"])
    assert result["rawResponse"] == "I cannot help with that"


def test_truncated_response_is_repaired() -> None:
    truncated = '{"step_title": {"title": "Plan your first sprint"}, "cta_primary": {"label": "Sta'
    result = asyncio.run(
        _renderer(FakeModel(truncated)).render(_context([{"templateId": "step_title"}, {"templateId": "cta_primary"}]))
    )
    assert result["templates"][0]["values"] == {"title": "Plan your first sprint"}
    assert result["templates"][1]["values"] == {"label": "Sta"}


def test_model_error_after_retries_marks_every_template() -> None:
    model = FakeModel(LLMServiceError("upstream", "http_error", 503))
    telemetry: list = []
    result = asyncio.run(
        _renderer(model, telemetry).render(_context([{"templateId": "step_title"}, {"templateId": "badge_caption"}]))
    )
    assert len(model.calls) == 2
    for rendered in result["templates"]:
        assert rendered["fallbackApplied"] is True
        assert any(issue["reason"] == LLM_ERROR for issue in rendered["issues"])
    assert result["templates"][0]["values"] == {"title": "Workspace setup"}
    assert result["templates"][1]["values"] == {"caption": "AI recommended"}
    assert [r["cacheStatus"] for r in telemetry] == ["skip", "skip"]


def test_repeated_failures_soft_disable_generation() -> None:
    model = FakeModel(LLMServiceError("bad", "http_error", 400))
    health = PersonalizationHealthMonitor(failure_threshold=2)
    renderer = _renderer(model, health=health)
    context = _context([{"templateId": "step_title"}])
    asyncio.run(renderer.render(context))
    asyncio.run(renderer.render(context))
    assert health.is_soft_disabled() is True

    calls_before = len(model.calls)
    result = asyncio.run(renderer.render(context))
    assert len(model.calls) == calls_before
    assert result["templates"][0]["values"] == {"title": "Workspace setup"}


def test_missing_credential_validates_existing_only(monkeypatch) -> None:
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    model = FakeModel(GOOD_RESPONSE)
    result = asyncio.run(
        _renderer(model).render(
            _context([{"templateId": "helper_text", "existingValues": {"body": "Invite your team when ready."}}])
        )
    )
    assert model.calls == []
    assert result["templates"][0]["values"] == {"body": "Invite your team when ready."}
    assert result["telemetry"][0]["cacheStatus"] == "skip"


def test_session_rate_limit_blocks_generation() -> None:
    model = FakeModel(GOOD_RESPONSE)
    health = PersonalizationHealthMonitor(max_requests_per_window=1)
    renderer = _renderer(model, health=health, cache=TemplateCompletionCache(ttl_sec=0))
    context = _context([{"templateId": "step_title"}], session_id="session-1")
    asyncio.run(renderer.render(context))
    asyncio.run(renderer.render(context))
    assert len(model.calls) == 1


def test_unknown_templates_are_skipped() -> None:
    result = asyncio.run(_renderer(FakeModel(GOOD_RESPONSE)).render(_context([{"templateId": "nope"}])))
    assert result == {"templates": [], "telemetry": [], "rawResponse": None}


def test_render_template_copy_never_raises(monkeypatch) -> None:
    renderer = _renderer(FakeModel(GOOD_RESPONSE))

    async def explode(context, cancel_event=None):
        raise RuntimeError("unexpected")

    monkeypatch.setattr(renderer, "render", explode)
    result = asyncio.run(render_template_copy(_context([{"templateId": "step_title"}]), renderer=renderer))
    assert result["templates"][0]["values"] == {"title": "Workspace setup"}
    assert any(issue["reason"] == LLM_ERROR for issue in result["templates"][0]["issues"])


def test_cached_copy_is_served_while_soft_disabled() -> None:
    model = FakeModel(GOOD_RESPONSE)
    health = PersonalizationHealthMonitor(failure_threshold=1)
    telemetry: list = []
    renderer = _renderer(model, telemetry, health=health)
    context = _context([{"templateId": "step_title"}, {"templateId": "cta_primary"}])
    asyncio.run(renderer.render(context))
    health.track_failure()
    assert health.is_soft_disabled() is True

    result = asyncio.run(renderer.render(_context([{"templateId": "step_title"}, {"templateId": "helper_text"}])))
    assert len(model.calls) == 1
    assert result["templates"][0]["values"] == {"title": "Plan your first sprint"}
    assert [r["cacheStatus"] for r in result["telemetry"]] == ["hit", "skip"]


def test_cache_hits_do_not_use_session_quota() -> None:
    model = FakeModel(GOOD_RESPONSE)
    health = PersonalizationHealthMonitor(max_requests_per_window=2)
    renderer = _renderer(model, health=health)
    cached = _context([{"templateId": "step_title"}], session_id="session-1")
    asyncio.run(renderer.render(cached))
    for _ in range(3):
        result = asyncio.run(renderer.render(cached))
        assert result["telemetry"][0]["cacheStatus"] == "hit"
    assert len(model.calls) == 1

    fresh = asyncio.run(renderer.render(_context([{"templateId": "cta_primary"}], session_id="session-1")))
    assert len(model.calls) == 2
    assert fresh["templates"][0]["values"] == {"label": "Start planning"}

    blocked = asyncio.run(renderer.render(_context([{"templateId": "helper_text"}], session_id="session-1")))
    assert len(model.calls) == 2
    assert blocked["telemetry"][0]["cacheStatus"] == "skip"
