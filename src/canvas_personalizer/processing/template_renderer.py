from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Literal

from canvas_personalizer.catalog.templates import Template, get_template, is_known_template
from canvas_personalizer.core import config
from canvas_personalizer.models.templates import (
    CacheStatus,
    RenderedTemplate,
    TemplateFillContext,
    TemplateFillRequest,
    TemplateFillResult,
    TemplateFillTelemetry,
    ValidationIssue,
    ValidationResult,
)
from canvas_personalizer.processing.health import PersonalizationHealthMonitor
from canvas_personalizer.processing.json_repair import parse_json_with_repair
from canvas_personalizer.processing.llm_client import (
    BackoffSettings,
    generate_text,
    retry_with_backoff,
    should_retry_on_error,
)
from canvas_personalizer.processing.prompts.template_prompt import SYSTEM_PROMPT, build_user_prompt
from canvas_personalizer.processing.template_cache import TemplateCacheKeyInput, TemplateCompletionCache
from canvas_personalizer.processing.template_validator import validate_template_slots
from canvas_personalizer.processing.types import GenerateTextFunc, TelemetrySink
from canvas_personalizer.utils import hash_value

logger = logging.getLogger(__name__)
telemetry_logger = logging.getLogger("canvas_personalizer.telemetry")

INVALID_TEMPLATE_JSON = "invalid_template_json"
LLM_ERROR = "llm_error"

Disposition = Literal["skip", "hit", "miss"]


def log_telemetry(record: dict[str, Any]) -> None:
    telemetry_logger.info(
        "template_fill template=%s cache=%s fallback=%s issues=%s hashes=%s",
        record.get("templateId"),
        record.get("cacheStatus"),
        record.get("fallbackApplied"),
        [i.get("reason") for i in record.get("issues") or []],
        record.get("hashedValues"),
    )


def _existing_values(request: TemplateFillRequest) -> dict[str, str]:
    existing = request.get("existingValues") or {}
    return {k: v for k, v in existing.items() if isinstance(v, str) and v.strip()}


def _generated_values(template: Template, payload: Any) -> dict[str, str]:
    if not isinstance(payload, dict):
        return {}
    slot_ids = {slot.id for slot in template.slots}
    return {k: v for k, v in payload.items() if k in slot_ids and isinstance(v, str)}


@dataclass
class _Entry:
    request: TemplateFillRequest
    template: Template
    existing: dict[str, str]
    disposition: Disposition = "skip"
    cached: dict[str, str] | None = None
    key_input: TemplateCacheKeyInput | None = None
    extra_issues: list[ValidationIssue] = field(default_factory=list)

    @property
    def partial(self) -> bool:
        return bool(self.request.get("partial"))

    def needs_generation(self) -> bool:
        if not self.partial:
            return True
        return any(slot.id not in self.existing for slot in self.template.slots)


class TemplateRenderer:
    """Fills template slots from cache or one batched model call, then validates every slot."""

    def __init__(
        self,
        *,
        cache: TemplateCompletionCache | None = None,
        generate_text: GenerateTextFunc | None = None,
        backoff: BackoffSettings | None = None,
        health: PersonalizationHealthMonitor | None = None,
        telemetry_sink: TelemetrySink | None = None,
        timeout_sec: float | None = None,
    ) -> None:
        self._cache = cache if cache is not None else TemplateCompletionCache.from_config()
        self._generate_text = generate_text
        self._backoff = backoff or BackoffSettings.from_config()
        self._health = health if health is not None else PersonalizationHealthMonitor()
        self._telemetry_sink = telemetry_sink or log_telemetry
        self._timeout_sec = timeout_sec if timeout_sec is not None else config.TEMPLATE_TIMEOUT_SEC

    @property
    def cache(self) -> TemplateCompletionCache:
        return self._cache

    @property
    def health(self) -> PersonalizationHealthMonitor:
        return self._health

    def _model_available(self, context: TemplateFillContext) -> bool:
        if not config.has_provider_credential():
            return False
        if self._health.is_soft_disabled():
            logger.info("Template generation skipped: personalization soft-disabled")
            return False
        rate = self._health.can_process_request(context.get("sessionId"))
        if not rate["allowed"]:
            logger.info("Template generation rate-limited; retry after %.1fs", rate.get("retryAfterSec", 0.0))
            return False
        return True

    def _key_input(self, context: TemplateFillContext, template: Template) -> TemplateCacheKeyInput:
        signals = context["signals"]
        return {
            "templateId": template.id,
            "persona": context["persona"],
            "industry": str(signals["industry"]["value"]),
            "knobOverrides": context["knobOverrides"],
            "signals": signals,
        }

    def _build_prompt(self, context: TemplateFillContext, pending: list[_Entry]) -> str:
        signals = context["signals"]
        summary = {
            "recipeId": context["recipeId"],
            "persona": context["persona"],
            "knobOverrides": {
                knob_id: {"value": override["value"], "changed": override["changedFromDefault"]}
                for knob_id, override in context["knobOverrides"].items()
            },
            "signals": {
                "teamSize": signals["teamSizeBracket"]["value"],
                "approvalDepth": signals["approvalChainDepth"]["value"],
                "tools": list(signals["tools"]["value"])[:3],
                "objective": signals["primaryObjective"]["value"],
                "constraints": signals["constraints"]["value"],
                "compliance": signals["complianceTags"]["value"],
                "tone": signals["copyTone"]["value"],
            },
            "templates": [
                {
                    "templateId": entry.template.id,
                    "personaHint": entry.template.persona_hint,
                    "slots": [
                        {
                            "id": slot.id,
                            "label": slot.label,
                            "description": slot.description,
                            "tone": slot.tone,
                            "maxLength": slot.max_length,
                            "required": slot.required,
                            **({"existing": entry.existing[slot.id]} if slot.id in entry.existing else {}),
                        }
                        for slot in entry.template.slots
                    ],
                }
                for entry in pending
            ],
        }
        return build_user_prompt(summary)

    async def _call_model(self, prompt: str, cancel_event: asyncio.Event | None) -> str:
        generate = self._generate_text or generate_text

        async def attempt(n: int) -> str:
            text = await generate(
                SYSTEM_PROMPT,
                prompt,
                timeout_sec=self._timeout_sec,
                cancel_event=cancel_event,
            )
            logger.debug("Template fill success (attempt %d)", n)
            return text

        def on_retry(error: BaseException, n: int, delay: float) -> None:
            logger.warning("Template fill attempt %d failed (%s); retrying in %.2fs", n, error, delay)

        return await retry_with_backoff(
            attempt,
            self._backoff,
            should_retry=lambda error, _n: should_retry_on_error(error),
            on_retry=on_retry,
        )

    def _finish(
        self,
        entry: _Entry,
        validation: ValidationResult,
        *,
        status: CacheStatus,
        force_fallback: bool = False,
    ) -> tuple[RenderedTemplate, TemplateFillTelemetry]:
        issues = list(validation["issues"]) + entry.extra_issues
        fallback_applied = validation["fallbackApplied"] or force_fallback
        rendered: RenderedTemplate = {
            "templateId": entry.template.id,
            "values": validation["sanitizedValues"],
            "issues": issues,
            "fallbackApplied": fallback_applied,
        }
        telemetry: TemplateFillTelemetry = {
            "templateId": entry.template.id,
            "hashedValues": {slot_id: hash_value(v) for slot_id, v in validation["sanitizedValues"].items()},
            "issues": issues,
            "fallbackApplied": fallback_applied,
            "cacheStatus": status,
        }
        try:
            self._telemetry_sink(dict(telemetry))
        except Exception as e:
            logger.warning("Telemetry sink failed: %s", e)
        return rendered, telemetry

    def _validate_existing_only(self, entry: _Entry) -> ValidationResult:
        return validate_template_slots(entry.template.id, entry.existing, allow_partial=True)

    def _fallback_for(self, entries: list[_Entry], reason: str | None) -> TemplateFillResult:
        templates: list[RenderedTemplate] = []
        telemetry: list[TemplateFillTelemetry] = []
        for entry in entries:
            if reason:
                entry.extra_issues = [{"slotId": "*", "reason": reason, "severity": "error"}]
            rendered, record = self._finish(
                entry, self._validate_existing_only(entry), status="skip", force_fallback=bool(reason)
            )
            templates.append(rendered)
            telemetry.append(record)
        return {"templates": templates, "telemetry": telemetry, "rawResponse": None}

    def fallback_result(self, context: TemplateFillContext, reason: str | None = LLM_ERROR) -> TemplateFillResult:
        """Catalog fallback for every known template in the context, without a model call."""
        return self._fallback_for(self._entries(context), reason)

    def _entries(self, context: TemplateFillContext) -> list[_Entry]:
        entries: list[_Entry] = []
        for request in context.get("requests") or []:
            template_id = request.get("templateId")
            if not is_known_template(template_id):
                logger.info("Skipping unknown template id %r", template_id)
                continue
            entries.append(_Entry(request=request, template=get_template(template_id), existing=_existing_values(request)))
        return entries

    async def render(self, context: TemplateFillContext, cancel_event: asyncio.Event | None = None) -> TemplateFillResult:
        entries = self._entries(context)
        if not entries:
            return {"templates": [], "telemetry": [], "rawResponse": None}

        pending = [entry for entry in entries if entry.needs_generation()]
        if not pending or not config.is_model_path_enabled():
            return self._fallback_for(entries, None)

        for entry in pending:
            entry.key_input = self._key_input(context, entry.template)
            entry.cached = self._cache.get(entry.key_input)
            entry.disposition = "hit" if entry.cached is not None else "miss"
        misses = [entry for entry in pending if entry.disposition == "miss"]
        # Hits are served even when generation is unavailable; misses then validate existing values only.
        if misses and not self._model_available(context):
            for entry in misses:
                entry.disposition = "skip"
            misses = []

        raw: str | None = None
        payload: dict[str, Any] | None = None
        parse_failed = False
        if misses:
            try:
                raw = await self._call_model(self._build_prompt(context, misses), cancel_event)
            except Exception as e:
                logger.warning("Template fill failed; falling back to defaults: %s", e)
                self._health.track_failure()
                return self._fallback_for(entries, LLM_ERROR)

            payload, stage = parse_json_with_repair(raw)
            parse_failed = payload is None
            if parse_failed:
                self._health.track_failure()
            else:
                self._health.track_success()
                logger.debug("Template response parsed (%s)", stage)

        templates: list[RenderedTemplate] = []
        telemetry: list[TemplateFillTelemetry] = []
        for entry in entries:
            if entry.disposition == "skip":
                rendered, record = self._finish(entry, self._validate_existing_only(entry), status="skip")
            elif entry.disposition == "hit":
                merged = {**(entry.cached or {}), **entry.existing}
                validation = validate_template_slots(entry.template.id, merged, allow_partial=entry.partial)
                rendered, record = self._finish(entry, validation, status="hit")
            elif parse_failed:
                entry.extra_issues = [{"slotId": "*", "reason": INVALID_TEMPLATE_JSON, "severity": "error"}]
                validation = validate_template_slots(entry.template.id, entry.existing, allow_partial=entry.partial)
                rendered, record = self._finish(entry, validation, status="miss", force_fallback=True)
            else:
                generated = _generated_values(entry.template, (payload or {}).get(entry.template.id))
                merged = {**generated, **entry.existing}
                validation = validate_template_slots(entry.template.id, merged, allow_partial=entry.partial)
                newly_generated = any(
                    slot_id not in entry.existing and generated[slot_id].strip() for slot_id in generated
                )
                if not validation["issues"] and newly_generated and entry.key_input is not None:
                    self._cache.set(entry.key_input, validation["sanitizedValues"])
                rendered, record = self._finish(entry, validation, status="miss")
            templates.append(rendered)
            telemetry.append(record)

        return {"templates": templates, "telemetry": telemetry, "rawResponse": raw}


_default_renderer: TemplateRenderer | None = None


def get_default_renderer() -> TemplateRenderer:
    global _default_renderer
    if _default_renderer is None:
        _default_renderer = TemplateRenderer()
    return _default_renderer


async def render_template_copy(
    context: TemplateFillContext,
    renderer: TemplateRenderer | None = None,
    cancel_event: asyncio.Event | None = None,
) -> TemplateFillResult:
    """Render copy for every requested template. Never raises; worst case is catalog fallback text."""
    active = renderer or get_default_renderer()
    try:
        return await active.render(context, cancel_event)
    except Exception as e:
        logger.exception("Template rendering failed unexpectedly: %s", e)
        return active.fallback_result(context, LLM_ERROR)
