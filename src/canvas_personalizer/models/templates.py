from __future__ import annotations

from typing import Literal, NotRequired, TypedDict

from canvas_personalizer.models.personalization import KnobOverrideSet
from canvas_personalizer.models.signals import SignalSet

Severity = Literal["error", "warning"]
CacheStatus = Literal["hit", "miss", "skip"]


class ValidationIssue(TypedDict):
    slotId: str
    reason: str
    severity: Severity


class ValidationResult(TypedDict):
    templateId: str
    isValid: bool
    sanitizedValues: dict[str, str]
    issues: list[ValidationIssue]
    fallbackApplied: bool


class TemplateFillRequest(TypedDict):
    templateId: str
    existingValues: NotRequired[dict[str, str]]
    partial: NotRequired[bool]


class TemplateFillContext(TypedDict):
    recipeId: str
    persona: str
    signals: SignalSet
    knobOverrides: KnobOverrideSet
    requests: list[TemplateFillRequest]
    sessionId: NotRequired[str]


class RenderedTemplate(TypedDict):
    templateId: str
    values: dict[str, str]
    issues: list[ValidationIssue]
    fallbackApplied: bool


class TemplateFillTelemetry(TypedDict):
    templateId: str
    hashedValues: dict[str, str]
    issues: list[ValidationIssue]
    fallbackApplied: bool
    cacheStatus: CacheStatus


class TemplateFillResult(TypedDict):
    templates: list[RenderedTemplate]
    telemetry: list[TemplateFillTelemetry]
    rawResponse: str | None
