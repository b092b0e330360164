"""Typed models for signals, knob overrides and rendered templates."""

from .personalization import FallbackMeta, KnobOverride, KnobOverrideSet, ScoringResult
from .signals import PartialSignalSet, SignalMetadata, SignalSet, SignalValue
from .templates import (
    RenderedTemplate,
    TemplateFillContext,
    TemplateFillRequest,
    TemplateFillResult,
    TemplateFillTelemetry,
    ValidationIssue,
    ValidationResult,
)

__all__ = [
    "FallbackMeta",
    "KnobOverride",
    "KnobOverrideSet",
    "PartialSignalSet",
    "RenderedTemplate",
    "ScoringResult",
    "SignalMetadata",
    "SignalSet",
    "SignalValue",
    "TemplateFillContext",
    "TemplateFillRequest",
    "TemplateFillResult",
    "TemplateFillTelemetry",
    "ValidationIssue",
    "ValidationResult",
]
