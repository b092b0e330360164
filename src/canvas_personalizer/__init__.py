"""Personalization and templating pipeline for workspace onboarding canvases."""

from canvas_personalizer.processing.fusion import (
    create_default_signals,
    extract_signals,
    merge_signals,
    summarize_signals,
)
from canvas_personalizer.processing.health import PersonalizationHealthMonitor
from canvas_personalizer.processing.llm_client import LLMServiceError
from canvas_personalizer.processing.scoring import PersonalizationScorer, score_recipe_knobs
from canvas_personalizer.processing.template_cache import TemplateCompletionCache
from canvas_personalizer.processing.template_renderer import TemplateRenderer, render_template_copy
from canvas_personalizer.processing.template_validator import validate_template_slots

__version__ = "0.1.0"

__all__ = [
    "LLMServiceError",
    "PersonalizationHealthMonitor",
    "PersonalizationScorer",
    "TemplateCompletionCache",
    "TemplateRenderer",
    "create_default_signals",
    "extract_signals",
    "merge_signals",
    "render_template_copy",
    "score_recipe_knobs",
    "summarize_signals",
    "validate_template_slots",
]
