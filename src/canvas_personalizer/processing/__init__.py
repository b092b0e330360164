"""Signal extraction, knob scoring and template rendering."""

__all__ = [
    "format",
    "fusion",
    "health",
    "json_repair",
    "keyword_extractor",
    "llm_client",
    "llm_extractor",
    "scoring",
    "template_cache",
    "template_renderer",
    "template_validator",
    "types",
]
