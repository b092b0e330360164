from .common import (
    clamp_confidence,
    clean_text,
    clean_text_ws,
    contains_phrase,
    hash_value,
    join_notes,
    sanitize_for_matching,
    truncate,
)

__all__ = [
    "clamp_confidence",
    "clean_text",
    "clean_text_ws",
    "contains_phrase",
    "hash_value",
    "join_notes",
    "sanitize_for_matching",
    "truncate",
]
