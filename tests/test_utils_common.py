from __future__ import annotations

import math

from canvas_personalizer.utils import (
    clamp_confidence,
    clean_text,
    contains_phrase,
    hash_value,
    join_notes,
    sanitize_for_matching,
)


def test_clean_text_unescapes_and_strips_tags() -> None:
    assert clean_text("Hello&nbsp;<b>team</b>\n\n  there") == "Hello team there"


def test_sanitize_for_matching_drops_punctuation() -> None:
    assert sanitize_for_matching("Fast-paced, SOC-2 ready!") == "fast paced soc 2 ready"


def test_contains_phrase_is_word_bounded() -> None:
    assert contains_phrase("we use slack daily", "slack")
    assert contains_phrase("two slacks", "slack")
    assert not contains_phrase("slacker mindset", "slack")
    assert not contains_phrase("", "slack")


def test_clamp_confidence_rejects_non_numbers() -> None:
    assert clamp_confidence(1.7) == 1.0
    assert clamp_confidence(-0.2) == 0.0
    assert clamp_confidence(math.nan, default=0.6) == 0.6
    assert clamp_confidence(True, default=0.3) == 0.3
    assert clamp_confidence("0.9", default=0.6) == 0.6


def test_join_notes_skips_blanks_and_truncates() -> None:
    assert join_notes("a", None, " ", "b") == "a | b"
    assert join_notes(None, "") is None
    assert len(join_notes("x" * 100, "y" * 100, max_chars=160) or "") == 160


def test_hash_value_is_short_and_stable() -> None:
    digest = hash_value("Workspace setup")
    assert len(digest) == 16
    assert digest == hash_value("Workspace setup")
    assert digest != hash_value("Workspace setup!")
