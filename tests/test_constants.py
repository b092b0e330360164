from __future__ import annotations

from canvas_personalizer.core.constants import (
    COLLABORATION_TOOLS,
    DEFAULT_FORBIDDEN_PATTERNS,
    TONE_KEYWORDS,
    TOOL_DEFINITIONS,
    TOOL_MENTION_RE,
)
from canvas_personalizer.utils import sanitize_for_matching


def test_tool_keywords_are_already_sanitized() -> None:
    for tool, keywords in TOOL_DEFINITIONS.items():
        assert keywords, tool
        for keyword in keywords:
            assert sanitize_for_matching(keyword) == keyword, (tool, keyword)


def test_collaboration_tools_are_known_tools() -> None:
    assert COLLABORATION_TOOLS <= set(TOOL_DEFINITIONS)


def test_slang_maps_to_fast_paced() -> None:
    tones = dict(TONE_KEYWORDS)
    assert "gonna" in tones["fast-paced"]
    assert "asap" in tones["fast-paced"]


def test_tool_mention_regex_captures_capitalized_name() -> None:
    match = TOOL_MENTION_RE.search("We need to integrate with Frobnicator soon")
    assert match is not None
    assert match.group(1) == "Frobnicator"


def test_default_forbidden_patterns_cover_placeholders_and_markup() -> None:
    samples = ["Lorem ipsum dolor", "Hi {{name}}", "[Insert headline]", "<script>alert(1)</script>"]
    for sample in samples:
        assert any(p.search(sample) for p in DEFAULT_FORBIDDEN_PATTERNS), sample
    assert not any(p.search("Plan your first sprint") for p in DEFAULT_FORBIDDEN_PATTERNS)


def test_tool_mention_regex_accepts_sentence_initial_verbs() -> None:
    for text in ("We use Frobnicator daily", "Integrate with Frobnicator first", "WE RELY ON Frobnicator"):
        match = TOOL_MENTION_RE.search(text)
        assert match is not None, text
        assert match.group(1) == "Frobnicator"
    assert TOOL_MENTION_RE.search("we use frobnicator daily") is None
