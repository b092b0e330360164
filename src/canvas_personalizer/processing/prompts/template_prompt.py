"""Prompt templates for batched template copy generation."""
from __future__ import annotations

import json
from typing import Any

SYSTEM_PROMPT = """You generate short UI copy for workspace planning screens.
Follow the provided template definitions strictly. Each slot maps to UI text displayed to end users.

Requirements:
- Honour persona hints and knob overrides when crafting language.
- Keep statements factual; avoid marketing jargon or unsupported promises.
- NEVER invent new slots or change the output format.
- Respect the character limits and tone guidance; when unsure, choose neutral, concise phrasing.
- Use existing slot values as-is when provided.

Answer with JSON only.
"""

USER_PROMPT_HEADER = """You will receive template definitions and contextual signals for rendering copy.

Respond with ONLY a JSON object where each key is a template id mapping to an object of slot values. Do not include commentary.

Example response:
{
  "step_title": {"title": "Team workspace essentials"},
  "helper_text": {"body": "Bring collaborators, integrations, and structure together."}
}

Guidelines:
- Respect maxLength for each slot.
- Use the expected tone hints.
- Reuse provided existing values when present; only generate text for slots without an existing value.
- Avoid marketing fluff; keep statements actionable and clear.
- Never invent new slot ids.

Context JSON:
"""


def build_user_prompt(summary: dict[str, Any]) -> str:
    return USER_PROMPT_HEADER + json.dumps(summary, indent=2, ensure_ascii=False)
