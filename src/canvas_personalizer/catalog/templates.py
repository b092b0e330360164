"""Template catalog: the copy surfaces the model is allowed to influence.

Every slot carries its own length limit, expected tone and a fallback that mirrors the
static copy, so guardrails always have something safe to substitute.
"""
from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Literal, Mapping

TemplateTone = Literal["friendly", "collaborative", "formal", "compliance", "confident"]


@dataclass(frozen=True)
class TemplateSlot:
    id: str
    label: str
    description: str
    required: bool
    max_length: int
    tone: TemplateTone
    fallback: str


@dataclass(frozen=True)
class Template:
    id: str
    label: str
    description: str
    slots: tuple[TemplateSlot, ...]
    example: str
    persona_hint: str | None = None

    def slot(self, slot_id: str) -> TemplateSlot | None:
        for slot in self.slots:
            if slot.id == slot_id:
                return slot
        return None


TEMPLATE_CATALOG: Mapping[str, Template] = MappingProxyType(
    {
        "step_title": Template(
            id="step_title",
            label="Step title",
            description="Headline that anchors the current canvas step or task.",
            persona_hint="explorer",
            example="Explorer quick start",
            slots=(
                TemplateSlot(
                    id="title",
                    label="Step Title",
                    description="Concise title displayed at the top of the step panel.",
                    required=True,
                    max_length=60,
                    tone="friendly",
                    fallback="Workspace setup",
                ),
            ),
        ),
        "cta_primary": Template(
            id="cta_primary",
            label="Primary CTA label",
            description="Primary action button copy for the current step.",
            persona_hint="team",
            example="Continue",
            slots=(
                TemplateSlot(
                    id="label",
                    label="Button label",
                    description="Short verb phrase describing the immediate next action.",
                    required=True,
                    max_length=24,
                    tone="confident",
                    fallback="Continue",
                ),
            ),
        ),
        "helper_text": Template(
            id="helper_text",
            label="Helper text",
            description="Supporting copy under the step title guiding the user forward.",
            persona_hint="explorer",
            example="Keep it lightweight so you can dive in immediately.",
            slots=(
                TemplateSlot(
                    id="body",
                    label="Helper text body",
                    description="One sentence that sets expectations for the step and tone.",
                    required=True,
                    max_length=160,
                    tone="friendly",
                    fallback="Keep it lightweight so you can dive in immediately.",
                ),
            ),
        ),
        "callout_info": Template(
            id="callout_info",
            label="Informational callout",
            description="Info or success callouts rendered above form controls.",
            persona_hint="explorer",
            example="We'll start simple. You can add more later.",
            slots=(
                TemplateSlot(
                    id="heading",
                    label="Callout heading",
                    description="Optional heading text that introduces the callout body.",
                    required=False,
                    max_length=70,
                    tone="friendly",
                    fallback="A quick heads-up",
                ),
                TemplateSlot(
                    id="body",
                    label="Callout body",
                    description="Primary message surfaced in the callout card.",
                    required=True,
                    max_length=180,
                    tone="friendly",
                    fallback="We'll start simple. You can add more later.",
                ),
            ),
        ),
        "badge_caption": Template(
            id="badge_caption",
            label="Badge caption",
            description="Compact caption shown in badges or chips highlighting AI context.",
            persona_hint="power",
            example="AI recommended",
            slots=(
                TemplateSlot(
                    id="caption",
                    label="Badge caption",
                    description="Short descriptor explaining why the badge appears.",
                    required=True,
                    max_length=32,
                    tone="formal",
                    fallback="AI recommended",
                ),
            ),
        ),
    }
)

TEMPLATE_IDS: tuple[str, ...] = tuple(TEMPLATE_CATALOG)


def is_known_template(template_id: str) -> bool:
    return template_id in TEMPLATE_CATALOG


def get_template(template_id: str) -> Template:
    return TEMPLATE_CATALOG[template_id]


def list_templates() -> list[Template]:
    return [TEMPLATE_CATALOG[template_id] for template_id in TEMPLATE_IDS]
