"""Recipe catalog.

Recipes are the predefined onboarding-flow variants. Each one exposes the same five
knobs that personalization scoring can adjust; the defaults below are what a recipe
renders when no signal clears its confidence gate.
"""
from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Literal, Mapping, Union

RecipeId = Literal["R1", "R2", "R3", "R4"]
Persona = Literal["explorer", "team", "client", "power"]

DEFAULT_RECIPE_ID: RecipeId = "R1"


@dataclass(frozen=True)
class KnobOption:
    value: str
    label: str
    description: str = ""


@dataclass(frozen=True)
class NumberKnob:
    id: str
    label: str
    description: str
    default_value: int
    min: int | None = None
    max: int | None = None
    step: int | None = None
    kind: Literal["number"] = "number"

    def clamp(self, value: int) -> int:
        lower = self.min if self.min is not None else value
        upper = self.max if self.max is not None else value
        clamped = min(max(value, lower), upper)
        if self.step and self.step > 0:
            snapped = round(clamped / self.step) * self.step
            clamped = min(max(snapped, lower), upper)
        return int(clamped)


@dataclass(frozen=True)
class EnumKnob:
    id: str
    label: str
    description: str
    default_value: str
    options: tuple[KnobOption, ...]
    kind: Literal["enum"] = "enum"

    def allows(self, value: str) -> bool:
        return any(option.value == value for option in self.options)


KnobDefinition = Union[NumberKnob, EnumKnob]


@dataclass(frozen=True)
class Recipe:
    id: RecipeId
    persona: Persona
    reasoning: str
    knobs: Mapping[str, KnobDefinition]
    recommended_cta: str = "Continue"


INTEGRATION_MODE_OPTIONS = (
    KnobOption("lightweight", "Lightweight", "Keeps integrations optional and hidden until the user opts in."),
    KnobOption("multi_tool", "Multi-tool workspace", "Surfaces Slack, Jira, and other collaboration integrations by default."),
    KnobOption("client_portal", "Client portal", "Highlights shared folders and external collaboration links up front."),
    KnobOption("governed", "Governed", "Locks integrations to vetted systems and flags compliance controls first."),
)

COPY_TONE_OPTIONS = (
    KnobOption("friendly", "Friendly", "Keeps helper text casual and encouraging for exploratory users."),
    KnobOption("collaborative", "Collaborative", "Focuses copy on teamwork, shared ownership, and next actions."),
    KnobOption("client_ready", "Client-ready", "Uses polished, reassuring language aimed at external stakeholders."),
    KnobOption("compliance", "Compliance", "Leans formal with governance cues and risk reminders."),
)

INVITE_STRATEGY_OPTIONS = (
    KnobOption("self_serve", "Self-serve", "Defers invites so solo users can explore before sharing."),
    KnobOption("immediate", "Immediate", "Encourages adding teammates during the initial canvas setup."),
    KnobOption("stakeholder_first", "Stakeholder first", "Prioritises inviting client stakeholders after the plan is drafted."),
    KnobOption("staged", "Staged", "Rolls invites out after approvals to keep governance in control."),
)

NOTIFICATION_CADENCE_OPTIONS = (
    KnobOption("none", "No notifications", "Suppresses automated reminders for a distraction-free setup."),
    KnobOption("weekly", "Weekly digest", "Sends a weekly summary with outstanding tasks and decisions."),
    KnobOption("daily", "Daily summary", "Keeps the team aligned with day-by-day progress nudges."),
    KnobOption("real_time", "Real-time alerts", "Notifies stakeholders immediately when key fields change."),
)


def _knobs(
    *,
    approvals: int,
    integration: str,
    tone: str,
    invites: str,
    cadence: str,
) -> Mapping[str, KnobDefinition]:
    knobs: dict[str, KnobDefinition] = {
        "approvalChainLength": NumberKnob(
            id="approvalChainLength",
            label="Approval chain length",
            description="Number of approvers required before publishing workspace updates.",
            default_value=approvals,
            min=0,
            max=5,
            step=1,
        ),
        "integrationMode": EnumKnob(
            id="integrationMode",
            label="Integration mode",
            description="Controls how prominently we surface integrations during setup.",
            default_value=integration,
            options=INTEGRATION_MODE_OPTIONS,
        ),
        "copyTone": EnumKnob(
            id="copyTone",
            label="Copy tone",
            description="Sets the voice used in callouts, helper text, and CTAs.",
            default_value=tone,
            options=COPY_TONE_OPTIONS,
        ),
        "inviteStrategy": EnumKnob(
            id="inviteStrategy",
            label="Invite strategy",
            description="Determines when we suggest inviting collaborators.",
            default_value=invites,
            options=INVITE_STRATEGY_OPTIONS,
        ),
        "notificationCadence": EnumKnob(
            id="notificationCadence",
            label="Notification cadence",
            description="Sets the frequency of reminder emails and in-app nudges.",
            default_value=cadence,
            options=NOTIFICATION_CADENCE_OPTIONS,
        ),
    }
    return MappingProxyType(knobs)


RECIPES: Mapping[str, Recipe] = MappingProxyType(
    {
        # Explorer quick start: low friction for solo users
        "R1": Recipe(
            id="R1",
            persona="explorer",
            reasoning="Recommended a lightweight start so you can add details later.",
            knobs=_knobs(approvals=0, integration="lightweight", tone="friendly", invites="self_serve", cadence="none"),
            recommended_cta="Continue",
        ),
        "R2": Recipe(
            id="R2",
            persona="team",
            reasoning="Mentioned a multi-person workspace with Slack and Jira integrations.",
            knobs=_knobs(approvals=1, integration="multi_tool", tone="collaborative", invites="immediate", cadence="daily"),
            recommended_cta="Start setup",
        ),
        "R3": Recipe(
            id="R3",
            persona="client",
            reasoning="Flagged a client project, surfacing sharing guardrails and kickoff tasks.",
            knobs=_knobs(
                approvals=0,
                integration="client_portal",
                tone="client_ready",
                invites="stakeholder_first",
                cadence="weekly",
            ),
            recommended_cta="Review plan",
        ),
        "R4": Recipe(
            id="R4",
            persona="power",
            reasoning="Highlighted approvals and audit needs, enabling governance controls by default.",
            knobs=_knobs(approvals=2, integration="governed", tone="compliance", invites="staged", cadence="real_time"),
            recommended_cta="Enable controls",
        ),
    }
)

RECIPE_IDS: tuple[str, ...] = tuple(RECIPES)


def is_known_recipe(recipe_id: str) -> bool:
    return recipe_id in RECIPES


def get_recipe(recipe_id: str) -> Recipe:
    return RECIPES[recipe_id]
