from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from canvas_personalizer.catalog.recipes import (
    DEFAULT_RECIPE_ID,
    EnumKnob,
    KnobDefinition,
    NumberKnob,
    Recipe,
    get_recipe,
    is_known_recipe,
)
from canvas_personalizer.core.constants import COLLABORATION_TOOLS
from canvas_personalizer.models.personalization import (
    KNOB_IDS,
    FallbackMeta,
    KnobOverride,
    KnobOverrideSet,
    KnobValue,
    ScoringResult,
)
from canvas_personalizer.models.signals import SignalSet
from canvas_personalizer.utils import clamp_confidence

logger = logging.getLogger(__name__)

HIGH_CONFIDENCE_THRESHOLD = 0.4
SUPPORTING_CONFIDENCE_THRESHOLD = 0.25
CONFLICT_CONFIDENCE_THRESHOLD = 0.7

REASON_INSUFFICIENT_CONFIDENCE = "insufficient_confidence"
REASON_CONFLICT_GOVERNANCE_VS_FAST = "conflict_governance_vs_fast"
REASON_UNKNOWN_RECIPE = "unknown_recipe"

APPROVAL_DEPTH_TO_LENGTH = {"single": 0, "dual": 1, "multi": 2}
COPY_TONE_TO_KNOB = {
    "fast-paced": "friendly",
    "onboarding": "friendly",
    "meticulous": "compliance",
    "trusted-advisor": "client_ready",
    "migration": "client_ready",
}
TEAM_SIZE_TO_CADENCE = {
    "solo": ("none", "Solo operator; suppressing notifications by default"),
    "1-9": ("weekly", "Small team; weekly digest keeps signal without noise"),
    "10-24": ("daily", "Mid-size team; daily summaries recommended"),
    "25+": ("real_time", "Large team; real-time alerts maintain alignment"),
}


def _confidence(signals: SignalSet, key: str) -> float:
    return clamp_confidence(signals[key]["metadata"].get("confidence"))  # type: ignore[literal-required]


def _value(signals: SignalSet, key: str) -> Any:
    return signals[key]["value"]  # type: ignore[literal-required]


def _format_names(names: list[str]) -> str:
    if len(names) <= 2:
        return " and ".join(names)
    return ", ".join(names[:-1]) + f" and {names[-1]}"


@dataclass
class KnobDecision:
    knob: KnobDefinition
    value: KnobValue
    rationale: list[str] = field(default_factory=list)
    gate_failures: list[str] = field(default_factory=list)
    locked: bool = False

    @property
    def changed(self) -> bool:
        return self.value != self.knob.default_value

    def apply(self, value: KnobValue, rationale: str) -> None:
        if isinstance(self.knob, NumberKnob) and isinstance(value, int):
            value = self.knob.clamp(value)
        if isinstance(self.knob, EnumKnob) and not self.knob.allows(str(value)):
            return
        self.value = value
        self.rationale.append(rationale)

    def ignore(self, what: str, confidence: float, threshold: float) -> None:
        self.rationale.append(f"Ignored low-confidence {what} signal (<{threshold:.2f})")
        self.gate_failures.append(f"{self.knob.id}: ignored {what} at {confidence:.2f}")

    def to_override(self, default_note: str) -> KnobOverride:
        rationale = list(self.rationale)
        if not self.changed:
            rationale.insert(0, default_note)
        return {
            "value": self.value,
            "rationale": ". ".join(rationale),
            "changedFromDefault": self.changed,
        }


@dataclass(frozen=True)
class _Governance:
    active: bool
    tags: list[str]
    tags_confidence: float
    ignored: bool


class PersonalizationScorer:
    def __init__(
        self,
        *,
        high_threshold: float = HIGH_CONFIDENCE_THRESHOLD,
        supporting_threshold: float = SUPPORTING_CONFIDENCE_THRESHOLD,
        conflict_threshold: float = CONFLICT_CONFIDENCE_THRESHOLD,
    ) -> None:
        self._high_threshold = high_threshold
        self._supporting_threshold = supporting_threshold
        self._conflict_threshold = conflict_threshold

    def passes_gate(self, confidence: float, supported: bool = False) -> bool:
        if confidence >= self._high_threshold:
            return True
        return supported and confidence >= self._supporting_threshold

    def _threshold(self, supported: bool) -> float:
        return self._supporting_threshold if supported else self._high_threshold

    def _governance(self, signals: SignalSet) -> _Governance:
        tags = list(_value(signals, "complianceTags") or [])
        tags_conf = _confidence(signals, "complianceTags")
        objective_compliance = _value(signals, "primaryObjective") == "compliance"
        multi_approval = _value(signals, "approvalChainDepth") == "multi"

        tags_pass = bool(tags) and self.passes_gate(tags_conf, objective_compliance or multi_approval)
        objective_pass = objective_compliance and self.passes_gate(
            _confidence(signals, "primaryObjective"), bool(tags)
        )
        multi_pass = multi_approval and self.passes_gate(_confidence(signals, "approvalChainDepth"), bool(tags))
        return _Governance(
            active=tags_pass or objective_pass or multi_pass,
            tags=tags,
            tags_confidence=tags_conf,
            ignored=bool(tags) and not tags_pass,
        )

    # ==========================================
    # Pass 1: per-knob rules, each gated on its contributing signals
    # ==========================================

    def _score_approval_chain(self, knob: NumberKnob, signals: SignalSet, gov: _Governance) -> KnobDecision:
        decision = KnobDecision(knob=knob, value=knob.default_value)
        makers = _value(signals, "decisionMakers") or []
        primary = [m for m in makers if m.get("isPrimary")]
        multiple_primary = len(primary) >= 2

        depth = _value(signals, "approvalChainDepth")
        if depth in APPROVAL_DEPTH_TO_LENGTH:
            depth_conf = _confidence(signals, "approvalChainDepth")
            supported = gov.active or multiple_primary
            if self.passes_gate(depth_conf, supported):
                mapped = APPROVAL_DEPTH_TO_LENGTH[depth]
                decision.apply(mapped, f"Mapped approval depth '{depth}' (confidence {depth_conf:.2f}) to {knob.clamp(mapped)}")
            else:
                decision.ignore(f"approval depth '{depth}'", depth_conf, self._threshold(supported))

        if gov.active:
            if int(decision.value) < 2:
                decision.apply(2, "Raised approvals for compliance-sensitive signals")
            else:
                decision.rationale.append("Kept raised approvals for compliance-sensitive signals")
            decision.locked = True
        elif gov.ignored:
            decision.ignore("compliance", gov.tags_confidence, self._high_threshold)

        if not decision.locked and multiple_primary and int(decision.value) < 1:
            maker_conf = _confidence(signals, "decisionMakers")
            if self.passes_gate(maker_conf, True):
                decision.apply(1, "Ensured at least one approver based on multiple decision makers")
            else:
                decision.ignore("decision makers", maker_conf, self._supporting_threshold)
        return decision

    def _score_integration_mode(self, knob: EnumKnob, signals: SignalSet, gov: _Governance) -> KnobDecision:
        decision = KnobDecision(knob=knob, value=knob.default_value)
        if gov.active:
            decision.apply("governed", "Compliance or governance signals detected; forcing governed integrations")
            return decision
        if gov.ignored:
            decision.ignore("compliance", gov.tags_confidence, self._high_threshold)

        tools = list(_value(signals, "tools") or [])
        collaboration = [t for t in tools if t in COLLABORATION_TOOLS]
        must_have = _value(signals, "integrationCriticality") == "must-have"
        tools_conf = _confidence(signals, "tools")
        criticality_conf = _confidence(signals, "integrationCriticality")

        if len(collaboration) >= 2 and must_have:
            criticality_ok = self.passes_gate(criticality_conf, True)
            if self.passes_gate(tools_conf, criticality_ok) and criticality_ok:
                decision.apply(
                    "multi_tool",
                    f"Detected {_format_names(collaboration)}; prioritizing multi-tool integrations",
                )
            elif not criticality_ok:
                decision.ignore("integration criticality", criticality_conf, self._supporting_threshold)
            else:
                decision.ignore("tools", tools_conf, self._supporting_threshold)
        elif must_have and tools:
            if self.passes_gate(criticality_conf, True):
                decision.apply("multi_tool", "Integration called out as must-have; elevating multi-tool mode")
            else:
                decision.ignore("integration criticality", criticality_conf, self._supporting_threshold)
        return decision

    def _score_copy_tone(self, knob: EnumKnob, signals: SignalSet, gov: _Governance) -> KnobDecision:
        decision = KnobDecision(knob=knob, value=knob.default_value)
        if gov.active:
            decision.apply("compliance", "Compliance signals found; shifting copy to formal tone")
            return decision
        if gov.ignored:
            decision.ignore("compliance", gov.tags_confidence, self._high_threshold)

        tone = _value(signals, "copyTone")
        mapped = COPY_TONE_TO_KNOB.get(tone)
        if mapped:
            tone_conf = _confidence(signals, "copyTone")
            if self.passes_gate(tone_conf):
                decision.apply(mapped, f"Mapped extracted tone '{tone}' to knob '{mapped}'")
            else:
                decision.ignore(f"tone '{tone}'", tone_conf, self._high_threshold)
        return decision

    def _score_invite_strategy(self, knob: EnumKnob, signals: SignalSet, gov: _Governance) -> KnobDecision:
        decision = KnobDecision(knob=knob, value=knob.default_value)
        if gov.active:
            decision.apply("staged", "Compliance cues present; staging invites until controls are ready")
            return decision
        if gov.ignored:
            decision.ignore("compliance", gov.tags_confidence, self._high_threshold)

        team_size = _value(signals, "teamSizeBracket")
        team_conf = _confidence(signals, "teamSizeBracket")
        makers = _value(signals, "decisionMakers") or []
        multiple_primary = len([m for m in makers if m.get("isPrimary")]) > 1

        if team_size == "solo":
            if self.passes_gate(team_conf):
                decision.apply("self_serve", "Solo team detected; delaying invites until user opts in")
                return decision
            decision.ignore("team size 'solo'", team_conf, self._high_threshold)

        if multiple_primary:
            maker_conf = _confidence(signals, "decisionMakers")
            if self.passes_gate(maker_conf):
                decision.apply("staged", "Multiple decision makers detected; using staged invite rollout")
                return decision
            decision.ignore("decision makers", maker_conf, self._high_threshold)

        if team_size not in ("unknown", "solo"):
            if self.passes_gate(team_conf, multiple_primary):
                decision.apply("immediate", "Team size implies collaboration; prompting immediate invites")
            else:
                decision.ignore(f"team size '{team_size}'", team_conf, self._threshold(multiple_primary))
        return decision

    def _score_notification_cadence(self, knob: EnumKnob, signals: SignalSet, gov: _Governance) -> KnobDecision:
        decision = KnobDecision(knob=knob, value=knob.default_value)
        if gov.active:
            decision.apply("real_time", "Compliance focus detected; escalating to real-time notifications")
            return decision
        if gov.ignored:
            decision.ignore("compliance", gov.tags_confidence, self._high_threshold)

        timeline = (_value(signals, "constraints") or {}).get("timeline")
        constraint_conf = _confidence(signals, "constraints")
        if timeline == "rush":
            if self.passes_gate(constraint_conf, True):
                decision.apply("real_time", "Rush timeline requires real-time notifications")
                return decision
            decision.ignore("rush timeline", constraint_conf, self._supporting_threshold)
        elif timeline == "flexible":
            if self.passes_gate(constraint_conf):
                decision.apply("weekly", "Flexible timeline allows slower notification cadence")
                return decision
            decision.ignore("flexible timeline", constraint_conf, self._high_threshold)

        team_size = _value(signals, "teamSizeBracket")
        if team_size in TEAM_SIZE_TO_CADENCE:
            team_conf = _confidence(signals, "teamSizeBracket")
            if self.passes_gate(team_conf):
                cadence, rationale = TEAM_SIZE_TO_CADENCE[team_size]
                decision.apply(cadence, rationale)
            else:
                decision.ignore(f"team size '{team_size}'", team_conf, self._high_threshold)
        return decision

    def score_knobs(self, recipe: Recipe, signals: SignalSet) -> tuple[KnobOverrideSet, list[str]]:
        """Per-knob gate pass. Returns the overrides plus one detail line per failed gate."""
        gov = self._governance(signals)
        scorers = {
            "approvalChainLength": self._score_approval_chain,
            "integrationMode": self._score_integration_mode,
            "copyTone": self._score_copy_tone,
            "inviteStrategy": self._score_invite_strategy,
            "notificationCadence": self._score_notification_cadence,
        }
        overrides: dict[str, KnobOverride] = {}
        failures: list[str] = []
        for knob_id in KNOB_IDS:
            knob = recipe.knobs[knob_id]
            decision = scorers[knob_id](knob, signals, gov)  # type: ignore[operator]
            overrides[knob_id] = decision.to_override(f"Kept default ({knob.default_value!r})")
            failures.extend(decision.gate_failures)
        return overrides, failures  # type: ignore[return-value]

    # ==========================================
    # Pass 2: global conflict sweep
    # ==========================================

    def detect_conflict(self, signals: SignalSet) -> bool:
        tags = _value(signals, "complianceTags") or []
        governance = bool(tags) and _confidence(signals, "complianceTags") >= self._conflict_threshold
        fast = _value(signals, "copyTone") == "fast-paced" and _confidence(signals, "copyTone") >= self._conflict_threshold
        return governance and fast

    def apply_conflict_guardrail(
        self,
        recipe: Recipe,
        signals: SignalSet,
        overrides: KnobOverrideSet,
    ) -> tuple[KnobOverrideSet, bool]:
        if not self.detect_conflict(signals):
            return overrides, False
        reverted: dict[str, KnobOverride] = {}
        for knob_id in KNOB_IDS:
            knob = recipe.knobs[knob_id]
            reverted[knob_id] = {
                "value": knob.default_value,
                "rationale": (
                    f"Kept default ({knob.default_value!r}). "
                    "Compliance requirements conflict with a fast-paced tone; personalization suspended"
                ),
                "changedFromDefault": False,
            }
        return reverted, True  # type: ignore[return-value]

    def score(self, recipe_id: str, signals: SignalSet) -> ScoringResult:
        reasons: list[str] = []
        details: list[str] = []
        if not is_known_recipe(recipe_id):
            reasons.append(REASON_UNKNOWN_RECIPE)
            details.append(f"Unknown recipe {recipe_id!r}; scored against {DEFAULT_RECIPE_ID}")
            recipe_id = DEFAULT_RECIPE_ID
        recipe = get_recipe(recipe_id)

        overrides, failures = self.score_knobs(recipe, signals)
        if failures:
            reasons.append(REASON_INSUFFICIENT_CONFIDENCE)
            details.extend(failures)

        overrides, conflict = self.apply_conflict_guardrail(recipe, signals, overrides)
        if conflict:
            reasons.append(REASON_CONFLICT_GOVERNANCE_VS_FAST)
            details.append("Compliance tags and fast-paced tone both above conflict threshold")

        fallback: FallbackMeta = {"applied": bool(reasons), "reasons": reasons}
        if details:
            fallback["details"] = details
        logger.debug("Scored knobs for %s (fallback=%s)", recipe_id, reasons)
        return {"overrides": overrides, "fallback": fallback}


_DEFAULT_SCORER = PersonalizationScorer()


def score_recipe_knobs(recipe_id: str, signals: SignalSet) -> ScoringResult:
    """Knob overrides and fallback metadata for a recipe. Never raises."""
    try:
        return _DEFAULT_SCORER.score(recipe_id, signals)
    except Exception as e:
        logger.warning("Scoring failed for %s, using recipe defaults: %s", recipe_id, e)
        recipe = get_recipe(recipe_id if is_known_recipe(recipe_id) else DEFAULT_RECIPE_ID)
        overrides = {
            knob_id: {
                "value": recipe.knobs[knob_id].default_value,
                "rationale": f"Kept default ({recipe.knobs[knob_id].default_value!r})",
                "changedFromDefault": False,
            }
            for knob_id in KNOB_IDS
        }
        return {
            "overrides": overrides,  # type: ignore[typeddict-item]
            "fallback": {"applied": True, "reasons": ["scoring_error"], "details": [str(e)]},
        }
