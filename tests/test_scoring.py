from __future__ import annotations

from canvas_personalizer.catalog.recipes import get_recipe
from canvas_personalizer.models.personalization import KNOB_IDS
from canvas_personalizer.processing.fusion import create_default_signals
from canvas_personalizer.processing.scoring import (
    REASON_CONFLICT_GOVERNANCE_VS_FAST,
    REASON_INSUFFICIENT_CONFIDENCE,
    REASON_UNKNOWN_RECIPE,
    PersonalizationScorer,
    score_recipe_knobs,
)


def _signals(**fields):
    signals = create_default_signals()
    for key, (value, confidence) in fields.items():
        signals[key] = {"value": value, "metadata": {"source": "llm", "confidence": confidence}}
    return signals


def test_defaults_keep_recipe_values_without_fallback() -> None:
    result = score_recipe_knobs("R1", create_default_signals())
    recipe = get_recipe("R1")
    for knob_id in KNOB_IDS:
        override = result["overrides"][knob_id]
        assert override["value"] == recipe.knobs[knob_id].default_value
        assert override["changedFromDefault"] is False
        assert override["rationale"].startswith("Kept default")
    assert result["fallback"] == {"applied": False, "reasons": []}


def test_confident_compliance_raises_approvals_and_governs() -> None:
    result = score_recipe_knobs("R1", _signals(complianceTags=(["SOC2"], 0.9)))
    overrides = result["overrides"]
    assert overrides["approvalChainLength"]["value"] == 2
    assert overrides["approvalChainLength"]["changedFromDefault"] is True
    assert "compliance" in overrides["approvalChainLength"]["rationale"].lower()
    assert overrides["integrationMode"]["value"] == "governed"
    assert overrides["copyTone"]["value"] == "compliance"
    assert overrides["inviteStrategy"]["value"] == "staged"
    assert overrides["notificationCadence"]["value"] == "real_time"
    assert result["fallback"]["applied"] is False


def test_low_confidence_multi_approval_is_ignored() -> None:
    result = score_recipe_knobs("R1", _signals(approvalChainDepth=("multi", 0.2)))
    approval = result["overrides"]["approvalChainLength"]
    assert approval["value"] == 0
    assert approval["changedFromDefault"] is False
    assert "Ignored low-confidence" in approval["rationale"]
    assert result["fallback"]["applied"] is True
    assert result["fallback"]["reasons"] == [REASON_INSUFFICIENT_CONFIDENCE]
    assert any("approvalChainLength" in line for line in result["fallback"]["details"])


def test_supporting_signal_lowers_the_gate() -> None:
    signals = _signals(approvalChainDepth=("multi", 0.3), primaryObjective=("compliance", 0.9))
    result = score_recipe_knobs("R1", signals)
    assert result["overrides"]["approvalChainLength"]["value"] == 2


def test_governance_conflicting_with_fast_tone_reverts_everything() -> None:
    signals = _signals(complianceTags=(["SOC2"], 0.9), copyTone=("fast-paced", 0.8))
    result = score_recipe_knobs("R2", signals)
    recipe = get_recipe("R2")
    for knob_id in KNOB_IDS:
        override = result["overrides"][knob_id]
        assert override["value"] == recipe.knobs[knob_id].default_value
        assert override["changedFromDefault"] is False
    assert result["fallback"]["applied"] is True
    assert REASON_CONFLICT_GOVERNANCE_VS_FAST in result["fallback"]["reasons"]


def test_conflict_needs_both_signals_above_threshold() -> None:
    scorer = PersonalizationScorer()
    assert not scorer.detect_conflict(_signals(complianceTags=(["SOC2"], 0.9), copyTone=("fast-paced", 0.5)))
    assert scorer.detect_conflict(_signals(complianceTags=(["HIPAA"], 0.7), copyTone=("fast-paced", 0.7)))


def test_collaboration_tools_with_must_have_pick_multi_tool() -> None:
    signals = _signals(tools=(["Slack", "Jira"], 1.0), integrationCriticality=("must-have", 0.6))
    result = score_recipe_knobs("R1", signals)
    integration = result["overrides"]["integrationMode"]
    assert integration["value"] == "multi_tool"
    assert integration["changedFromDefault"] is True
    assert "Detected Slack and Jira" in integration["rationale"]


def test_meticulous_tone_maps_to_compliance_copy() -> None:
    result = score_recipe_knobs("R1", _signals(copyTone=("meticulous", 0.9)))
    assert result["overrides"]["copyTone"]["value"] == "compliance"
    assert result["overrides"]["approvalChainLength"]["value"] == 0


def test_team_size_drives_invites_and_cadence() -> None:
    result = score_recipe_knobs("R1", _signals(teamSizeBracket=("10-24", 1.0)))
    assert result["overrides"]["inviteStrategy"]["value"] == "immediate"
    assert result["overrides"]["notificationCadence"]["value"] == "daily"


def test_solo_team_stays_self_serve() -> None:
    result = score_recipe_knobs("R2", _signals(teamSizeBracket=("solo", 1.0)))
    assert result["overrides"]["inviteStrategy"]["value"] == "self_serve"
    assert result["overrides"]["notificationCadence"]["value"] == "none"


def test_rush_timeline_escalates_cadence() -> None:
    result = score_recipe_knobs("R1", _signals(constraints=({"timeline": "rush"}, 0.3)))
    assert result["overrides"]["notificationCadence"]["value"] == "real_time"


def test_multiple_primary_decision_makers_stage_invites() -> None:
    makers = [
        {"role": "CTO", "seniority": "director+", "isPrimary": True},
        {"role": "CISO", "seniority": "director+", "isPrimary": True},
    ]
    result = score_recipe_knobs("R1", _signals(decisionMakers=(makers, 0.8)))
    assert result["overrides"]["inviteStrategy"]["value"] == "staged"
    assert result["overrides"]["approvalChainLength"]["value"] == 1


def test_unknown_recipe_falls_back_to_default_recipe() -> None:
    result = score_recipe_knobs("R9", create_default_signals())
    assert result["fallback"]["applied"] is True
    assert result["fallback"]["reasons"] == [REASON_UNKNOWN_RECIPE]
    assert result["overrides"]["integrationMode"]["value"] == get_recipe("R1").knobs["integrationMode"].default_value


def test_scoring_is_idempotent() -> None:
    signals = _signals(complianceTags=(["GDPR"], 0.6), tools=(["Slack"], 1.0), teamSizeBracket=("25+", 0.5))
    assert score_recipe_knobs("R3", signals) == score_recipe_knobs("R3", signals)


def test_scoring_never_raises_on_malformed_signals() -> None:
    signals = create_default_signals()
    del signals["tools"]
    result = score_recipe_knobs("R1", signals)
    assert result["fallback"]["reasons"] == ["scoring_error"]
    assert result["overrides"]["approvalChainLength"]["changedFromDefault"] is False
