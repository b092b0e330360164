from __future__ import annotations

import pytest

from canvas_personalizer.catalog.recipes import RECIPE_IDS, RECIPES, NumberKnob, get_recipe, is_known_recipe
from canvas_personalizer.catalog.templates import TEMPLATE_IDS, get_template, is_known_template, list_templates
from canvas_personalizer.models.personalization import KNOB_IDS


def test_every_recipe_exposes_all_knobs_with_valid_defaults() -> None:
    assert RECIPE_IDS == ("R1", "R2", "R3", "R4")
    for recipe_id in RECIPE_IDS:
        recipe = get_recipe(recipe_id)
        assert set(recipe.knobs) == set(KNOB_IDS)
        for knob in recipe.knobs.values():
            if isinstance(knob, NumberKnob):
                assert knob.clamp(knob.default_value) == knob.default_value
            else:
                assert knob.allows(knob.default_value), (recipe_id, knob.id)


def test_recipe_catalog_is_read_only() -> None:
    with pytest.raises(TypeError):
        RECIPES["R5"] = RECIPES["R1"]  # type: ignore[index]


def test_number_knob_clamps_and_snaps() -> None:
    knob = get_recipe("R1").knobs["approvalChainLength"]
    assert knob.clamp(9) == 5
    assert knob.clamp(-3) == 0


def test_known_ids() -> None:
    assert is_known_recipe("R4")
    assert not is_known_recipe("R9")
    assert is_known_template("badge_caption")
    assert not is_known_template("hero_banner")


def test_templates_have_fallbacks_within_limits() -> None:
    assert [t.id for t in list_templates()] == list(TEMPLATE_IDS)
    for template in list_templates():
        assert template.slots
        for slot in template.slots:
            assert slot.fallback
            assert len(slot.fallback) <= slot.max_length


def test_template_slot_lookup() -> None:
    template = get_template("callout_info")
    heading = template.slot("heading")
    assert heading is not None and heading.required is False
    assert template.slot("missing") is None
