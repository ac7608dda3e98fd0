import itertools
from decimal import ROUND_HALF_UP, Decimal

import pytest

from stitchquote.domain.assessment import (
    Assessment,
    Complexity,
    MaterialGuess,
    QuoteCategory,
    RecommendedRepair,
)
from stitchquote.domain.pricing import ASSUMPTIONS, estimate_from_assessment, round_money


def make(**overrides) -> Assessment:
    fields = dict(
        category=QuoteCategory.AUTO,
        item="seat cushion",
        material_guess=MaterialGuess.VINYL,
        damage="torn seam",
        recommended_repair=RecommendedRepair.STITCH_REPAIR,
        complexity=Complexity.LOW,
        material_suggestions="vinyl",
        recommended_repair_explained="restitch",
        notes="",
    )
    fields.update(overrides)
    return Assessment(**fields)


def half_up(value) -> int:
    return int(Decimal(value).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def test_stitch_repair_on_vinyl_seat():
    e = estimate_from_assessment(make())
    assert e.laborHours == 1.5
    assert e.laborSubtotal == 188
    assert (e.materialsLow, e.materialsHigh) == (60, 180)
    assert (e.totalLow, e.totalHigh) == (250, 368)
    assert e.laborRate == 125
    assert e.shopMinimum == 250
    assert e.assumptions == list(ASSUMPTIONS)


def test_armrest_scales_hours_and_materials():
    e = estimate_from_assessment(make(item="Left ARMREST"))
    assert e.laborHours == 1.5  # 1.125 clamped up
    assert (e.materialsLow, e.materialsHigh) == (48, 153)
    assert e.laborSubtotal == 188
    assert (e.totalLow, e.totalHigh) == (250, 341)


def test_marine_recover_high_complexity():
    e = estimate_from_assessment(
        make(
            category=QuoteCategory.MARINE,
            material_guess=MaterialGuess.MARINE_VINYL,
            recommended_repair=RecommendedRepair.RECOVER,
            complexity=Complexity.HIGH,
            item="helm seat",
        )
    )
    assert e.laborHours == 8.25
    assert (e.materialsLow, e.materialsHigh) == (127, 384)
    assert e.laborSubtotal == 1031
    assert (e.totalLow, e.totalHigh) == (1158, 1415)


def test_unknown_repair_uses_default_hours():
    e = estimate_from_assessment(
        make(recommended_repair=RecommendedRepair.UNKNOWN, complexity=Complexity.MEDIUM)
    )
    assert e.laborHours == 3.75
    assert e.laborSubtotal == 469  # 468.75


def test_leather_materials():
    e = estimate_from_assessment(make(material_guess=MaterialGuess.LEATHER))
    assert (e.materialsLow, e.materialsHigh) == (140, 380)


def test_round_money_is_half_up_on_exact_products():
    assert round_money(110, "1.15") == 127
    assert round_money(2.5, "125") == 313
    assert round_money(0.5) == 1


def test_estimate_serializes_camel_case():
    data = estimate_from_assessment(make()).to_dict()
    assert set(data) == {
        "laborHours", "laborRate", "laborSubtotal", "materialsLow", "materialsHigh",
        "shopMinimum", "totalLow", "totalHigh", "assumptions",
    }


@pytest.mark.parametrize(
    "category,material,repair,complexity,item",
    list(
        itertools.product(
            QuoteCategory, MaterialGuess, RecommendedRepair, Complexity,
            ["seat cushion", "rear armrest lid"],
        )
    ),
)
def test_invariants_hold_for_every_combination(category, material, repair, complexity, item):
    e = estimate_from_assessment(
        make(
            category=category,
            material_guess=material,
            recommended_repair=repair,
            complexity=complexity,
            item=item,
        )
    )
    assert e.totalLow <= e.totalHigh
    assert e.totalLow >= 250
    assert e.totalHigh >= e.totalLow + 50
    assert e.materialsLow <= e.materialsHigh
    assert e.laborSubtotal == half_up(Decimal(str(e.laborHours)) * 125)
    assert e.laborHours >= 1.5
    assert e.laborHours <= (7.0 if "armrest" in item else 10.0)
