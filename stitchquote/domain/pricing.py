# stitchquote/domain/pricing.py
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Tuple

from stitchquote.domain.assessment import (
    Assessment,
    Complexity,
    MaterialGuess,
    QuoteCategory,
    RecommendedRepair,
)

LABOR_RATE = 125
SHOP_MINIMUM = 250

MIN_HOURS = 1.5
MAX_HOURS = 10.0
MAX_ARMREST_HOURS = 7.0
MIN_SPREAD = 50

DEFAULT_HOURS = 3.0
BASE_HOURS: Dict[RecommendedRepair, float] = {
    RecommendedRepair.STITCH_REPAIR: 1.5,
    RecommendedRepair.FOAM_REPLACE: 2.5,
    RecommendedRepair.PANEL_REPLACE: 3.5,
    RecommendedRepair.RECOVER: 5.5,
}

COMPLEXITY_MULTIPLIER: Dict[Complexity, float] = {
    Complexity.LOW: 1.0,
    Complexity.MEDIUM: 1.25,
    Complexity.HIGH: 1.5,
}

DEFAULT_MATERIALS: Tuple[int, int] = (60, 180)
MATERIALS_BY_GUESS: Dict[MaterialGuess, Tuple[int, int]] = {
    MaterialGuess.LEATHER: (140, 380),
    MaterialGuess.MARINE_VINYL: (110, 320),
}

MARINE_MATERIAL_FACTORS = ("1.15", "1.20")
ARMREST_HOURS_FACTOR = 0.75
ARMREST_MATERIAL_FACTORS = ("0.80", "0.85")

ASSUMPTIONS: Tuple[str, ...] = (
    "Estimate is based on photos only; final quote confirmed after inspection or additional close-ups.",
    "Assumes no hidden damage under covers or foam.",
    "Does not include major frame repair or airbag/sensor complications.",
)


@dataclass(frozen=True)
class Estimate:
    laborHours: float
    laborRate: int
    laborSubtotal: int
    materialsLow: int
    materialsHigh: int
    shopMinimum: int
    totalLow: int
    totalHigh: int
    assumptions: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "laborHours": self.laborHours,
            "laborRate": self.laborRate,
            "laborSubtotal": self.laborSubtotal,
            "materialsLow": self.materialsLow,
            "materialsHigh": self.materialsHigh,
            "shopMinimum": self.shopMinimum,
            "totalLow": self.totalLow,
            "totalHigh": self.totalHigh,
            "assumptions": list(self.assumptions),
        }


def clamp(n: float, lo: float, hi: float) -> float:
    if n < lo:
        return lo
    if n > hi:
        return hi
    return n


def round_money(amount: float, factor: str = "1") -> int:
    """Whole dollars, half-up, computed on the exact decimal product."""
    exact = Decimal(str(amount)) * Decimal(factor)
    return int(exact.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def estimate_from_assessment(a: Assessment) -> Estimate:
    """
    Deterministic price range for a typed Assessment.

    Money is rounded to whole dollars at every derivation step, in this
    order: category scaling, item scaling, labor subtotal.
    """
    # Labor hours
    hours = BASE_HOURS.get(a.recommended_repair, DEFAULT_HOURS)
    hours = clamp(hours * COMPLEXITY_MULTIPLIER[a.complexity], MIN_HOURS, MAX_HOURS)

    # Materials range
    materials_low, materials_high = MATERIALS_BY_GUESS.get(a.material_guess, DEFAULT_MATERIALS)

    if a.category == QuoteCategory.MARINE:
        low_factor, high_factor = MARINE_MATERIAL_FACTORS
        materials_low = round_money(materials_low, low_factor)
        materials_high = round_money(materials_high, high_factor)

    if "armrest" in (a.item or "").lower():
        hours = clamp(hours * ARMREST_HOURS_FACTOR, MIN_HOURS, MAX_ARMREST_HOURS)
        low_factor, high_factor = ARMREST_MATERIAL_FACTORS
        materials_low = round_money(materials_low, low_factor)
        materials_high = round_money(materials_high, high_factor)

    labor_subtotal = round_money(hours, str(LABOR_RATE))

    raw_low = labor_subtotal + materials_low
    raw_high = labor_subtotal + materials_high

    total_low = max(SHOP_MINIMUM, raw_low)
    total_high = max(total_low + MIN_SPREAD, raw_high)

    return Estimate(
        laborHours=hours,
        laborRate=LABOR_RATE,
        laborSubtotal=labor_subtotal,
        materialsLow=materials_low,
        materialsHigh=materials_high,
        shopMinimum=SHOP_MINIMUM,
        totalLow=total_low,
        totalHigh=total_high,
        assumptions=list(ASSUMPTIONS),
    )
