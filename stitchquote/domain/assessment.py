# stitchquote/domain/assessment.py
from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, Mapping


class QuoteCategory(str, Enum):
    AUTO = "auto"
    MARINE = "marine"
    MOTORCYCLE = "motorcycle"


class MaterialGuess(str, Enum):
    VINYL = "vinyl"
    LEATHER = "leather"
    MARINE_VINYL = "marine_vinyl"
    UNKNOWN = "unknown"


class RecommendedRepair(str, Enum):
    STITCH_REPAIR = "stitch_repair"
    PANEL_REPLACE = "panel_replace"
    RECOVER = "recover"
    FOAM_REPLACE = "foam_replace"
    UNKNOWN = "unknown"


class Complexity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


def _values(enum_cls) -> list[str]:
    return [m.value for m in enum_cls]


# Customer/admin-facing text fields and what to show when the classifier
# leaves them blank.
TEXT_FALLBACKS: Dict[str, str] = {
    "item": "Upholstered item (not identified from the photos)",
    "damage": (
        "We couldn't confirm the damage from these photos. A close-up of the "
        "worn or torn area in good light would help us quote it accurately."
    ),
    "material_suggestions": (
        "We'll confirm material options with you. Marine-grade vinyl, automotive "
        "vinyl and automotive leather are the usual choices depending on use, "
        "sun exposure and the finish you want to match."
    ),
    "recommended_repair_explained": (
        "We remove the cover, inspect the foam and backing, pattern and sew "
        "replacement panels where needed, then reinstall and finish the piece."
    ),
    "notes": "No additional notes.",
}

ENUM_DEFAULTS: Dict[str, str] = {
    "material_guess": MaterialGuess.UNKNOWN.value,
    "recommended_repair": RecommendedRepair.UNKNOWN.value,
    "complexity": Complexity.MEDIUM.value,
}

ENUM_DOMAINS: Dict[str, list[str]] = {
    "category": _values(QuoteCategory),
    "material_guess": _values(MaterialGuess),
    "recommended_repair": _values(RecommendedRepair),
    "complexity": _values(Complexity),
}

# Structured-output contract sent to the model.
CLASSIFICATION_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "category": {"type": "string", "enum": ENUM_DOMAINS["category"]},
        "item": {"type": "string"},
        "material_guess": {"type": "string", "enum": ENUM_DOMAINS["material_guess"]},
        "material_suggestions": {"type": "string"},
        "damage": {"type": "string"},
        "recommended_repair": {"type": "string", "enum": ENUM_DOMAINS["recommended_repair"]},
        "recommended_repair_explained": {"type": "string"},
        "complexity": {"type": "string", "enum": ENUM_DOMAINS["complexity"]},
        "notes": {"type": "string"},
    },
    "required": [
        "category",
        "item",
        "material_guess",
        "material_suggestions",
        "damage",
        "recommended_repair",
        "recommended_repair_explained",
        "complexity",
        "notes",
    ],
}

# What we accept back: any subset, values may be blank or null, notes may be a list.
CLASSIFICATION_REPLY_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        key: (
            {"type": ["string", "array", "null"], "items": {"type": "string"}}
            if key == "notes"
            else {"type": ["string", "null"]}
        )
        for key in CLASSIFICATION_SCHEMA["properties"]
    },
}


@dataclass(frozen=True)
class Assessment:
    category: QuoteCategory
    item: str
    material_guess: MaterialGuess
    damage: str
    recommended_repair: RecommendedRepair
    complexity: Complexity
    material_suggestions: str
    recommended_repair_explained: str
    notes: str

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Assessment":
        """Build a typed Assessment; raises ValueError on out-of-domain enum values."""
        return cls(
            category=QuoteCategory(data["category"]),
            item=data["item"],
            material_guess=MaterialGuess(data["material_guess"]),
            damage=data["damage"],
            recommended_repair=RecommendedRepair(data["recommended_repair"]),
            complexity=Complexity(data["complexity"]),
            material_suggestions=data["material_suggestions"],
            recommended_repair_explained=data["recommended_repair_explained"],
            notes=data["notes"],
        )

    def to_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        for key, value in out.items():
            if isinstance(value, Enum):
                out[key] = value.value
        return out


def _clean_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        parts = [str(v).strip() for v in value if v is not None]
        return "; ".join(p for p in parts if p)
    return str(value).strip()


def normalize_assessment(raw: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Guarantee every designated text field is non-blank.

    Text fields are trimmed and replaced with their fixed fallback sentence
    when empty. Enum fields and unknown keys are passed through unchanged;
    enum validation is the caller's job (see coerce_classification).
    """
    out: Dict[str, Any] = dict(raw or {})
    for field, fallback in TEXT_FALLBACKS.items():
        text = _clean_text(out.get(field))
        out[field] = text or fallback
    return out


def coerce_classification(raw: Mapping[str, Any], submitted_category: str) -> Dict[str, Any]:
    """
    Replace missing or out-of-domain enum values with the domain's neutral
    member. The category falls back to what the customer selected.
    """
    out: Dict[str, Any] = dict(raw or {})

    category = str(out.get("category") or "").strip().lower()
    out["category"] = category if category in ENUM_DOMAINS["category"] else submitted_category

    for field, default in ENUM_DEFAULTS.items():
        value = str(out.get(field) or "").strip().lower()
        out[field] = value if value in ENUM_DOMAINS[field] else default

    return out


def assessment_from_classification(raw: Mapping[str, Any], submitted_category: str) -> Assessment:
    return Assessment.from_dict(normalize_assessment(coerce_classification(raw, submitted_category)))
