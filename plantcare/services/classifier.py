"""
Disease diagnosis classifier for the Plant Care service.

Pure functions that turn the ranked disease suggestions of a health
assessment into a normalized primary disease: category tagging, risk
bucketing and an overall severity score.

None of these functions raise for well-typed input. Missing or invalid
probabilities are treated as 0 and missing names as category "Other".
Suggestions and questions may be Pydantic models or plain mappings.
"""

import math
from typing import Any, Mapping, Optional, Sequence

from plantcare.models.diagnosis import (
    DEFAULT_HEALTH_THRESHOLD,
    DEFAULT_PLANT_DETECTION_THRESHOLD,
    DEFAULT_THRESHOLDS,
    Category,
    DetectionThresholds,
    PrimaryDisease,
    RiskLevel,
)

__all__ = [
    "CATEGORY_KEYWORDS",
    "CATEGORY_MULTIPLIERS",
    "Category",
    "DEFAULT_HEALTH_THRESHOLD",
    "DEFAULT_PLANT_DETECTION_THRESHOLD",
    "DEFAULT_THRESHOLDS",
    "DetectionThresholds",
    "HIGH_RISK_THRESHOLD",
    "MEDIUM_RISK_THRESHOLD",
    "RiskLevel",
    "categorize",
    "classify_risk",
    "compute_severity_score",
    "disease_percentage",
    "refine_primary_disease",
    "select_primary_disease",
]

HIGH_RISK_THRESHOLD = 0.7
MEDIUM_RISK_THRESHOLD = 0.4

# Evaluated in order, first match wins.
CATEGORY_KEYWORDS: tuple[tuple[Category, tuple[str, ...]], ...] = (
    (Category.FUNGAL, ("fungal", "blight", "mildew", "rust", "rot", "mold")),
    (Category.BACTERIAL, ("bacterial", "canker", "wilt")),
    (Category.VIRAL, ("virus", "mosaic", "yellow")),
    (
        Category.NUTRITIONAL,
        (
            "nutrient",
            "deficiency",
            "nitrogen",
            "phosphorus",
            "potassium",
            "iron",
            "magnesium",
            "calcium",
        ),
    ),
    (
        Category.ENVIRONMENTAL,
        (
            "water",
            "light",
            "temperature",
            "humidity",
            "senescence",
            "excess",
            "lack",
            "drought",
            "overwater",
        ),
    ),
    (Category.PEST, ("pest", "insect", "aphid", "mite", "thrip", "scale")),
    (Category.PHYSICAL, ("physical", "mechanical", "wound")),
)

CATEGORY_MULTIPLIERS: dict[Category, float] = {
    Category.FUNGAL: 1.2,
    Category.BACTERIAL: 1.1,
    Category.VIRAL: 1.3,
    Category.NUTRITIONAL: 0.8,
    Category.ENVIRONMENTAL: 0.9,
    Category.PEST: 1.0,
    Category.PHYSICAL: 0.7,
    Category.OTHER: 1.0,
}


def _get(obj: Any, key: str) -> Any:
    if obj is None:
        return None
    if isinstance(obj, Mapping):
        return obj.get(key)
    return getattr(obj, key, None)


def _probability(value: Any) -> float:
    """Return value as a float, or 0.0 when it is not a usable number."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.0
    try:
        value = float(value)
    except OverflowError:
        return 0.0
    if not math.isfinite(value):
        return 0.0
    return value


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def categorize(name: Optional[str]) -> Category:
    """
    Derive the disease category from its name by keyword matching.

    Args:
        name: Disease name (case-insensitive), may be None

    Returns:
        Category of the first keyword group contained in the name,
        Category.OTHER when nothing matches

    Example:
        >>> categorize("Early Blight")
        <Category.FUNGAL: 'Fungal'>
    """
    if not name or not isinstance(name, str):
        return Category.OTHER

    lowered = name.lower()
    for category, keywords in CATEGORY_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return category
    return Category.OTHER


def classify_risk(probability: Any) -> RiskLevel:
    """
    Bucket a probability into a risk level.

    Lower bounds are inclusive: 0.7 is High, 0.4 is Medium.

    Args:
        probability: Confidence in [0, 1]; None or invalid counts as 0

    Returns:
        RiskLevel
    """
    p = _probability(probability)
    if not p:
        return RiskLevel.LOW
    if p >= HIGH_RISK_THRESHOLD:
        return RiskLevel.HIGH
    if p >= MEDIUM_RISK_THRESHOLD:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def _primary_from_suggestion(suggestion: Any) -> PrimaryDisease:
    name = _get(suggestion, "name") or None
    probability = _probability(_get(suggestion, "probability"))
    return PrimaryDisease(
        disease_detected=True,
        disease_id=_get(suggestion, "id") or None,
        disease_name=name,
        category=categorize(name),
        probability=probability,
        risk_level=classify_risk(probability),
    )


def select_primary_disease(suggestions: Optional[Sequence[Any]]) -> PrimaryDisease:
    """
    Promote the top-ranked suggestion to primary disease.

    The suggestions are taken in the order the upstream service ranked
    them; they are not re-sorted.

    Args:
        suggestions: Ranked disease suggestions, possibly empty

    Returns:
        PrimaryDisease built from suggestions[0], or the "no disease"
        default when the list is empty
    """
    if not suggestions:
        return PrimaryDisease()
    return _primary_from_suggestion(suggestions[0])


def compute_severity_score(primary: Any) -> int:
    """
    Blend the primary disease confidence with a category multiplier.

    score = probability * 100 * multiplier, capped at 100 and rounded
    half-up. Unknown categories use a multiplier of 1.0.

    Args:
        primary: PrimaryDisease or mapping with probability and category

    Returns:
        Integer severity score in [0, 100]

    Example:
        >>> compute_severity_score({"probability": 0.5, "category": "Physical"})
        35
    """
    probability = _probability(_get(primary, "probability"))
    if not probability:
        return 0

    raw_score = probability * 100
    try:
        multiplier = CATEGORY_MULTIPLIERS[Category(_get(primary, "category"))]
    except ValueError:
        multiplier = 1.0

    score = max(0.0, min(raw_score * multiplier, 100.0))
    return _round_half_up(score)


def refine_primary_disease(
    suggestions: Optional[Sequence[Any]],
    question: Any,
    answer: str,
    current: PrimaryDisease,
) -> PrimaryDisease:
    """
    Re-derive the primary disease from the user's answer to a question.

    The chosen option's suggestion_index selects the suggestion that
    becomes primary. When the question, the option or a valid index is
    missing, `current` is returned unchanged.

    Args:
        suggestions: The diagnosis' suggestions in upstream order
        question: DiagnosticQuestion (or mapping) holding the options
        answer: "yes" or "no"
        current: Primary disease before the answer

    Returns:
        The refined PrimaryDisease, or `current`
    """
    option = _get(_get(question, "options"), answer)
    index = _get(option, "suggestion_index")

    if isinstance(index, bool) or not isinstance(index, int):
        return current
    if not suggestions or index < 0 or index >= len(suggestions):
        return current

    return _primary_from_suggestion(suggestions[index])


def disease_percentage(primary: Any) -> int:
    """Primary disease probability as a rounded percentage in [0, 100], 0 when absent."""
    probability = _probability(_get(primary, "probability"))
    if not probability:
        return 0
    return _round_half_up(max(0.0, min(probability * 100, 100.0)))
