# product_ratings/modules/reviews/services/scores.py

from dataclasses import dataclass, fields
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Mapping, Optional

from product_ratings.core.config import SCORE_RESOLUTION, get_settings
from product_ratings.core.exceptions import InvalidScoreError, ValidationError
from product_ratings.modules.reviews.models.review_models import CRITERIA


# Sentinel for distinguishing "not provided" from None in partial updates
UNSET = object()

ZERO = Decimal("0")
SCORE_QUANTUM = SCORE_RESOLUTION


@dataclass(frozen=True)
class CriterionScores:
    """Scores (or score deltas) for the four review criteria"""
    effectiveness: Decimal = ZERO
    price_value: Decimal = ZERO
    ease_of_use: Decimal = ZERO
    quality: Decimal = ZERO

    @classmethod
    def from_model(cls, obj: Any, prefix: str = "") -> "CriterionScores":
        """Read criterion columns off a review row (or ``sum_`` columns off a ledger row)."""
        return cls(**{
            name: Decimal(getattr(obj, f"{prefix}{name}") or 0) for name in CRITERIA
        })

    def __add__(self, other: "CriterionScores") -> "CriterionScores":
        return CriterionScores(**{
            name: getattr(self, name) + getattr(other, name) for name in CRITERIA
        })

    def __sub__(self, other: "CriterionScores") -> "CriterionScores":
        return CriterionScores(**{
            name: getattr(self, name) - getattr(other, name) for name in CRITERIA
        })

    def __neg__(self) -> "CriterionScores":
        return CriterionScores(**{name: -getattr(self, name) for name in CRITERIA})

    def replace(self, changes: Mapping[str, Decimal]) -> "CriterionScores":
        values = self.as_dict()
        values.update(changes)
        return CriterionScores(**values)

    def as_dict(self) -> Dict[str, Decimal]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    def is_zero(self) -> bool:
        return all(value == 0 for value in self.as_dict().values())

    def total(self) -> Decimal:
        return sum(self.as_dict().values(), ZERO)


def to_score(field: str, value: Any) -> Decimal:
    """
    Convert and validate a single criterion score.

    Scores must be finite numbers inside the configured range and land on
    the configured step (half points by default).
    """
    settings = get_settings()

    if value is None or isinstance(value, bool):
        raise InvalidScoreError(f"{field} must be a number", field=field)

    try:
        score = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise InvalidScoreError(f"{field} must be a number", field=field)

    if not score.is_finite():
        raise InvalidScoreError(f"{field} must be a finite number", field=field)

    minimum = Decimal(str(settings.rating_min_score))
    maximum = Decimal(str(settings.rating_max_score))
    if score < minimum or score > maximum:
        raise InvalidScoreError(
            f"{field} must be between {minimum} and {maximum}", field=field
        )

    step = Decimal(str(settings.rating_score_step))
    if (score - minimum) % step != 0:
        raise InvalidScoreError(f"{field} must be a multiple of {step}", field=field)

    return score.quantize(SCORE_QUANTUM)


def validate_scores(scores: Mapping[str, Any]) -> CriterionScores:
    """Validate a complete set of four criterion scores."""
    unknown = set(scores) - set(CRITERIA)
    if unknown:
        raise InvalidScoreError(f"Unknown criteria: {', '.join(sorted(unknown))}")

    missing = [name for name in CRITERIA if name not in scores]
    if missing:
        raise InvalidScoreError(f"Missing criteria: {', '.join(missing)}")

    return CriterionScores(**{name: to_score(name, scores[name]) for name in CRITERIA})


def validate_partial_scores(scores: Optional[Mapping[str, Any]]) -> Dict[str, Decimal]:
    """Validate the criteria present in a partial update; absent or None entries are skipped."""
    if not scores:
        return {}

    unknown = set(scores) - set(CRITERIA)
    if unknown:
        raise InvalidScoreError(f"Unknown criteria: {', '.join(sorted(unknown))}")

    return {
        name: to_score(name, value)
        for name, value in scores.items()
        if value is not None
    }


def validate_description(description: Optional[str]) -> Optional[str]:
    """Trim a review description and enforce its length bounds."""
    if description is None:
        return None

    settings = get_settings()
    text = description.strip()
    if not text:
        return None

    min_length = settings.review_description_min_length
    max_length = settings.review_description_max_length
    if not min_length <= len(text) <= max_length:
        raise ValidationError(
            f"Description must be between {min_length} and {max_length} characters"
        )

    return text
