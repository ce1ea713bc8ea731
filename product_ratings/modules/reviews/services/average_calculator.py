# product_ratings/modules/reviews/services/average_calculator.py

from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Union

from product_ratings.core.config import get_settings
from product_ratings.modules.reviews.models.review_models import (
    CRITERIA,
    ProductRatingLedger,
    ProductReview,
)
from product_ratings.modules.reviews.schemas.review_schemas import ProductRating
from product_ratings.modules.reviews.services.ledger_service import LedgerTotals
from product_ratings.modules.reviews.services.scores import CriterionScores


def _quantum() -> Decimal:
    return Decimal(1).scaleb(-get_settings().rating_display_decimals)


def round_half_up(value: Decimal) -> Decimal:
    return value.quantize(_quantum(), rounding=ROUND_HALF_UP)


def calculate_average(
    record: Optional[Union[ProductRatingLedger, LedgerTotals]],
    product_id: Optional[int] = None,
) -> ProductRating:
    """
    Turn a ledger row into display averages.

    Per-criterion averages are ``sum / count``. Overall is the mean of the
    four unrounded criterion averages, computed as ``total / (count * 4)``
    so it stays exact (every review scores all four criteria). Rounding
    (half-up, one decimal by default) is applied only here, so stored sums
    never drift.
    """
    if isinstance(record, LedgerTotals):
        sums, count = record.sums, record.review_count
        product_id = record.product_id if product_id is None else product_id
    elif record is not None:
        sums, count = CriterionScores.from_model(record, prefix="sum_"), record.review_count
        product_id = record.product_id if product_id is None else product_id
    else:
        sums, count = CriterionScores(), 0

    if not count:
        return ProductRating(product_id=product_id)

    averages = {name: value / count for name, value in sums.as_dict().items()}
    overall = sums.total() / (count * len(CRITERIA))

    return ProductRating(
        product_id=product_id,
        count=count,
        overall=float(round_half_up(overall)),
        **{name: float(round_half_up(value)) for name, value in averages.items()},
    )


def review_average(review: ProductReview) -> float:
    """Mean of a single review's four criteria, rounded for display"""
    scores = CriterionScores.from_model(review)
    return float(round_half_up(scores.total() / len(CRITERIA)))
