# product_ratings/modules/reviews/services/review_service.py

from decimal import Decimal
from typing import Any, List, Mapping, Optional
import logging

from sqlalchemy.orm import Session

from product_ratings.core.exceptions import NotFoundError
from product_ratings.core.transactions import retry_on_transaction_failure
from product_ratings.modules.reviews.models.review_models import CRITERIA, ProductReview
from product_ratings.modules.reviews.schemas.review_schemas import (
    CanReviewResponse,
    ProductRating,
    ReviewResponse,
    ReviewStats,
)
from product_ratings.modules.reviews.services.aggregation_service import (
    AggregationCoordinator,
    LedgerAudit,
    ProductLookup,
)
from product_ratings.modules.reviews.services.average_calculator import (
    calculate_average,
    review_average,
    round_half_up,
)
from product_ratings.modules.reviews.services.scores import UNSET

logger = logging.getLogger(__name__)


class ReviewRatingService:
    """Entry point for the request layer: review writes plus rating reads"""

    def __init__(self, db: Session, product_exists: Optional[ProductLookup] = None):
        self.db = db
        self.coordinator = AggregationCoordinator(db, product_exists=product_exists)
        self.store = self.coordinator.store
        self.guard = self.coordinator.guard
        self.ledger = self.coordinator.ledger
        self.product_exists = product_exists

    # Writes. Failed transactions leave nothing behind, so transient
    # failures are retried here before surfacing to the caller.

    def create_review(
        self,
        user_id: int,
        product_id: int,
        scores: Mapping[str, Any],
        description: Optional[str] = None,
    ) -> int:
        return retry_on_transaction_failure(
            self.coordinator.create_review, user_id, product_id, scores, description
        )

    def update_review(
        self,
        review_id: int,
        user_id: int,
        scores: Optional[Mapping[str, Any]] = None,
        description: Any = UNSET,
    ) -> None:
        retry_on_transaction_failure(
            self.coordinator.update_review, review_id, user_id, scores, description
        )

    def delete_review(self, review_id: int, user_id: int, is_admin: bool = False) -> None:
        retry_on_transaction_failure(
            self.coordinator.delete_review, review_id, user_id, is_admin
        )

    # Reads

    def get_product_rating(self, product_id: int) -> ProductRating:
        """Averages for a product; a product without reviews reads as all zeros"""
        return calculate_average(self.ledger.get(product_id), product_id=product_id)

    def get_review(self, review_id: int) -> ReviewResponse:
        return self._format_review_response(self.store.get(review_id))

    def list_product_reviews(self, product_id: int) -> List[ReviewResponse]:
        if self.product_exists is not None and not self.product_exists(product_id):
            raise NotFoundError(f"Product {product_id} not found")

        return [self._format_review_response(r) for r in self.store.list_for_product(product_id)]

    def list_user_reviews(self, user_id: int) -> List[ReviewResponse]:
        return [self._format_review_response(r) for r in self.store.list_for_user(user_id)]

    def can_user_review(self, user_id: int, product_id: int) -> CanReviewResponse:
        if self.product_exists is not None and not self.product_exists(product_id):
            return CanReviewResponse(can_review=False, reason="Product does not exist")

        if self.guard.has_reviewed(user_id, product_id):
            return CanReviewResponse(
                can_review=False, reason="You have already reviewed this product"
            )

        return CanReviewResponse(can_review=True)

    def get_stats(self) -> ReviewStats:
        """Review totals across the catalogue, served from the ledger"""

        totals = self.ledger.global_totals()
        global_average = Decimal(0)
        if totals.review_count:
            global_average = totals.sums.total() / (totals.review_count * len(CRITERIA))

        return ReviewStats(
            total_reviews=self.store.count(),
            rated_products=self.ledger.rated_product_count(),
            global_average=float(round_half_up(global_average)),
        )

    # Operations

    def audit_product(self, product_id: int) -> LedgerAudit:
        return self.coordinator.audit_product(product_id)

    def rebuild_ledger(self, product_id: int) -> ProductRating:
        return calculate_average(self.coordinator.rebuild_ledger(product_id))

    def _format_review_response(self, review: ProductReview) -> ReviewResponse:
        return ReviewResponse(
            id=review.id,
            user_id=review.user_id,
            product_id=review.product_id,
            effectiveness=float(review.effectiveness),
            price_value=float(review.price_value),
            ease_of_use=float(review.ease_of_use),
            quality=float(review.quality),
            average=review_average(review),
            description=review.description,
            created_at=review.created_at,
            updated_at=review.updated_at,
        )
