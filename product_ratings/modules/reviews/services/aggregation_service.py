# product_ratings/modules/reviews/services/aggregation_service.py

from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional
import logging

from sqlalchemy.orm import Session

from product_ratings.core.exceptions import ConflictError, ForbiddenError, NotFoundError
from product_ratings.core.query_logger import log_query_performance
from product_ratings.core.transactions import atomic
from product_ratings.modules.reviews.models.review_models import ProductRatingLedger
from product_ratings.modules.reviews.services.ledger_service import AggregateLedger, LedgerTotals
from product_ratings.modules.reviews.services.review_store import ReviewStore, UniquenessGuard
from product_ratings.modules.reviews.services.scores import (
    UNSET,
    validate_description,
    validate_partial_scores,
    validate_scores,
)

logger = logging.getLogger(__name__)

ProductLookup = Callable[[int], bool]


@dataclass(frozen=True)
class LedgerAudit:
    """Stored ledger totals next to totals recomputed from the reviews"""
    product_id: int
    stored: LedgerTotals
    expected: LedgerTotals

    @property
    def consistent(self) -> bool:
        return (
            self.stored.sums == self.expected.sums
            and self.stored.review_count == self.expected.review_count
        )


class AggregationCoordinator:
    """Applies review mutations and their ledger deltas as single transactions.

    Create adds the new scores with an atomic upsert, update adds only the
    difference between new and old scores, delete subtracts the removed
    scores and decrements the count. No write ever re-sums a product's
    reviews, so each one costs the same regardless of review volume.
    """

    def __init__(self, db: Session, product_exists: Optional[ProductLookup] = None):
        self.db = db
        self.store = ReviewStore(db)
        self.guard = UniquenessGuard(db)
        self.ledger = AggregateLedger(db)
        self.product_exists = product_exists

    def create_review(
        self,
        user_id: int,
        product_id: int,
        scores: Mapping[str, Any],
        description: Optional[str] = None,
    ) -> int:
        """Create a review and fold its scores into the product's ledger row"""

        validated = validate_scores(scores)
        description = validate_description(description)
        self._ensure_product_exists(product_id)

        with log_query_performance("create_review"), atomic(self.db, "create_review"):
            if self.guard.has_reviewed(user_id, product_id):
                raise ConflictError(
                    "You have already reviewed this product", error_code="ALREADY_REVIEWED"
                )

            review_id = self.store.insert(user_id, product_id, validated, description)
            self.ledger.upsert_add(product_id, validated)

        logger.info(f"Created review {review_id} by user {user_id} for product {product_id}")
        return review_id

    def update_review(
        self,
        review_id: int,
        user_id: int,
        scores: Optional[Mapping[str, Any]] = None,
        description: Any = UNSET,
    ) -> None:
        """Edit the caller's own review and apply the score difference to the ledger"""

        changes = validate_partial_scores(scores)
        if description is not UNSET:
            description = validate_description(description)

        with log_query_performance("update_review"), atomic(self.db, "update_review"):
            review = self.store.get_owned(review_id, user_id)
            product_id = review.product_id

            if not changes and description is UNSET:
                logger.info(f"Update of review {review_id} carried no changes")
                return

            previous = self.store.update(review_id, {**changes, "description": description})
            delta = previous.replace(changes) - previous

            if not delta.is_zero():
                self.ledger.adjust(product_id, delta)

        logger.info(f"Updated review {review_id} for product {product_id} (delta {delta.as_dict()})")

    def delete_review(self, review_id: int, user_id: int, is_admin: bool = False) -> None:
        """Remove a review (owner or admin) and subtract it from the ledger"""

        with log_query_performance("delete_review"), atomic(self.db, "delete_review"):
            review = self.store.get(review_id, for_update=True)
            if not is_admin and review.user_id != user_id:
                raise ForbiddenError("You can only delete your own review")

            removed = self.store.delete(review_id)
            self.ledger.adjust(removed.product_id, -removed.scores, count_delta=-1)

        logger.info(f"Deleted review {review_id} for product {removed.product_id} (by user {user_id})")

    def audit_product(self, product_id: int) -> LedgerAudit:
        """Compare the stored ledger row with a fresh recomputation (read-only)"""

        audit = LedgerAudit(
            product_id=product_id,
            stored=self.ledger.totals(product_id),
            expected=self.ledger.recompute(product_id),
        )
        if not audit.consistent:
            logger.warning(
                f"Ledger drift for product {product_id}: stored {audit.stored}, expected {audit.expected}"
            )
        return audit

    def rebuild_ledger(self, product_id: int) -> ProductRatingLedger:
        """Overwrite a product's ledger row with totals recomputed from its reviews"""

        with atomic(self.db, "rebuild_ledger"):
            expected = self.ledger.recompute(product_id)
            row = self.ledger.overwrite(expected)

        logger.warning(
            f"Rebuilt ledger for product {product_id}: {expected.review_count} reviews"
        )
        return row

    def _ensure_product_exists(self, product_id: int):
        if self.product_exists is not None and not self.product_exists(product_id):
            raise NotFoundError(f"Product {product_id} not found")
