# product_ratings/modules/reviews/services/review_store.py

from dataclasses import dataclass
from typing import Any, Dict, List, Optional
import logging

from sqlalchemy import delete, exists, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from product_ratings.core.exceptions import (
    ConstraintViolationError,
    ForbiddenError,
    NotFoundError,
)
from product_ratings.modules.reviews.models.review_models import ProductReview
from product_ratings.modules.reviews.services.scores import CriterionScores, UNSET

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeletedReview:
    """What a removed review contributed to its product's ledger row"""
    review_id: int
    product_id: int
    scores: CriterionScores


class ReviewStore:
    """Persistence for individual reviews.

    Every method works inside the caller's session; committing is the
    coordinator's job so a review write and its ledger delta land together.
    """

    def __init__(self, db: Session):
        self.db = db

    def insert(
        self,
        user_id: int,
        product_id: int,
        scores: CriterionScores,
        description: Optional[str] = None,
    ) -> int:
        """Persist a new review and return its id"""

        review = ProductReview(
            user_id=user_id,
            product_id=product_id,
            description=description,
            **scores.as_dict(),
        )
        self.db.add(review)

        try:
            self.db.flush()
        except IntegrityError as e:
            logger.info(f"Unique constraint rejected review by user {user_id} for product {product_id}")
            raise ConstraintViolationError(
                "A review by this user already exists for this product"
            ) from e

        return review.id

    def get(self, review_id: int, for_update: bool = False) -> ProductReview:
        # populate_existing so a reused session never computes deltas from a stale cached row
        query = (
            select(ProductReview)
            .where(ProductReview.id == review_id)
            .execution_options(populate_existing=True)
        )
        if for_update:
            query = query.with_for_update()

        review = self.db.execute(query).scalar_one_or_none()
        if review is None:
            raise NotFoundError(f"Review {review_id} not found")

        return review

    def get_owned(self, review_id: int, user_id: int, for_update: bool = True) -> ProductReview:
        """Fetch a review the caller owns, locking the row by default"""

        review = self.get(review_id, for_update=for_update)
        if review.user_id != user_id:
            raise ForbiddenError("You can only modify your own review")

        return review

    def update(self, review_id: int, fields: Dict[str, Any]) -> CriterionScores:
        """
        Apply a partial update and return the pre-update criterion values.

        Fields set to ``UNSET`` keep their current value.
        """
        review = self.get(review_id, for_update=True)
        previous = CriterionScores.from_model(review)

        for name, value in fields.items():
            if value is UNSET:
                continue
            if not hasattr(ProductReview, name) or name in ("id", "user_id", "product_id", "created_at"):
                raise ValueError(f"Field {name} cannot be updated")
            setattr(review, name, value)

        self.db.flush()
        return previous

    def delete(self, review_id: int) -> DeletedReview:
        """
        Remove a review and return what it contributed to the ledger.

        Raises NotFoundError when the row is already gone, so a second
        concurrent delete can never adjust the ledger twice.
        """
        review = self.get(review_id, for_update=True)
        removed = DeletedReview(
            review_id=review.id,
            product_id=review.product_id,
            scores=CriterionScores.from_model(review),
        )

        result = self.db.execute(
            delete(ProductReview)
            .where(ProductReview.id == review_id)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise NotFoundError(f"Review {review_id} not found")

        self.db.expunge(review)
        return removed

    def list_for_product(self, product_id: int) -> List[ProductReview]:
        return list(self.db.execute(
            select(ProductReview)
            .where(ProductReview.product_id == product_id)
            .order_by(ProductReview.created_at.desc(), ProductReview.id.desc())
        ).scalars())

    def list_for_user(self, user_id: int) -> List[ProductReview]:
        return list(self.db.execute(
            select(ProductReview)
            .where(ProductReview.user_id == user_id)
            .order_by(ProductReview.created_at.desc(), ProductReview.id.desc())
        ).scalars())

    def count(self) -> int:
        return self.db.execute(select(func.count(ProductReview.id))).scalar_one()


class UniquenessGuard:
    """Early, friendly rejection of a second review for the same product.

    Must run in the same transaction as the following insert; the unique
    constraint on (user_id, product_id) remains the final backstop.
    """

    def __init__(self, db: Session):
        self.db = db

    def has_reviewed(self, user_id: int, product_id: int) -> bool:
        return self.db.execute(
            select(
                exists().where(
                    ProductReview.user_id == user_id,
                    ProductReview.product_id == product_id,
                )
            )
        ).scalar()
