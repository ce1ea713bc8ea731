# product_ratings/modules/reviews/models/review_models.py

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Integer,
    Numeric,
    Text,
    UniqueConstraint,
)
from sqlalchemy.sql import func

from product_ratings.core.database import Base


# The four scored dimensions of a review, in display order
CRITERIA = ("effectiveness", "price_value", "ease_of_use", "quality")


class ProductReview(Base):
    """One user's rating of one product"""
    __tablename__ = "product_reviews"

    id = Column(Integer, primary_key=True, index=True)

    # References to external user and product services
    user_id = Column(Integer, nullable=False, index=True)
    product_id = Column(Integer, nullable=False, index=True)

    # Criterion scores, 0.0 to 5.0 in half-point steps
    effectiveness = Column(Numeric(3, 1), nullable=False)
    price_value = Column(Numeric(3, 1), nullable=False)
    ease_of_use = Column(Numeric(3, 1), nullable=False)
    quality = Column(Numeric(3, 1), nullable=False)

    description = Column(Text, nullable=True)

    created_at = Column(DateTime, default=func.now(), nullable=False)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "product_id", name="uq_product_reviews_user_product"),
        CheckConstraint("effectiveness >= 0 AND effectiveness <= 5", name="ck_review_effectiveness_range"),
        CheckConstraint("price_value >= 0 AND price_value <= 5", name="ck_review_price_value_range"),
        CheckConstraint("ease_of_use >= 0 AND ease_of_use <= 5", name="ck_review_ease_of_use_range"),
        CheckConstraint("quality >= 0 AND quality <= 5", name="ck_review_quality_range"),
    )

    def __repr__(self):
        return f"<ProductReview id={self.id} user={self.user_id} product={self.product_id}>"


class ProductRatingLedger(Base):
    """Running per-product criterion sums, kept in lockstep with product_reviews"""
    __tablename__ = "product_rating_ledger"

    product_id = Column(Integer, primary_key=True)

    # Exact sums; rounding only happens when averages are read
    sum_effectiveness = Column(Numeric(12, 1), nullable=False, default=0)
    sum_price_value = Column(Numeric(12, 1), nullable=False, default=0)
    sum_ease_of_use = Column(Numeric(12, 1), nullable=False, default=0)
    sum_quality = Column(Numeric(12, 1), nullable=False, default=0)

    review_count = Column(Integer, nullable=False, default=0)

    updated_at = Column(DateTime, default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint("review_count >= 0", name="ck_ledger_review_count_non_negative"),
    )

    def __repr__(self):
        return f"<ProductRatingLedger product={self.product_id} count={self.review_count}>"
