# product_ratings/modules/reviews/services/ledger_service.py

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional
import logging

from sqlalchemy import func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from product_ratings.modules.reviews.models.review_models import (
    CRITERIA,
    ProductRatingLedger,
    ProductReview,
)
from product_ratings.modules.reviews.services.scores import CriterionScores, SCORE_QUANTUM

logger = logging.getLogger(__name__)

# Keyed by the names in core.config.SUPPORTED_DIALECTS
_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def _to_decimal(value) -> Decimal:
    # Aggregates come back as Decimal, float or int depending on the driver
    return Decimal(str(value or 0)).quantize(SCORE_QUANTUM)


class LedgerInconsistencyError(SQLAlchemyError):
    """An adjustment matched no ledger row (missing row or count would go negative)"""


@dataclass(frozen=True)
class LedgerTotals:
    """Sums and count for one product, as stored or as recomputed"""
    product_id: int
    sums: CriterionScores
    review_count: int


class AggregateLedger:
    """Per-product running totals.

    Writes are single SQL statements that do their arithmetic in the
    database (``sum = sum + delta``), never read-then-write in Python, so
    concurrent writers on the same product cannot lose updates.
    """

    def __init__(self, db: Session):
        self.db = db

    def upsert_add(self, product_id: int, scores: CriterionScores) -> None:
        """Insert the product's row with these scores, or add them to the existing row"""

        dialect = self.db.get_bind().dialect.name
        insert = _UPSERT_DIALECTS.get(dialect)
        if insert is None:
            # Settings reject other database URLs; only a hand-built engine gets here
            raise ValueError(f"Unsupported database dialect: {dialect}")

        values = {f"sum_{name}": value for name, value in scores.as_dict().items()}
        stmt = insert(ProductRatingLedger).values(
            product_id=product_id,
            review_count=1,
            **values,
        )

        table = ProductRatingLedger.__table__
        on_conflict = {
            f"sum_{name}": table.c[f"sum_{name}"] + stmt.excluded[f"sum_{name}"]
            for name in CRITERIA
        }
        on_conflict["review_count"] = table.c.review_count + 1
        on_conflict["updated_at"] = func.now()

        self.db.execute(
            stmt.on_conflict_do_update(
                index_elements=[table.c.product_id],
                set_=on_conflict,
            )
        )
        logger.debug(f"Ledger upsert-add for product {product_id}: {values}")

    def adjust(self, product_id: int, delta: CriterionScores, count_delta: int = 0) -> None:
        """
        Add a signed delta to each sum (and optionally the count) in place.

        The row must already exist. A decrement is guarded so the count can
        never drop below zero; if no row matches, the surrounding transaction
        is failed rather than silently skipping the adjustment.
        """
        table = ProductRatingLedger.__table__
        values = {
            f"sum_{name}": table.c[f"sum_{name}"] + value
            for name, value in delta.as_dict().items()
        }
        if count_delta:
            values["review_count"] = table.c.review_count + count_delta

        stmt = update(table).where(table.c.product_id == product_id)
        if count_delta < 0:
            stmt = stmt.where(table.c.review_count >= -count_delta)

        result = self.db.execute(stmt.values(**values))
        if result.rowcount != 1:
            logger.error(f"Ledger adjustment for product {product_id} matched {result.rowcount} rows")
            raise LedgerInconsistencyError(
                f"Ledger row for product {product_id} is missing or would go negative"
            )
        logger.debug(f"Ledger adjust for product {product_id}: {delta} count {count_delta:+d}")

    def get(self, product_id: int) -> Optional[ProductRatingLedger]:
        # populate_existing so a long-lived session never serves a stale cached row
        return self.db.execute(
            select(ProductRatingLedger)
            .where(ProductRatingLedger.product_id == product_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def totals(self, product_id: int) -> LedgerTotals:
        row = self.get(product_id)
        if row is None:
            return LedgerTotals(product_id=product_id, sums=CriterionScores(), review_count=0)

        return LedgerTotals(
            product_id=product_id,
            sums=CriterionScores.from_model(row, prefix="sum_"),
            review_count=row.review_count,
        )

    def recompute(self, product_id: int) -> LedgerTotals:
        """Sum the product's reviews from scratch; used only for audits and repairs"""

        row = self.db.execute(
            select(
                *[func.coalesce(func.sum(getattr(ProductReview, name)), 0) for name in CRITERIA],
                func.count(ProductReview.id),
            ).where(ProductReview.product_id == product_id)
        ).one()

        *sums, count = row
        return LedgerTotals(
            product_id=product_id,
            sums=CriterionScores(*[_to_decimal(s) for s in sums]),
            review_count=count,
        )

    def overwrite(self, totals: LedgerTotals) -> ProductRatingLedger:
        """Replace a product's row with the given totals (admin repair)"""

        row = self.db.get(
            ProductRatingLedger, totals.product_id, with_for_update=True, populate_existing=True
        )
        if row is None:
            row = ProductRatingLedger(product_id=totals.product_id)
            self.db.add(row)

        for name, value in totals.sums.as_dict().items():
            setattr(row, f"sum_{name}", value)
        row.review_count = totals.review_count

        self.db.flush()
        return row

    def global_totals(self) -> LedgerTotals:
        """Totals across every product (product_id is reported as 0)"""

        row = self.db.execute(
            select(
                *[
                    func.coalesce(func.sum(getattr(ProductRatingLedger, f"sum_{name}")), 0)
                    for name in CRITERIA
                ],
                func.coalesce(func.sum(ProductRatingLedger.review_count), 0),
            )
        ).one()

        *sums, count = row
        return LedgerTotals(
            product_id=0,
            sums=CriterionScores(*[_to_decimal(s) for s in sums]),
            review_count=int(count),
        )

    def rated_product_count(self) -> int:
        return self.db.execute(
            select(func.count(ProductRatingLedger.product_id))
            .where(ProductRatingLedger.review_count > 0)
        ).scalar_one()
