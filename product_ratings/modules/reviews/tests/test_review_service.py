# product_ratings/modules/reviews/tests/test_review_service.py

import pytest

from product_ratings.core.exceptions import NotFoundError, TransactionFailureError
from product_ratings.modules.reviews.schemas.review_schemas import ProductRating
from product_ratings.modules.reviews.services.review_service import ReviewRatingService


@pytest.fixture
def no_sleep(monkeypatch):
    delays = []
    monkeypatch.setattr("product_ratings.core.transactions.time.sleep", delays.append)
    return delays


class TestRatingReads:
    """Test cases for rating and review reads"""

    def test_rating_for_unreviewed_product(self, review_service):
        assert review_service.get_product_rating(555) == ProductRating(product_id=555)

    def test_rating_after_create(self, review_service, sample_review):
        rating = review_service.get_product_rating(101)

        assert rating.count == 1
        assert rating.effectiveness == 4.0
        assert rating.price_value == 3.0
        assert rating.ease_of_use == 5.0
        assert rating.quality == 4.0
        assert rating.overall == 4.0

    def test_get_review_includes_average(self, review_service, sample_review):
        review = review_service.get_review(sample_review)

        assert review.id == sample_review
        assert review.user_id == 1
        assert review.average == 4.0
        assert review.description == "Works as described and the packaging was good."

    def test_get_missing_review(self, review_service):
        with pytest.raises(NotFoundError):
            review_service.get_review(999)

    def test_list_product_reviews(self, review_service, make_scores):
        review_service.create_review(1, 101, make_scores(4))
        review_service.create_review(2, 101, make_scores(2, quality=3))
        review_service.create_review(3, 202, make_scores(5))

        reviews = review_service.list_product_reviews(101)

        assert len(reviews) == 2
        assert {r.user_id for r in reviews} == {1, 2}
        assert {r.average for r in reviews} == {4.0, 2.3}

    def test_list_reviews_for_unknown_product(self, db_session):
        service = ReviewRatingService(db_session, product_exists=lambda pid: False)

        with pytest.raises(NotFoundError):
            service.list_product_reviews(101)

    def test_list_user_reviews(self, review_service, make_scores):
        review_service.create_review(7, 101, make_scores(4))
        review_service.create_review(7, 202, make_scores(1))
        review_service.create_review(8, 202, make_scores(3))

        reviews = review_service.list_user_reviews(7)

        assert {r.product_id for r in reviews} == {101, 202}
        assert review_service.list_user_reviews(9) == []


class TestCanUserReview:

    def test_can_review_fresh_product(self, review_service):
        result = review_service.can_user_review(1, 101)

        assert result.can_review is True
        assert result.reason is None

    def test_cannot_review_twice(self, review_service, sample_review):
        result = review_service.can_user_review(1, 101)

        assert result.can_review is False
        assert result.reason == "You have already reviewed this product"
        assert review_service.can_user_review(2, 101).can_review is True

    def test_cannot_review_unknown_product(self, db_session):
        service = ReviewRatingService(db_session, product_exists=lambda pid: pid != 404)

        result = service.can_user_review(1, 404)

        assert result.can_review is False
        assert result.reason == "Product does not exist"


class TestReviewStats:

    def test_empty_stats(self, review_service):
        stats = review_service.get_stats()

        assert stats.total_reviews == 0
        assert stats.rated_products == 0
        assert stats.global_average == 0.0

    def test_stats_across_products(self, review_service, make_scores):
        review_service.create_review(1, 101, make_scores(4))
        review_service.create_review(2, 101, make_scores(3))
        review_service.create_review(1, 202, make_scores(5, quality=4.5))

        stats = review_service.get_stats()

        assert stats.total_reviews == 3
        assert stats.rated_products == 2
        # (16 + 12 + 19.5) / 12 = 3.958...
        assert stats.global_average == 4.0


class TestWriteRetries:
    """Transient transaction failures are retried before surfacing"""

    def test_retryable_failure_is_retried(self, review_service, make_scores, monkeypatch, no_sleep):
        original = review_service.coordinator.create_review
        attempts = []

        def flaky_create(*args, **kwargs):
            attempts.append(1)
            if len(attempts) == 1:
                raise TransactionFailureError("database is locked", retryable=True)
            return original(*args, **kwargs)

        monkeypatch.setattr(review_service.coordinator, "create_review", flaky_create)

        review_id = review_service.create_review(1, 101, make_scores(4))

        assert len(attempts) == 2
        assert len(no_sleep) == 1
        assert review_service.get_review(review_id).product_id == 101
        assert review_service.get_product_rating(101).count == 1

    def test_non_retryable_failure_surfaces(self, review_service, make_scores, monkeypatch, no_sleep):
        attempts = []

        def failing_delete(*args, **kwargs):
            attempts.append(1)
            raise TransactionFailureError("ledger broken", retryable=False)

        monkeypatch.setattr(review_service.coordinator, "delete_review", failing_delete)

        with pytest.raises(TransactionFailureError):
            review_service.delete_review(1, 1)

        assert len(attempts) == 1
        assert no_sleep == []

    def test_update_and_delete_through_service(self, review_service, sample_review):
        review_service.update_review(sample_review, 1, {"quality": 2})
        assert review_service.get_product_rating(101).quality == 2.0

        review_service.delete_review(sample_review, 1)
        assert review_service.get_product_rating(101).count == 0


class TestLedgerMaintenance:

    def test_audit_and_rebuild(self, review_service, sample_review):
        assert review_service.audit_product(101).consistent

        rating = review_service.rebuild_ledger(101)

        assert rating.product_id == 101
        assert rating.count == 1
        assert rating.overall == 4.0
