# product_ratings/modules/reviews/tests/conftest.py

import os

# Point the default engine at a throwaway in-memory database before any
# product_ratings module reads the settings.
os.environ["DATABASE_URL"] = "sqlite://"

import pytest
from typing import Any, Dict, Generator
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient

from product_ratings.core.database import Base, configure_sqlite_transactions, get_db
from product_ratings.core.query_logger import setup_query_logging
from product_ratings.modules.reviews.models.review_models import (  # noqa: F401
    ProductRatingLedger,
    ProductReview,
)
from product_ratings.modules.reviews.services.aggregation_service import AggregationCoordinator
from product_ratings.modules.reviews.services.ledger_service import AggregateLedger
from product_ratings.modules.reviews.services.review_service import ReviewRatingService
from product_ratings.modules.reviews.services.review_store import ReviewStore, UniquenessGuard


@pytest.fixture
def engine():
    """Fresh in-memory database per test."""
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    configure_sqlite_transactions(test_engine)
    setup_query_logging(test_engine)
    Base.metadata.create_all(bind=test_engine)

    yield test_engine

    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture
def file_engine(tmp_path):
    """File-backed database so separate sessions use separate connections."""
    test_engine = create_engine(
        f"sqlite:///{tmp_path / 'ratings.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    configure_sqlite_transactions(test_engine)
    setup_query_logging(test_engine)
    Base.metadata.create_all(bind=test_engine)

    yield test_engine

    test_engine.dispose()


@pytest.fixture
def file_session_factory(file_engine):
    # Objects stay loaded after commit, as in a long-lived worker session
    return sessionmaker(autoflush=False, expire_on_commit=False, bind=file_engine)


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session(session_factory) -> Generator[Session, None, None]:
    """Create a test database session."""
    session = session_factory()

    yield session

    session.close()


@pytest.fixture
def override_get_db(session_factory):
    """Override the get_db dependency for testing."""
    def _override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    return _override_get_db


@pytest.fixture
def client(override_get_db):
    """Create a test client."""
    from product_ratings.main import create_app

    app = create_app(create_tables=False)
    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


# Service fixtures
@pytest.fixture
def review_store(db_session: Session) -> ReviewStore:
    return ReviewStore(db_session)


@pytest.fixture
def uniqueness_guard(db_session: Session) -> UniquenessGuard:
    return UniquenessGuard(db_session)


@pytest.fixture
def ledger(db_session: Session) -> AggregateLedger:
    return AggregateLedger(db_session)


@pytest.fixture
def coordinator(db_session: Session) -> AggregationCoordinator:
    return AggregationCoordinator(db_session)


@pytest.fixture
def review_service(db_session: Session) -> ReviewRatingService:
    return ReviewRatingService(db_session)


# Mock data fixtures
@pytest.fixture
def sample_scores() -> Dict[str, Any]:
    return {
        "effectiveness": 4,
        "price_value": 3,
        "ease_of_use": 5,
        "quality": 4,
    }


@pytest.fixture
def sample_review_data(sample_scores) -> Dict[str, Any]:
    return {
        "user_id": 1,
        "product_id": 101,
        "scores": sample_scores,
        "description": "Works as described and the packaging was good.",
    }


@pytest.fixture
def sample_review(coordinator: AggregationCoordinator, sample_review_data) -> int:
    """Create a sample review through the coordinator and return its id."""
    return coordinator.create_review(**sample_review_data)


@pytest.fixture
def make_scores():
    """Build a score mapping, all criteria equal unless overridden."""
    def _make(value, **overrides) -> Dict[str, Any]:
        scores = {
            "effectiveness": value,
            "price_value": value,
            "ease_of_use": value,
            "quality": value,
        }
        scores.update(overrides)
        return scores

    return _make
