# product_ratings/modules/reviews/routers/reviews_router.py

from dataclasses import dataclass
from typing import List, Optional
import logging

from fastapi import APIRouter, Body, Depends, Header, Path, status
from sqlalchemy.orm import Session

from product_ratings.core.database import get_db
from product_ratings.core.exceptions import AuthenticationError
from product_ratings.modules.reviews.schemas.review_schemas import (
    CanReviewResponse,
    ProductRating,
    ReviewCreate,
    ReviewCreatedResponse,
    ReviewResponse,
    ReviewScores,
    ReviewStats,
    ReviewUpdate,
)
from product_ratings.modules.reviews.services.aggregation_service import ProductLookup
from product_ratings.modules.reviews.services.review_service import ReviewRatingService
from product_ratings.modules.reviews.services.scores import UNSET

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reviews", tags=["Reviews"])

ADMIN_ROLE = "admin"


@dataclass
class Caller:
    """Identity forwarded by the upstream authentication layer"""
    user_id: int
    is_admin: bool = False


def get_caller(
    x_user_id: Optional[int] = Header(None),
    x_user_role: Optional[str] = Header(None),
) -> Caller:
    if x_user_id is None:
        raise AuthenticationError("Missing caller identity")
    return Caller(user_id=x_user_id, is_admin=(x_user_role or "").lower() == ADMIN_ROLE)


def get_product_lookup() -> Optional[ProductLookup]:
    """Catalogue existence check; override in the app to wire the product service"""
    return None


def get_review_service(
    db: Session = Depends(get_db),
    product_exists: Optional[ProductLookup] = Depends(get_product_lookup),
) -> ReviewRatingService:
    return ReviewRatingService(db, product_exists=product_exists)


@router.post("/", response_model=ReviewCreatedResponse, status_code=status.HTTP_201_CREATED)
def create_review(
    review_data: ReviewCreate,
    caller: Caller = Depends(get_caller),
    service: ReviewRatingService = Depends(get_review_service),
):
    """Create the caller's review for a product"""

    scores = review_data.model_dump(include=set(ReviewScores.model_fields))
    review_id = service.create_review(
        caller.user_id, review_data.product_id, scores, review_data.description
    )
    return ReviewCreatedResponse(id=review_id)


@router.get("/stats", response_model=ReviewStats)
def get_stats(service: ReviewRatingService = Depends(get_review_service)):
    """Review statistics across all products"""
    return service.get_stats()


@router.get("/me", response_model=List[ReviewResponse])
def get_my_reviews(
    caller: Caller = Depends(get_caller),
    service: ReviewRatingService = Depends(get_review_service),
):
    return service.list_user_reviews(caller.user_id)


@router.get("/product/{product_id}", response_model=List[ReviewResponse])
def get_product_reviews(
    product_id: int = Path(..., description="Product ID"),
    service: ReviewRatingService = Depends(get_review_service),
):
    return service.list_product_reviews(product_id)


@router.get("/product/{product_id}/rating", response_model=ProductRating)
def get_product_rating(
    product_id: int = Path(..., description="Product ID"),
    service: ReviewRatingService = Depends(get_review_service),
):
    """Average scores for a product"""
    return service.get_product_rating(product_id)


@router.get("/user/{user_id}", response_model=List[ReviewResponse])
def get_user_reviews(
    user_id: int = Path(..., description="User ID"),
    service: ReviewRatingService = Depends(get_review_service),
):
    return service.list_user_reviews(user_id)


@router.get("/can-review/{product_id}", response_model=CanReviewResponse)
def can_review(
    product_id: int = Path(..., description="Product ID"),
    caller: Caller = Depends(get_caller),
    service: ReviewRatingService = Depends(get_review_service),
):
    """Whether the caller may still review this product"""
    return service.can_user_review(caller.user_id, product_id)


@router.get("/{review_id}", response_model=ReviewResponse)
def get_review(
    review_id: int = Path(..., description="Review ID"),
    service: ReviewRatingService = Depends(get_review_service),
):
    return service.get_review(review_id)


@router.put("/{review_id}", status_code=status.HTTP_204_NO_CONTENT)
def update_review(
    review_id: int = Path(..., description="Review ID"),
    update_data: ReviewUpdate = Body(...),
    caller: Caller = Depends(get_caller),
    service: ReviewRatingService = Depends(get_review_service),
):
    """Update the caller's own review"""

    description = update_data.description if update_data.description_provided() else UNSET
    service.update_review(
        review_id, caller.user_id, update_data.score_changes(), description
    )


@router.delete("/{review_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_review(
    review_id: int = Path(..., description="Review ID"),
    caller: Caller = Depends(get_caller),
    service: ReviewRatingService = Depends(get_review_service),
):
    """Delete a review (owner or admin)"""
    service.delete_review(review_id, caller.user_id, is_admin=caller.is_admin)
