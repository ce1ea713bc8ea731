# product_ratings/modules/reviews/schemas/review_schemas.py

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class ReviewScores(BaseModel):
    """The four criterion scores; range checks happen in the service layer"""

    effectiveness: float
    price_value: float
    ease_of_use: float
    quality: float


class ReviewCreate(ReviewScores):
    """Schema for creating a review"""

    product_id: int = Field(..., gt=0)
    description: Optional[str] = None


class ReviewUpdate(BaseModel):
    """Schema for updating a review; omitted fields keep their value"""

    effectiveness: Optional[float] = None
    price_value: Optional[float] = None
    ease_of_use: Optional[float] = None
    quality: Optional[float] = None
    description: Optional[str] = None

    def score_changes(self) -> Dict[str, Any]:
        return {
            name: getattr(self, name)
            for name in ReviewScores.model_fields
            if getattr(self, name) is not None
        }

    def description_provided(self) -> bool:
        # An explicit null clears the description; omission leaves it alone
        return "description" in self.model_fields_set


class ReviewResponse(BaseModel):
    """Schema for review responses"""

    id: int
    user_id: int
    product_id: int
    effectiveness: float
    price_value: float
    ease_of_use: float
    quality: float
    average: float
    description: Optional[str]
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ReviewCreatedResponse(BaseModel):
    id: int
    message: str = "Review published"


class ProductRating(BaseModel):
    """Display averages for one product"""

    product_id: Optional[int] = None
    effectiveness: float = 0.0
    price_value: float = 0.0
    ease_of_use: float = 0.0
    quality: float = 0.0
    overall: float = 0.0
    count: int = 0


class CanReviewResponse(BaseModel):
    can_review: bool
    reason: Optional[str] = None


class ReviewStats(BaseModel):
    """Catalogue-wide review statistics"""

    total_reviews: int
    rated_products: int
    global_average: float
