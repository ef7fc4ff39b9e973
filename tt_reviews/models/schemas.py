"""
Pydantic models for API request/response validation.
"""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, field_validator, model_validator

from tt_reviews.database.models import (
    EquipmentCategory,
    EquipmentSubcategory,
    PlayingStyle,
)
from tt_reviews.utils.constants import RATING_MAX, RATING_MIN, SUBCATEGORIES_BY_CATEGORY


# ---------------------------------------------------------------------------
# Moderation
# ---------------------------------------------------------------------------


class ModerationResult(BaseModel):
    """Outcome of an approve call, shared by the HTTP and Discord surfaces."""

    success: bool
    status: str  # first_approval | fully_approved | approved | already_approved | error
    message: str


class RejectRequest(BaseModel):
    """Optional reason recorded as moderator notes."""

    reason: Optional[str] = Field(default=None, max_length=2000)


class RejectResponse(BaseModel):
    success: bool
    message: str


class StatusCounts(BaseModel):
    pending: int = 0
    approved: int = 0
    rejected: int = 0
    total: int = 0


class ModerationStatsResponse(BaseModel):
    """Per-family status counts for the admin dashboard."""

    reviews: StatusCounts
    player_edits: StatusCounts
    equipment_submissions: StatusCounts


class PendingListResponse(BaseModel):
    items: List[Dict[str, Any]]
    total: int
    limit: int
    offset: int


# ---------------------------------------------------------------------------
# Submissions
# ---------------------------------------------------------------------------


class ReviewerContext(BaseModel):
    """Free-form context about the reviewer and how the equipment was tested."""

    playing_level: Optional[str] = None
    style_of_play: Optional[str] = None
    testing_duration: Optional[str] = None
    testing_quantity: Optional[str] = None
    testing_type: Optional[str] = None
    other_equipment: Optional[str] = None
    purchase_location: Optional[str] = None
    purchase_price: Optional[str] = None


class CreateReviewRequest(BaseModel):
    """Request to review a piece of equipment (one review per user per item)."""

    overall_rating: float = Field(ge=RATING_MIN, le=RATING_MAX)
    category_ratings: Dict[str, float] = Field(default_factory=dict)
    review_text: Optional[str] = Field(default=None, max_length=10000)
    reviewer_context: ReviewerContext = Field(default_factory=ReviewerContext)

    @field_validator("category_ratings")
    @classmethod
    def validate_category_ratings(cls, value: Dict[str, float]) -> Dict[str, float]:
        """Every category rating must fall in the same 1-10 range as the overall rating."""
        for category, rating in value.items():
            if not RATING_MIN <= rating <= RATING_MAX:
                raise ValueError(
                    f"Rating for '{category}' must be between {RATING_MIN} and {RATING_MAX}"
                )
        return value


class CreatePlayerEditRequest(BaseModel):
    """Partial player update; only provided fields are proposed for change."""

    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    highest_rating: Optional[str] = Field(default=None, max_length=50)
    active_years: Optional[str] = Field(default=None, max_length=50)
    active: Optional[bool] = None
    playing_style: Optional[PlayingStyle] = None
    birth_country: Optional[str] = Field(default=None, min_length=3, max_length=3)
    represents: Optional[str] = Field(default=None, min_length=3, max_length=3)

    @model_validator(mode="after")
    def validate_not_empty(self):
        """Ensure at least one field is proposed."""
        if not self.model_dump(exclude_unset=True, exclude_none=True):
            raise ValueError("At least one player field must be provided")
        return self


class CreateEquipmentSubmissionRequest(BaseModel):
    """Request to add a new piece of equipment to the catalog."""

    name: str = Field(min_length=1, max_length=200)
    manufacturer: str = Field(min_length=1, max_length=200)
    category: EquipmentCategory
    subcategory: Optional[EquipmentSubcategory] = None
    specifications: Dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def validate_subcategory(self):
        """Subcategories only apply to categories that define them (rubbers)."""
        if self.subcategory is not None:
            allowed = SUBCATEGORIES_BY_CATEGORY.get(self.category.value, ())
            if self.subcategory.value not in allowed:
                raise ValueError(
                    f"Subcategory '{self.subcategory.value}' is not valid for category "
                    f"'{self.category.value}'"
                )
        return self


class SubmissionCreatedResponse(BaseModel):
    id: int
    submission_type: str
    status: str
