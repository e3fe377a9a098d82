# app/schemas/review.py
"""
Review, Rating & Leaderboard Pydantic Schemas
Request/response models with validation
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Dict, List, Optional
from datetime import datetime


# ======================
# REVIEW SCHEMAS
# ======================

class ReviewCreate(BaseModel):
    """Schema for creating a review"""
    booking_id: int = Field(..., description="Booking identifier")
    rating: int = Field(..., ge=1, le=5, description="Rating from 1 to 5 stars")
    comment: Optional[str] = Field(None, max_length=1000, description="Review comment (max 1000 chars)")

    @field_validator('comment')
    @classmethod
    def validate_comment(cls, v):
        """Blank comments are stored as no comment"""
        if v is None:
            return None
        return v.strip() or None


class ReviewResponse(BaseModel):
    """Review response for API"""
    review_id: int = Field(..., description="Review identifier")
    booking_id: int = Field(..., description="Booking identifier")
    student_id: int
    mentor_id: int
    rating: int = Field(..., description="Rating (1-5)")
    comment: Optional[str] = Field(None, description="Review comment")
    created_at: Optional[datetime] = Field(None, description="Creation timestamp")


class ReviewDisplay(BaseModel):
    """Simplified review display (for public mentor profiles)"""
    review_id: int
    booking_id: int
    student_name: str
    rating: int
    comment: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ReviewSubmitResponse(BaseModel):
    """Response after submitting a review"""
    review_id: int
    booking_id: int
    rating: int
    comment: Optional[str] = None
    created_at: Optional[str] = None
    mentor_new_average: Optional[float] = Field(None, description="Mentor's updated average rating")
    mentor_total_reviews: Optional[int] = Field(None, description="Mentor's total review count")
    message: str


# ======================
# MENTOR RATING SCHEMAS
# ======================

class MentorRatingResponse(BaseModel):
    """Mentor rating summary response"""
    mentor_id: int = Field(..., description="Mentor profile ID")
    average_rating: float = Field(..., description="Average rating (0-5)")
    total_reviews: int = Field(..., description="Total number of reviews")
    rating_distribution: Dict[int, int] = Field(..., description="Count of each rating (1-5)")
    rating_distribution_percentage: Dict[int, float] = Field(..., description="Percentage of each rating")


# ======================
# ELIGIBILITY CHECK SCHEMA
# ======================

class ReviewEligibilityResponse(BaseModel):
    """Review eligibility check response"""
    can_review: bool = Field(..., description="Whether the student can review this booking")
    reason: str = Field(..., description="Reason (error message or 'Can review')")
    booking_id: int = Field(..., description="Booking identifier")


# ======================
# LEADERBOARD SCHEMAS
# ======================

class LeaderboardEntryResponse(BaseModel):
    rank: int
    mentor_id: int
    mentor_name: str
    expertise: str = ""
    rating: float
    total_reviews: int
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class DomainCount(BaseModel):
    domain: str
    mentor_count: int


class DomainListResponse(BaseModel):
    domains: List[DomainCount]
    total_domains: int


class LeaderboardStatsResponse(BaseModel):
    total_mentors: int = Field(..., description="Available mentors")
    total_reviews: int
    average_rating: float = Field(..., description="Mean rating of available reviewed mentors, one decimal")
    ranked_mentors: int = Field(..., description="Mentors on the published leaderboard")


# ======================
# ADMIN SCHEMAS
# ======================

class RatingRecalculationResponse(BaseModel):
    """Response after recalculating all ratings"""
    total_mentors: int = Field(..., description="Total mentors processed")
    updated_count: int = Field(..., description="Successfully updated count")
    leaderboard_size: int = Field(..., description="Mentors on the rebuilt leaderboard")
    errors: list = Field(default_factory=list, description="Any errors encountered")
    message: str
