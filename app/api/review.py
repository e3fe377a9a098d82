# app/api/review.py
"""
Review & Rating API Router
REST endpoints for review submission and rating display

Endpoints:
- POST /reviews/ - Submit a review
- GET /reviews/booking/{booking_id} - Get review for a booking
- GET /reviews/mentor/{mentor_id} - Get all reviews for a mentor
- GET /reviews/eligibility/{booking_id} - Check review eligibility
- GET /reviews/rating/{mentor_id} - Get mentor rating summary
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional

from app import models
from app.database import get_db
from app.schemas.review import (
    ReviewCreate,
    ReviewResponse,
    ReviewDisplay,
    ReviewSubmitResponse,
    MentorRatingResponse,
    ReviewEligibilityResponse
)
from app.services import booking_service, review_service
from app.utils.security import get_current_student, get_current_user

router = APIRouter(prefix="/reviews", tags=["reviews"])


# ======================
# SUBMIT REVIEW
# ======================
@router.post("/", response_model=ReviewSubmitResponse, status_code=status.HTTP_201_CREATED)
def submit_review(
    review: ReviewCreate,
    student: models.Student = Depends(get_current_student),
    db: Session = Depends(get_db)
):
    """
    Submit a review for a completed session.

    Requirements:
    - Booking must be completed and paid
    - Caller must be the student who booked
    - Only one review per booking allowed
    - Rating must be 1-5

    Returns:
        Review details with updated mentor rating
    """
    result = review_service.submit_review(
        db=db,
        booking_id=review.booking_id,
        student_id=student.id,
        rating=review.rating,
        comment=review.comment
    )
    return ReviewSubmitResponse(**result)


# ======================
# GET REVIEW BY BOOKING
# ======================
@router.get("/booking/{booking_id}", response_model=Optional[ReviewResponse])
def get_booking_review(
    booking_id: int,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Review for a booking, or null if none exists. Participants only."""
    booking_service.get_booking_for_participant(db, booking_id, current_user.id)

    review = review_service.get_review_for_booking(db, booking_id)
    if not review:
        return None

    return ReviewResponse(
        review_id=review.id,
        booking_id=review.booking_id,
        student_id=review.student_id,
        mentor_id=review.mentor_id,
        rating=review.rating,
        comment=review.comment,
        created_at=review.created_at
    )


# ======================
# GET MENTOR REVIEWS
# ======================
@router.get("/mentor/{mentor_id}", response_model=List[ReviewDisplay])
def get_mentor_reviews(
    mentor_id: int,
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db)
):
    """Public list of a mentor's reviews, newest first."""
    reviews = review_service.get_mentor_reviews(
        db=db,
        mentor_id=mentor_id,
        limit=limit,
        offset=offset
    )
    return [ReviewDisplay(**r) for r in reviews]


# ======================
# CHECK REVIEW ELIGIBILITY
# ======================
@router.get("/eligibility/{booking_id}", response_model=ReviewEligibilityResponse)
def check_review_eligibility(
    booking_id: int,
    student: models.Student = Depends(get_current_student),
    db: Session = Depends(get_db)
):
    result = review_service.check_review_eligibility(
        db=db,
        booking_id=booking_id,
        student_id=student.id
    )
    return ReviewEligibilityResponse(**result)


# ======================
# GET MENTOR RATING SUMMARY
# ======================
@router.get("/rating/{mentor_id}", response_model=MentorRatingResponse)
def get_mentor_rating(
    mentor_id: int,
    db: Session = Depends(get_db)
):
    """
    Get comprehensive rating summary for a mentor (public endpoint).

    Returns:
        Average rating, total reviews, and rating distribution
    """
    summary = review_service.get_mentor_rating_summary(db, mentor_id)
    return MentorRatingResponse(**summary)
