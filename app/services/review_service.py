# app/services/review_service.py
"""
Review Service Layer
Business logic for review submission and mentor rating aggregation.

The review row is the source of truth. Aggregation and the leaderboard
rebuild run after it is committed; if they fail the review still stands and
the cached figures catch up on the next trigger or an admin recompute.
"""

import logging
from decimal import Decimal
from typing import Optional, Dict, Any, List

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.crud import booking as booking_crud
from app.crud import review as review_crud
from app.exceptions import (
    ConflictException,
    DomainException,
    ForbiddenException,
    InvalidStateException,
    NotFoundException,
    ValidationException,
)
from app.models.booking import Booking, BookingStatus
from app.models.payment import PaymentStatus
from app.models.review import Review
from app.models.user import Mentor
from app.services import leaderboard_service
from app.utils.money import round_half_up

logger = logging.getLogger(__name__)

MAX_COMMENT_LENGTH = 1000


# ======================
# ELIGIBILITY
# ======================

def _review_blocker(
    db: Session,
    booking: Optional[Booking],
    booking_id: int,
    student_id: int
) -> Optional[DomainException]:
    """The exception that would stop this student reviewing, or None."""
    if booking is None:
        return NotFoundException("Booking not found", details={"booking_id": booking_id})

    if booking.student_id != student_id:
        return ForbiddenException("Access denied - booking does not belong to you")

    if booking.status != BookingStatus.COMPLETED:
        return InvalidStateException(
            "Can only review completed bookings",
            code="BOOKING_NOT_COMPLETED",
            details={"current_status": BookingStatus(booking.status).value},
        )

    if booking.payment is None or booking.payment.status != PaymentStatus.COMPLETED:
        return InvalidStateException(
            "Payment must be completed before reviewing",
            code="PAYMENT_NOT_COMPLETED",
        )

    if review_crud.get_review_by_booking(db, booking_id) is not None:
        return ConflictException("Review already exists for this booking", code="ALREADY_REVIEWED")

    return None


def check_review_eligibility(db: Session, booking_id: int, student_id: int) -> Dict[str, Any]:
    """
    Check if a student can review a specific booking.

    Returns:
        Dictionary with eligibility status and reason
    """
    booking = booking_crud.get_booking(db, booking_id)
    blocker = _review_blocker(db, booking, booking_id, student_id)

    return {
        "can_review": blocker is None,
        "reason": blocker.message if blocker else "Can review",
        "booking_id": booking_id,
    }


# ======================
# REVIEW SUBMISSION
# ======================

def submit_review(
    db: Session,
    booking_id: int,
    student_id: int,
    rating: int,
    comment: Optional[str] = None
) -> Dict[str, Any]:
    """
    Submit a review for a completed, paid booking.

    Creates the review, then re-aggregates the mentor's rating and rebuilds
    the leaderboard.

    Args:
        db: Database session
        booking_id: Booking identifier
        student_id: Student profile ID of the reviewer
        rating: Rating value (1-5)
        comment: Optional text comment

    Returns:
        Dictionary with review details and the mentor's refreshed figures

    Raises:
        ValidationException: Rating or comment invalid
        NotFoundException / ForbiddenException / InvalidStateException /
        ConflictException: Booking not reviewable by this student
    """
    if isinstance(rating, bool) or not isinstance(rating, int) or not (1 <= rating <= 5):
        raise ValidationException("Rating must be between 1 and 5", code="INVALID_RATING")

    if comment and len(comment) > MAX_COMMENT_LENGTH:
        raise ValidationException(
            f"Comment must be {MAX_COMMENT_LENGTH} characters or less",
            code="COMMENT_TOO_LONG",
        )

    booking = booking_crud.get_booking(db, booking_id)
    blocker = _review_blocker(db, booking, booking_id, student_id)
    if blocker is not None:
        raise blocker

    mentor_id = booking.mentor_id
    try:
        review = review_crud.create_review(
            db=db,
            booking_id=booking_id,
            student_id=student_id,
            mentor_id=mentor_id,
            rating=rating,
            comment=comment
        )
        db.commit()
    except IntegrityError as exc:
        # lost a race with a concurrent submission for the same booking
        db.rollback()
        raise ConflictException("Review already exists for this booking", code="ALREADY_REVIEWED") from exc

    db.refresh(review)
    logger.info("Review %s created for booking %s (rating=%s)", review.id, booking_id, rating)

    mentor = refresh_mentor_standing(db, mentor_id)

    return {
        "review_id": review.id,
        "booking_id": review.booking_id,
        "rating": review.rating,
        "comment": review.comment,
        "created_at": review.created_at.isoformat() if review.created_at else None,
        "mentor_new_average": mentor.rating if mentor else None,
        "mentor_total_reviews": mentor.total_reviews if mentor else None,
        "message": "Review submitted successfully"
    }


def refresh_mentor_standing(db: Session, mentor_id: int) -> Optional[Mentor]:
    """
    Re-aggregate one mentor, then rebuild the leaderboard.

    Failures are logged, never raised: the caller's review is already durable.
    """
    mentor = None
    try:
        mentor = aggregate_mentor_rating(db, mentor_id)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Rating aggregation failed for mentor %s", mentor_id)
        return None

    try:
        leaderboard_service.rebuild_leaderboard(db)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Leaderboard rebuild failed after review for mentor %s", mentor_id)

    return mentor


# ======================
# AGGREGATION
# ======================

def compute_average(rating_sum: int, total: int) -> float:
    """Mean rating rounded half-up to one decimal; 0.0 when there are no reviews."""
    if total <= 0:
        return 0.0
    return float(round_half_up(Decimal(rating_sum) / Decimal(total), 1))


def aggregate_mentor_rating(db: Session, mentor_id: int) -> Mentor:
    """
    Recompute a mentor's rating and review count from their reviews and
    write them through to the Mentor row.

    Raises:
        NotFoundException: Mentor missing
    """
    mentor = booking_crud.get_mentor(db, mentor_id)
    if mentor is None:
        raise NotFoundException("Mentor not found", details={"mentor_id": mentor_id})

    rating_sum, total = review_crud.calculate_mentor_rating(db, mentor_id)
    mentor.rating = compute_average(rating_sum, total)
    mentor.total_reviews = total
    db.commit()
    db.refresh(mentor)

    logger.info("Mentor %s rating updated: %.1f (%d reviews)", mentor_id, mentor.rating, total)
    return mentor


# ======================
# REVIEW RETRIEVAL
# ======================

def get_mentor_reviews(
    db: Session,
    mentor_id: int,
    limit: int = 50,
    offset: int = 0
) -> List[Dict[str, Any]]:
    """
    Get all reviews for a mentor with formatted output.
    """
    reviews = review_crud.get_reviews_by_mentor(db, mentor_id, limit, offset)

    return [
        {
            "review_id": r.id,
            "booking_id": r.booking_id,
            "student_name": r.student.user.name if r.student and r.student.user else "Unknown",
            "rating": r.rating,
            "comment": r.comment,
            "created_at": r.created_at
        }
        for r in reviews
    ]


def get_mentor_rating_summary(db: Session, mentor_id: int) -> Dict[str, Any]:
    """
    Get comprehensive rating summary for a mentor.

    Raises:
        NotFoundException: Mentor missing
    """
    mentor = booking_crud.get_mentor(db, mentor_id)
    if mentor is None:
        raise NotFoundException("Mentor not found", details={"mentor_id": mentor_id})

    distribution = review_crud.get_rating_distribution(db, mentor_id)

    total = mentor.total_reviews
    distribution_pct = {
        rating: (count / total * 100) if total > 0 else 0
        for rating, count in distribution.items()
    }

    return {
        "mentor_id": mentor_id,
        "average_rating": mentor.rating,
        "total_reviews": mentor.total_reviews,
        "rating_distribution": distribution,
        "rating_distribution_percentage": {
            k: round(v, 1) for k, v in distribution_pct.items()
        },
    }


def get_review_for_booking(db: Session, booking_id: int) -> Optional[Review]:
    return review_crud.get_review_by_booking(db, booking_id)


# ======================
# ADMIN OPERATIONS
# ======================

def recalculate_all_ratings(db: Session) -> Dict[str, Any]:
    """
    Recalculate all mentor ratings, then rebuild the leaderboard
    (admin maintenance / cache self-heal).
    """
    mentor_ids = [m.id for m in db.query(Mentor.id).all()]

    updated_count = 0
    errors = []

    for mentor_id in mentor_ids:
        try:
            aggregate_mentor_rating(db, mentor_id)
            updated_count += 1
        except SQLAlchemyError as e:
            db.rollback()
            errors.append(f"Mentor {mentor_id}: {str(e)}")

    entries = leaderboard_service.rebuild_leaderboard(db)

    return {
        "total_mentors": len(mentor_ids),
        "updated_count": updated_count,
        "leaderboard_size": len(entries),
        "errors": errors,
        "message": "Rating recalculation complete"
    }
