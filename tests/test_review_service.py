"""
Ratings & Review Core Logic Tests
Review preconditions, half-up mean aggregation and rating summaries.
"""

from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError

from app.crud import review as review_crud
from app.exceptions import (
    ConflictException,
    ForbiddenException,
    InvalidStateException,
    NotFoundException,
    ValidationException,
)
from app.models.booking import Booking, BookingStatus
from app.models.payment import Payment, PaymentStatus
from app.models.review import LeaderboardEntry, Review
from app.services import review_service
from conftest import SLOT_START, make_mentor, make_student


def _booking(db, student, mentor, offset_days=0, status=BookingStatus.COMPLETED,
             payment_status=PaymentStatus.COMPLETED):
    start = SLOT_START + timedelta(days=offset_days)
    booking = Booking(
        student_id=student.id,
        mentor_id=mentor.id,
        start_time=start,
        end_time=start + timedelta(hours=1),
        status=status,
    )
    booking.payment = Payment(
        student_id=student.id,
        amount=mentor.hourly_rate,
        currency="INR",
        status=payment_status,
    )
    db.add(booking)
    db.commit()
    db.refresh(booking)
    return booking


# ======================
# SUBMISSION
# ======================

def test_submit_review_updates_mentor(db_session, student, mentor):
    booking = _booking(db_session, student, mentor)

    result = review_service.submit_review(db_session, booking.id, student.id, 5, "Excellent mentor!")

    assert result["review_id"] is not None
    assert result["booking_id"] == booking.id
    assert result["rating"] == 5
    assert result["comment"] == "Excellent mentor!"
    assert result["mentor_new_average"] == 5.0
    assert result["mentor_total_reviews"] == 1
    db_session.refresh(mentor)
    assert mentor.rating == 5.0
    assert mentor.total_reviews == 1


def test_average_rounds_half_up(db_session, student, mentor):
    for day, rating in enumerate([5, 4, 5, 3]):
        booking = _booking(db_session, student, mentor, offset_days=day)
        result = review_service.submit_review(db_session, booking.id, student.id, rating)

    assert result["mentor_new_average"] == 4.3
    assert result["mentor_total_reviews"] == 4


def test_review_missing_booking(db_session, student):
    with pytest.raises(NotFoundException):
        review_service.submit_review(db_session, 999, student.id, 5)


def test_review_by_other_student_forbidden(db_session, student, mentor):
    booking = _booking(db_session, student, mentor)
    other = make_student(db_session, email="other@test.edu")

    with pytest.raises(ForbiddenException):
        review_service.submit_review(db_session, booking.id, other.id, 5)


@pytest.mark.parametrize("status", [BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.CANCELLED])
def test_review_requires_completed_booking(db_session, student, mentor, status):
    booking = _booking(db_session, student, mentor, status=status, payment_status=PaymentStatus.PENDING)

    with pytest.raises(InvalidStateException) as exc_info:
        review_service.submit_review(db_session, booking.id, student.id, 4)
    assert exc_info.value.code == "BOOKING_NOT_COMPLETED"


def test_review_requires_completed_payment(db_session, student, mentor):
    booking = _booking(db_session, student, mentor, payment_status=PaymentStatus.REFUNDED)

    with pytest.raises(InvalidStateException) as exc_info:
        review_service.submit_review(db_session, booking.id, student.id, 4)
    assert exc_info.value.code == "PAYMENT_NOT_COMPLETED"


def test_duplicate_review_conflict(db_session, student, mentor):
    booking = _booking(db_session, student, mentor)
    review_service.submit_review(db_session, booking.id, student.id, 4)

    with pytest.raises(ConflictException) as exc_info:
        review_service.submit_review(db_session, booking.id, student.id, 5)

    assert exc_info.value.code == "ALREADY_REVIEWED"
    assert db_session.query(Review).count() == 1


@pytest.mark.parametrize("rating", [0, 6, -1, True, False, 4.5])
def test_invalid_rating(db_session, student, mentor, rating):
    booking = _booking(db_session, student, mentor)
    with pytest.raises(ValidationException) as exc_info:
        review_service.submit_review(db_session, booking.id, student.id, rating)
    assert exc_info.value.code == "INVALID_RATING"


def test_comment_too_long(db_session, student, mentor):
    booking = _booking(db_session, student, mentor)
    with pytest.raises(ValidationException) as exc_info:
        review_service.submit_review(db_session, booking.id, student.id, 4, "x" * 1001)
    assert exc_info.value.code == "COMMENT_TOO_LONG"

    review_service.submit_review(db_session, booking.id, student.id, 4, "x" * 1000)


def test_leaderboard_failure_does_not_lose_review(db_session, student, mentor, monkeypatch):
    booking = _booking(db_session, student, mentor)

    def broken_rebuild(db, min_reviews=None):
        raise OperationalError("DELETE", {}, Exception("database is locked"))

    monkeypatch.setattr(review_service.leaderboard_service, "rebuild_leaderboard", broken_rebuild)

    result = review_service.submit_review(db_session, booking.id, student.id, 3)

    assert result["mentor_new_average"] == 3.0
    assert review_crud.get_review_by_booking(db_session, booking.id) is not None
    assert db_session.query(LeaderboardEntry).count() == 0


def test_create_review_crud_rejects_bad_rating(db_session, student, mentor):
    booking = _booking(db_session, student, mentor)
    with pytest.raises(ValueError, match="Rating must be between 1 and 5"):
        review_crud.create_review(db_session, booking.id, student.id, mentor.id, rating=6)


# ======================
# ELIGIBILITY
# ======================

def test_check_review_eligibility(db_session, student, mentor):
    booking = _booking(db_session, student, mentor)

    eligible = review_service.check_review_eligibility(db_session, booking.id, student.id)
    assert eligible == {"can_review": True, "reason": "Can review", "booking_id": booking.id}

    review_service.submit_review(db_session, booking.id, student.id, 5)
    done = review_service.check_review_eligibility(db_session, booking.id, student.id)
    assert done["can_review"] is False
    assert "already exists" in done["reason"]

    missing = review_service.check_review_eligibility(db_session, 999, student.id)
    assert missing["can_review"] is False


# ======================
# AGGREGATION
# ======================

@pytest.mark.parametrize(
    "rating_sum,total,expected",
    [
        (0, 0, 0.0),
        (17, 4, 4.3),
        (89, 20, 4.5),
        (13, 3, 4.3),
        (7, 2, 3.5),
        (5, 1, 5.0),
    ],
)
def test_compute_average(rating_sum, total, expected):
    assert review_service.compute_average(rating_sum, total) == expected


def test_aggregate_mentor_without_reviews(db_session, mentor):
    mentor.rating = 4.9
    mentor.total_reviews = 12
    db_session.commit()

    refreshed = review_service.aggregate_mentor_rating(db_session, mentor.id)

    assert refreshed.rating == 0.0
    assert refreshed.total_reviews == 0


def test_aggregate_missing_mentor(db_session):
    with pytest.raises(NotFoundException):
        review_service.aggregate_mentor_rating(db_session, 999)


def test_rating_summary_and_listing(db_session, student, mentor):
    for day, rating in enumerate([5, 5, 4, 2]):
        booking = _booking(db_session, student, mentor, offset_days=day)
        review_service.submit_review(db_session, booking.id, student.id, rating, f"review {day}")

    summary = review_service.get_mentor_rating_summary(db_session, mentor.id)
    assert summary["average_rating"] == 4.0
    assert summary["total_reviews"] == 4
    assert summary["rating_distribution"] == {1: 0, 2: 1, 3: 0, 4: 1, 5: 2}
    assert summary["rating_distribution_percentage"][5] == 50.0

    reviews = review_service.get_mentor_reviews(db_session, mentor.id, limit=2)
    assert len(reviews) == 2
    assert reviews[0]["student_name"] == "Test Student"

    with pytest.raises(NotFoundException):
        review_service.get_mentor_rating_summary(db_session, 999)


def test_recalculate_all_ratings_heals_cache(db_session, student, mentor):
    idle = make_mentor(db_session, email="idle@test.edu", name="Idle Mentor")
    booking = _booking(db_session, student, mentor)
    review_service.submit_review(db_session, booking.id, student.id, 4)

    mentor.rating = 1.0
    mentor.total_reviews = 99
    db_session.commit()

    result = review_service.recalculate_all_ratings(db_session)

    assert result["total_mentors"] == 2
    assert result["updated_count"] == 2
    assert result["leaderboard_size"] == 1
    assert result["errors"] == []
    db_session.refresh(mentor)
    db_session.refresh(idle)
    assert (mentor.rating, mentor.total_reviews) == (4.0, 1)
    assert (idle.rating, idle.total_reviews) == (0.0, 0)
