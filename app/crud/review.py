# app/crud/review.py
"""
Review CRUD Operations
Core database operations for reviews, mentor rating aggregates and the
leaderboard cache table.
"""

from sqlalchemy.orm import Session
from sqlalchemy import func
from typing import Optional, List, Tuple

from app.models.review import Review, LeaderboardEntry
from app.models.user import Mentor


# ======================
# REVIEW CRUD
# ======================

def create_review(
    db: Session,
    booking_id: int,
    student_id: int,
    mentor_id: int,
    rating: int,
    comment: Optional[str] = None
) -> Review:
    """
    Create a new review for a completed booking.

    Raises:
        ValueError: If rating is out of range
    """
    if not (1 <= rating <= 5):
        raise ValueError("Rating must be between 1 and 5")

    review = Review(
        booking_id=booking_id,
        student_id=student_id,
        mentor_id=mentor_id,
        rating=rating,
        comment=comment
    )

    db.add(review)
    db.flush()
    return review


def get_review_by_booking(db: Session, booking_id: int) -> Optional[Review]:
    return db.query(Review).filter(Review.booking_id == booking_id).first()


def get_reviews_by_mentor(
    db: Session,
    mentor_id: int,
    limit: int = 50,
    offset: int = 0
) -> List[Review]:
    return (
        db.query(Review)
        .filter(Review.mentor_id == mentor_id)
        .order_by(Review.created_at.desc(), Review.id.desc())
        .limit(limit)
        .offset(offset)
        .all()
    )


# ======================
# MENTOR RATING AGGREGATES
# ======================

def calculate_mentor_rating(db: Session, mentor_id: int) -> Tuple[int, int]:
    """
    Sum and count of a mentor's review ratings.

    Returned as integers so the caller can take an exact mean.
    """
    result = db.query(
        func.coalesce(func.sum(Review.rating), 0).label('rating_sum'),
        func.count(Review.id).label('total')
    ).filter(
        Review.mentor_id == mentor_id
    ).first()

    return (int(result.rating_sum or 0), int(result.total or 0))


def get_rating_distribution(db: Session, mentor_id: int) -> dict:
    """
    Get distribution of ratings for a mentor.

    Returns:
        Dictionary with rating counts: {1: count, 2: count, ...}
    """
    distribution = {1: 0, 2: 0, 3: 0, 4: 0, 5: 0}

    results = db.query(
        Review.rating,
        func.count(Review.id).label('count')
    ).filter(
        Review.mentor_id == mentor_id
    ).group_by(
        Review.rating
    ).all()

    for rating, count in results:
        distribution[rating] = count

    return distribution


# ======================
# LEADERBOARD CACHE
# ======================

def get_ranked_mentors(db: Session, min_reviews: int) -> List[Mentor]:
    """Mentors eligible for the leaderboard in rank order; ties fall back to insertion order."""
    return (
        db.query(Mentor)
        .filter(Mentor.total_reviews >= min_reviews)
        .order_by(Mentor.rating.desc(), Mentor.total_reviews.desc(), Mentor.id.asc())
        .all()
    )


def replace_leaderboard(db: Session, entries: List[LeaderboardEntry]) -> None:
    """Swap the whole cache set inside the caller's transaction."""
    db.query(LeaderboardEntry).delete()
    db.add_all(entries)
    db.flush()


def get_leaderboard_entries(
    db: Session,
    limit: int = 20,
    expertise: Optional[str] = None
) -> List[LeaderboardEntry]:
    query = db.query(LeaderboardEntry)
    if expertise:
        query = query.filter(LeaderboardEntry.expertise.ilike(f"%{expertise}%"))
    return query.order_by(LeaderboardEntry.rank.asc()).limit(limit).all()


def get_available_mentor_expertise(db: Session) -> List[str]:
    """Raw comma-separated expertise strings of every available mentor."""
    rows = db.query(Mentor.expertise).filter(Mentor.is_available.is_(True)).order_by(Mentor.id).all()
    return [row[0] or "" for row in rows]


def get_mentor_totals(db: Session) -> Tuple[int, int, Optional[float]]:
    """(available mentors, all reviews, mean rating of available reviewed mentors)."""
    total_mentors = db.query(func.count(Mentor.id)).filter(Mentor.is_available.is_(True)).scalar()
    total_reviews = db.query(func.count(Review.id)).scalar()
    average = db.query(func.avg(Mentor.rating)).filter(
        Mentor.is_available.is_(True),
        Mentor.total_reviews > 0
    ).scalar()
    return int(total_mentors or 0), int(total_reviews or 0), average


def count_leaderboard_entries(db: Session) -> int:
    return db.query(LeaderboardEntry).count()
