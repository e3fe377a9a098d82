# app/services/leaderboard_service.py
"""
Leaderboard Builder

Full rebuild of the ranked mentor projection. The new list is computed in
memory, then the old cache set is replaced in one transaction, so readers
see either the old leaderboard or the new one, never a mix.

Mentor counts are in the hundreds; a larger catalogue would need an
incremental top-K structure instead.
"""

import logging
from collections import Counter
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from app.config import settings
from app.crud import review as review_crud
from app.models.review import LeaderboardEntry
from app.models.user import Mentor
from app.utils.money import round_half_up
from app.utils.timeutils import utcnow

logger = logging.getLogger(__name__)


def rank_mentors(mentors: List[Mentor]) -> List[LeaderboardEntry]:
    """
    Assign ranks 1..N by (rating desc, total_reviews desc); equal keys keep
    the input order, which is mentor insertion order.
    """
    ordered = sorted(mentors, key=lambda m: (-m.rating, -m.total_reviews))
    now = utcnow()
    return [
        LeaderboardEntry(
            mentor_id=mentor.id,
            mentor_name=mentor.name or f"Mentor {mentor.id}",
            expertise=mentor.expertise or "",
            rating=mentor.rating,
            total_reviews=mentor.total_reviews,
            rank=position,
            updated_at=now,
        )
        for position, mentor in enumerate(ordered, start=1)
    ]


def rebuild_leaderboard(db: Session, min_reviews: Optional[int] = None) -> List[LeaderboardEntry]:
    """
    Recompute and publish the whole leaderboard.

    Args:
        db: Database session
        min_reviews: Minimum reviews to be listed (settings default when omitted)

    Returns:
        The published entries in rank order
    """
    if min_reviews is None:
        min_reviews = settings.LEADERBOARD_MIN_REVIEWS

    mentors = review_crud.get_ranked_mentors(db, min_reviews)
    entries = rank_mentors(mentors)

    try:
        review_crud.replace_leaderboard(db, entries)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info("Leaderboard rebuilt with %d mentor(s)", len(entries))
    return entries


def get_leaderboard(
    db: Session,
    limit: int = 20,
    expertise: Optional[str] = None
) -> List[LeaderboardEntry]:
    return review_crud.get_leaderboard_entries(db, limit=limit, expertise=expertise)


def get_domains(db: Session, limit: int = 20) -> List[Dict[str, Any]]:
    """
    Expertise areas of available mentors, most common first.

    Expertise is a comma-separated string; each trimmed entry counts once per
    mentor. Ties keep first-seen order.
    """
    counts: Counter = Counter()
    for expertise in review_crud.get_available_mentor_expertise(db):
        domains = dict.fromkeys(part.strip() for part in expertise.split(","))
        counts.update(domain for domain in domains if domain)
    return [{"domain": domain, "mentor_count": count} for domain, count in counts.most_common(limit)]


def get_leaderboard_stats(db: Session) -> Dict[str, Any]:
    total_mentors, total_reviews, average = review_crud.get_mentor_totals(db)
    return {
        "total_mentors": total_mentors,
        "total_reviews": total_reviews,
        "average_rating": float(round_half_up(average or 0, 1)),
        "ranked_mentors": review_crud.count_leaderboard_entries(db),
    }
