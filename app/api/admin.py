# app/api/admin.py
"""
Admin Module
Admin-only endpoints: booking/payment overview, mentor verification, rating
recalculation, leaderboard rebuild and manual hold expiry.
"""

import logging
import math
from datetime import datetime, timedelta

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from sqlalchemy import func

from app.crud import user as user_crud
from app.database import get_db
from app.models.booking import Booking, BookingStatus
from app.models.payment import Payment, PaymentStatus
from app.models.user import Mentor, User
from app.schemas.review import RatingRecalculationResponse
from app.schemas.user import (
    MentorVerifyRequest,
    MentorVerifyResponse,
    PendingMentorPage,
    PendingMentorResponse,
)
from app.services import booking_service, leaderboard_service, review_service
from app.services.slot_lock import SlotLockRegistry, get_slot_lock_registry
from app.utils.security import require_admin
from app.utils.timeutils import utcnow

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])


# ─────────────────────────────────────────
# GET /admin/stats  - Dashboard overview
# ─────────────────────────────────────────
@router.get("/stats")
def get_dashboard_stats(
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    booking_counts = dict(
        db.query(Booking.status, func.count(Booking.id)).group_by(Booking.status).all()
    )
    payment_counts = dict(
        db.query(Payment.status, func.count(Payment.id)).group_by(Payment.status).all()
    )
    revenue = db.query(func.sum(Payment.amount)).filter(
        Payment.status == PaymentStatus.COMPLETED
    ).scalar() or 0

    return {
        "users": {
            "total":  db.query(User).count(),
            "active": db.query(User).filter(User.is_active == True).count(),  # noqa: E712
        },
        "bookings": {
            s.value.lower(): booking_counts.get(s, 0) for s in BookingStatus
        },
        "payments": {
            s.value.lower(): payment_counts.get(s, 0) for s in PaymentStatus
        },
        "revenue": revenue,
    }


# ─────────────────────────────────────────
# POST /admin/ratings/recalculate
# ─────────────────────────────────────────
@router.post("/ratings/recalculate", response_model=RatingRecalculationResponse)
def recalculate_all_ratings(
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Recompute every mentor's cached rating from reviews, then rebuild the leaderboard."""
    return RatingRecalculationResponse(**review_service.recalculate_all_ratings(db))


# ─────────────────────────────────────────
# POST /admin/leaderboard/rebuild
# ─────────────────────────────────────────
@router.post("/leaderboard/rebuild")
def rebuild_leaderboard(
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    entries = leaderboard_service.rebuild_leaderboard(db)
    return {"message": "Leaderboard rebuilt", "leaderboard_size": len(entries)}


# ─────────────────────────────────────────
# POST /admin/bookings/expire-holds
# ─────────────────────────────────────────
@router.post("/bookings/expire-holds")
def expire_abandoned_holds(
    admin: User = Depends(require_admin),
    registry: SlotLockRegistry = Depends(get_slot_lock_registry),
    db: Session = Depends(get_db)
):
    """Run the abandoned-checkout sweep now instead of waiting for the background task."""
    expired = booking_service.expire_abandoned_bookings(db, registry=registry)
    return {"message": "Hold sweep complete", "expired": expired}


# ─────────────────────────────────────────
# GET /admin/mentors/pending
# ─────────────────────────────────────────
PENDING_REVIEW_THRESHOLD = 3
NEW_MENTOR_DAYS = 30


def _verification_status(mentor: Mentor, joined_after: datetime) -> str:
    if not mentor.is_available:
        return "pending"
    if mentor.total_reviews < PENDING_REVIEW_THRESHOLD:
        return "needs_review"
    if mentor.created_at is not None and mentor.created_at >= joined_after:
        return "new"
    return "needs_review"


@router.get("/mentors/pending", response_model=PendingMentorPage)
def list_pending_mentors(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Mentors that are unverified, lightly reviewed, or joined in the last 30 days."""
    joined_after = utcnow() - timedelta(days=NEW_MENTOR_DAYS)
    mentors, total = user_crud.list_pending_mentors(
        db,
        joined_after=joined_after,
        min_reviews=PENDING_REVIEW_THRESHOLD,
        limit=limit,
        offset=(page - 1) * limit,
    )
    return PendingMentorPage(
        mentors=[
            PendingMentorResponse(
                id=m.id,
                user_id=m.user_id,
                name=m.name,
                email=m.user.email,
                hourly_rate=m.hourly_rate,
                is_available=m.is_available,
                rating=m.rating,
                total_reviews=m.total_reviews,
                expertise=m.expertise or "",
                bio=m.bio,
                verification_status=_verification_status(m, joined_after),
                joined_at=m.created_at,
            )
            for m in mentors
        ],
        page=page,
        limit=limit,
        total=total,
        pages=math.ceil(total / limit),
    )


# ─────────────────────────────────────────
# POST /admin/mentors/{mentor_id}/verify
# ─────────────────────────────────────────
@router.post("/mentors/{mentor_id}/verify", response_model=MentorVerifyResponse)
def verify_mentor(
    mentor_id: int,
    payload: MentorVerifyRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Approve (bookable) or reject (hidden from search and booking) a mentor."""
    mentor = user_crud.get_mentor(db, mentor_id)
    if not mentor:
        raise HTTPException(status_code=404, detail="Mentor not found")

    user_crud.set_mentor_availability(db, mentor, payload.verified)
    action = "verified" if payload.verified else "rejected"
    logger.info("Admin %s %s mentor %s", admin.email, action, mentor.user.email)
    if payload.notes:
        logger.info("Verification notes for mentor %s: %s", mentor_id, payload.notes)

    return MentorVerifyResponse(
        message=f"Mentor {action} successfully",
        mentor_id=mentor_id,
        verified=payload.verified,
        notes=payload.notes,
    )
