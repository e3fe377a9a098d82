# app/api/mentors.py
"""
Mentor profile endpoints.

Rating figures are read-only here; they are owned by the review aggregator.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app import models
from app.crud import user as user_crud
from app.database import get_db
from app.schemas.user import MentorProfileUpdate, MentorResponse
from app.utils.security import get_current_mentor

router = APIRouter(prefix="/mentors", tags=["mentors"])


def _to_response(mentor: models.Mentor) -> MentorResponse:
    return MentorResponse(
        id=mentor.id,
        user_id=mentor.user_id,
        name=mentor.name,
        hourly_rate=mentor.hourly_rate,
        is_available=mentor.is_available,
        rating=mentor.rating,
        total_reviews=mentor.total_reviews,
        expertise=mentor.expertise or "",
        bio=mentor.bio,
    )


@router.get("/", response_model=List[MentorResponse])
def list_mentors(
    q: Optional[str] = Query(None, max_length=100, description="Text search over name, bio and expertise"),
    domain: Optional[str] = Query(None, max_length=50, description="Expertise area"),
    min_price: Optional[int] = Query(None, ge=0, description="Minimum hourly rate (minor units)"),
    max_price: Optional[int] = Query(None, ge=0, description="Maximum hourly rate (minor units)"),
    sort: str = Query("rating", pattern="^(rating|reviews|price)$"),
    available_only: bool = True,
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db)
):
    """Search and browse mentors (public)."""
    if min_price is not None and max_price is not None and min_price > max_price:
        raise HTTPException(status_code=400, detail="min_price cannot exceed max_price")

    mentors = user_crud.list_mentors(
        db,
        available_only=available_only,
        limit=limit,
        offset=offset,
        q=q,
        domain=domain,
        min_rate=min_price,
        max_rate=max_price,
        sort=sort,
    )
    return [_to_response(m) for m in mentors]


@router.patch("/me", response_model=MentorResponse)
def update_my_profile(
    update: MentorProfileUpdate,
    mentor: models.Mentor = Depends(get_current_mentor),
    db: Session = Depends(get_db)
):
    """Edit the calling mentor's rate, availability, expertise or bio."""
    mentor = user_crud.update_mentor_profile(db, mentor, update.model_dump(exclude_unset=True))
    return _to_response(mentor)


@router.get("/{mentor_id}", response_model=MentorResponse)
def get_mentor(mentor_id: int, db: Session = Depends(get_db)):
    mentor = user_crud.get_mentor(db, mentor_id)
    if not mentor:
        raise HTTPException(status_code=404, detail="Mentor not found")
    return _to_response(mentor)
