from datetime import datetime
from sqlalchemy import or_
from sqlalchemy.orm import Session
from typing import List, Optional, Tuple
from app import models
from app.utils.security import get_password_hash

def create_user(
    db: Session,
    name: str,
    email: str,
    password: str,
    role: str = models.UserRole.STUDENT.value,
    hourly_rate: Optional[int] = None,
    expertise: Optional[str] = None,
    bio: Optional[str] = None,
):
    """Create the user row and its role profile; caller commits."""
    db_user = models.User(
        name=name,
        email=email.strip().lower(),
        password_hash=get_password_hash(password),
        role=role,
        is_active=True,
    )
    db.add(db_user)
    db.flush()

    if role == models.UserRole.MENTOR.value:
        db.add(models.Mentor(
            user_id=db_user.id,
            hourly_rate=hourly_rate or 0,
            expertise=expertise or "",
            bio=bio,
        ))
    elif role == models.UserRole.STUDENT.value:
        db.add(models.Student(user_id=db_user.id))
    db.flush()
    return db_user

def get_user_by_email(db: Session, email: str):
    return db.query(models.User).filter(models.User.email == email.strip().lower()).first()

def get_user(db: Session, user_id: int):
    return db.query(models.User).filter(models.User.id == user_id).first()

def get_mentor(db: Session, mentor_id: int):
    return db.query(models.Mentor).filter(models.Mentor.id == mentor_id).first()

MENTOR_SORTS = {
    "rating": (models.Mentor.rating.desc(), models.Mentor.total_reviews.desc()),
    "reviews": (models.Mentor.total_reviews.desc(), models.Mentor.rating.desc()),
    "price": (models.Mentor.hourly_rate.asc(),),
}

def list_mentors(
    db: Session,
    available_only: bool = True,
    limit: int = 50,
    offset: int = 0,
    q: Optional[str] = None,
    domain: Optional[str] = None,
    min_rate: Optional[int] = None,
    max_rate: Optional[int] = None,
    sort: str = "rating",
):
    """Search mentors by name/bio/expertise text, expertise domain and hourly rate range."""
    query = db.query(models.Mentor).join(models.User, models.Mentor.user_id == models.User.id)
    if available_only:
        query = query.filter(models.Mentor.is_available.is_(True))
    if q:
        pattern = f"%{q}%"
        query = query.filter(or_(
            models.User.name.ilike(pattern),
            models.Mentor.bio.ilike(pattern),
            models.Mentor.expertise.ilike(pattern),
        ))
    if domain:
        query = query.filter(models.Mentor.expertise.ilike(f"%{domain}%"))
    if min_rate is not None:
        query = query.filter(models.Mentor.hourly_rate >= min_rate)
    if max_rate is not None:
        query = query.filter(models.Mentor.hourly_rate <= max_rate)
    return query.order_by(*MENTOR_SORTS[sort], models.Mentor.id).limit(limit).offset(offset).all()

def list_pending_mentors(
    db: Session,
    joined_after: datetime,
    min_reviews: int,
    limit: int = 20,
    offset: int = 0,
) -> Tuple[List[models.Mentor], int]:
    """Mentors awaiting verification: unavailable, few reviews, or recently joined."""
    query = db.query(models.Mentor).filter(or_(
        models.Mentor.is_available.is_(False),
        models.Mentor.total_reviews < min_reviews,
        models.Mentor.created_at >= joined_after,
    ))
    total = query.count()
    mentors = (
        query.order_by(models.Mentor.created_at.desc(), models.Mentor.id.desc())
        .limit(limit)
        .offset(offset)
        .all()
    )
    return mentors, total

def set_mentor_availability(db: Session, mentor: models.Mentor, is_available: bool):
    mentor.is_available = is_available
    db.commit()
    db.refresh(mentor)
    return mentor

def update_mentor_profile(db: Session, mentor: models.Mentor, update_data: dict):
    # rating/total_reviews belong to the aggregator and are never taken from here
    for key in ("hourly_rate", "is_available", "expertise", "bio"):
        if key in update_data:
            setattr(mentor, key, update_data[key])
    db.commit()
    db.refresh(mentor)
    return mentor
