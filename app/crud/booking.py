# app/crud/booking.py
"""
Booking CRUD Operations
Core database operations for bookings and their conflict queries.
Nothing here commits; callers own the transaction.
"""

from sqlalchemy.orm import Session
from typing import Optional, List
from datetime import datetime

from app.models.booking import Booking, BookingStatus, ACTIVE_BOOKING_STATUSES
from app.models.payment import Payment, PaymentStatus
from app.models.user import Mentor, Student


# ======================
# LOOKUPS
# ======================

def get_booking(db: Session, booking_id: int) -> Optional[Booking]:
    return db.query(Booking).filter(Booking.id == booking_id).first()


def get_booking_for_update(db: Session, booking_id: int) -> Optional[Booking]:
    """Fetch a booking with a row lock (no-op on SQLite)."""
    return (
        db.query(Booking)
        .filter(Booking.id == booking_id)
        .with_for_update()
        .first()
    )


def get_mentor(db: Session, mentor_id: int) -> Optional[Mentor]:
    return db.query(Mentor).filter(Mentor.id == mentor_id).first()


def lock_mentor(db: Session, mentor_id: int) -> Optional[Mentor]:
    """
    Row-lock the mentor for the rest of the transaction.

    Every booking insert for a mentor takes this lock first, so two
    overlapping but different start times cannot both pass the overlap check
    across processes. SQLite ignores FOR UPDATE; there the registry's
    mentor_guard does the serializing.
    """
    return (
        db.query(Mentor)
        .filter(Mentor.id == mentor_id)
        .with_for_update()
        .first()
    )


def get_student(db: Session, student_id: int) -> Optional[Student]:
    return db.query(Student).filter(Student.id == student_id).first()


# ======================
# CONFLICT QUERIES
# ======================

def find_overlapping_booking(
    db: Session,
    mentor_id: int,
    start_time: datetime,
    end_time: datetime
) -> Optional[Booking]:
    """
    First active booking whose [start, end) intersects the given window.

    Intersection test: existing.start < new.end AND existing.end > new.start
    """
    return (
        db.query(Booking)
        .filter(
            Booking.mentor_id == mentor_id,
            Booking.status.in_(ACTIVE_BOOKING_STATUSES),
            Booking.start_time < end_time,
            Booking.end_time > start_time,
        )
        .order_by(Booking.start_time)
        .first()
    )


def find_abandoned_bookings(db: Session, now: datetime) -> List[Booking]:
    """PENDING bookings whose hold lapsed while their payment is still PENDING."""
    return (
        db.query(Booking)
        .join(Payment, Payment.booking_id == Booking.id)
        .filter(
            Booking.status == BookingStatus.PENDING,
            Booking.hold_expires_at.isnot(None),
            Booking.hold_expires_at <= now,
            Payment.status == PaymentStatus.PENDING,
        )
        .all()
    )


# ======================
# WRITES
# ======================

def create_booking_with_payment(
    db: Session,
    student_id: int,
    mentor_id: int,
    start_time: datetime,
    end_time: datetime,
    amount: int,
    currency: str,
    hold_expires_at: Optional[datetime] = None,
    notes: Optional[str] = None
) -> Booking:
    """Add a PENDING booking and its PENDING payment to the current transaction."""
    booking = Booking(
        student_id=student_id,
        mentor_id=mentor_id,
        start_time=start_time,
        end_time=end_time,
        status=BookingStatus.PENDING,
        notes=notes,
        hold_expires_at=hold_expires_at,
    )
    booking.payment = Payment(
        student_id=student_id,
        amount=amount,
        currency=currency,
        status=PaymentStatus.PENDING,
    )
    db.add(booking)
    db.flush()
    return booking


# ======================
# LISTINGS
# ======================

def list_bookings_for_student(
    db: Session,
    student_id: int,
    status: Optional[BookingStatus] = None,
    limit: int = 50,
    offset: int = 0
) -> List[Booking]:
    query = db.query(Booking).filter(Booking.student_id == student_id)
    if status is not None:
        query = query.filter(Booking.status == status)
    return query.order_by(Booking.start_time.desc()).limit(limit).offset(offset).all()


def list_bookings_for_mentor(
    db: Session,
    mentor_id: int,
    status: Optional[BookingStatus] = None,
    limit: int = 50,
    offset: int = 0
) -> List[Booking]:
    query = db.query(Booking).filter(Booking.mentor_id == mentor_id)
    if status is not None:
        query = query.filter(Booking.status == status)
    return query.order_by(Booking.start_time.desc()).limit(limit).offset(offset).all()
