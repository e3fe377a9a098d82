# app/services/booking_service.py
"""
Booking Service Layer
Booking lifecycle: creation with slot locking and overlap checks, and the
PENDING -> CONFIRMED -> COMPLETED / CANCELLED state machine.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, Dict, FrozenSet, List, Optional

from sqlalchemy.orm import Session

from app.config import settings
from app.crud import booking as booking_crud
from app.exceptions import (
    ConflictException,
    ForbiddenException,
    InvalidStateException,
    NotFoundException,
    ValidationException,
)
from app.models.booking import Booking, BookingStatus
from app.models.payment import PaymentStatus
from app.services.slot_lock import SlotLockRegistry, get_slot_lock_registry
from app.utils.money import expected_price, within_tolerance
from app.utils.timeutils import to_utc_naive, utcnow

logger = logging.getLogger(__name__)


# =====================================
# STATE MACHINE
# =====================================

BOOKING_TRANSITIONS: Dict[BookingStatus, FrozenSet[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED}),
    BookingStatus.COMPLETED: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
}


def can_transition(current: BookingStatus, target: BookingStatus) -> bool:
    return target in BOOKING_TRANSITIONS[BookingStatus(current)]


def ensure_transition(booking: Booking, target: BookingStatus) -> None:
    """Move booking to target or raise InvalidStateException."""
    current = BookingStatus(booking.status)
    if not can_transition(current, target):
        raise InvalidStateException(
            f"Cannot move booking from {current.value} to {target.value}",
            code="INVALID_BOOKING_TRANSITION",
            details={"booking_id": booking.id, "from": current.value, "to": target.value},
        )
    booking.status = target
    booking.updated_at = utcnow()
    logger.info("Booking %s: %s -> %s", booking.id, current.value, target.value)


def _registry(registry: Optional[SlotLockRegistry]) -> SlotLockRegistry:
    return registry if registry is not None else get_slot_lock_registry()


# =====================================
# CREATE
# =====================================

def create_booking(
    db: Session,
    student_id: int,
    mentor_id: int,
    start_time: datetime,
    duration_minutes: int,
    declared_price: int,
    notes: Optional[str] = None,
    registry: Optional[SlotLockRegistry] = None
) -> Booking:
    """
    Reserve a mentor slot and open a PENDING booking with a PENDING payment.

    The slot lock taken here is kept after commit; it is released when the
    payment resolves, the booking is cancelled, or its TTL runs out.

    Args:
        db: Database session
        student_id: Booking student profile ID
        mentor_id: Mentor profile ID
        start_time: Session start (aware datetimes are converted to UTC)
        duration_minutes: Session length, 30-180
        declared_price: Client-computed price in minor currency units
        notes: Optional pre-session questions
        registry: Slot lock registry (process default when omitted)

    Returns:
        The new Booking, with its Payment attached

    Raises:
        NotFoundException: Student or mentor missing, or mentor unavailable
        ValidationException: Duration out of range or price outside tolerance
        ConflictException: Slot locked by another attempt or already booked
    """
    registry = _registry(registry)

    if booking_crud.get_student(db, student_id) is None:
        raise NotFoundException("Student not found", details={"student_id": student_id})

    mentor = booking_crud.get_mentor(db, mentor_id)
    if mentor is None or not mentor.is_available:
        raise NotFoundException("Mentor not available", details={"mentor_id": mentor_id})

    min_duration = settings.BOOKING_MIN_DURATION_MINUTES
    max_duration = settings.BOOKING_MAX_DURATION_MINUTES
    if not (min_duration <= duration_minutes <= max_duration):
        raise ValidationException(
            f"Duration must be between {min_duration} and {max_duration} minutes",
            code="INVALID_DURATION",
            details={"duration_minutes": duration_minutes},
        )

    expected = expected_price(mentor.hourly_rate, duration_minutes)
    if not within_tolerance(declared_price, expected, settings.PRICE_TOLERANCE):
        raise ValidationException(
            "Invalid price calculation",
            code="PRICE_MISMATCH",
            details={"expected": expected, "provided": declared_price},
        )

    start = to_utc_naive(start_time)
    end = start + timedelta(minutes=duration_minutes)

    if not registry.acquire(mentor_id, start):
        raise ConflictException(
            "Time slot temporarily locked by another user. Please try again in a few minutes.",
            code="SLOT_LOCKED",
            details={"mentor_id": mentor_id, "start_time": start.isoformat()},
        )

    try:
        with registry.mentor_guard(mentor_id):
            booking_crud.lock_mentor(db, mentor_id)
            conflicting = booking_crud.find_overlapping_booking(db, mentor_id, start, end)
            if conflicting is not None:
                raise ConflictException(
                    "Time slot already booked. Please select a different time slot.",
                    code="SLOT_ALREADY_BOOKED",
                    details={"mentor_id": mentor_id, "conflicting_booking_id": conflicting.id},
                )

            booking = booking_crud.create_booking_with_payment(
                db=db,
                student_id=student_id,
                mentor_id=mentor_id,
                start_time=start,
                end_time=end,
                amount=int(declared_price),
                currency=settings.PAYMENT_CURRENCY,
                hold_expires_at=utcnow() + timedelta(seconds=registry.ttl_seconds),
                notes=notes,
            )
            db.commit()
    except Exception:
        db.rollback()
        registry.release(mentor_id, start)
        raise

    db.refresh(booking)
    logger.info(
        "Booking %s created: mentor=%s student=%s start=%s amount=%s",
        booking.id, mentor_id, student_id, start.isoformat(), declared_price,
    )
    return booking


# =====================================
# PAYMENT-DRIVEN TRANSITIONS
# =====================================

def confirm_booking(booking: Booking) -> None:
    """PENDING -> CONFIRMED inside the caller's payment transaction."""
    ensure_transition(booking, BookingStatus.CONFIRMED)
    booking.hold_expires_at = None


def fail_booking(booking: Booking, reason: str) -> None:
    """PENDING -> CANCELLED because the payment failed."""
    ensure_transition(booking, BookingStatus.CANCELLED)
    booking.cancel_reason = reason
    booking.hold_expires_at = None


# =====================================
# PARTICIPANT TRANSITIONS
# =====================================

def complete_booking(db: Session, booking_id: int, mentor_id: int) -> Booking:
    """
    Mentor marks a confirmed session as done.

    Raises:
        NotFoundException: Booking missing
        ForbiddenException: Mentor does not own the booking
        InvalidStateException: Booking is not CONFIRMED
    """
    booking = booking_crud.get_booking_for_update(db, booking_id)
    if booking is None:
        raise NotFoundException("Booking not found", details={"booking_id": booking_id})
    if booking.mentor_id != mentor_id:
        raise ForbiddenException("Only the booking's mentor can complete it")

    ensure_transition(booking, BookingStatus.COMPLETED)
    db.commit()
    db.refresh(booking)
    return booking


def cancel_booking(
    db: Session,
    booking_id: int,
    user_id: int,
    reason: Optional[str] = None,
    registry: Optional[SlotLockRegistry] = None
) -> Booking:
    """
    Cancel a PENDING or CONFIRMED booking on behalf of either participant.

    A payment still PENDING is marked FAILED so a late gateway callback
    cannot confirm the cancelled booking. A COMPLETED payment is left as is.

    Args:
        db: Database session
        booking_id: Booking identifier
        user_id: Acting *user* ID (student's or mentor's account)
        reason: Optional cancellation reason
        registry: Slot lock registry

    Raises:
        NotFoundException: Booking missing
        ForbiddenException: Acting user is not a participant
        InvalidStateException: Booking already COMPLETED or CANCELLED
    """
    registry = _registry(registry)

    booking = booking_crud.get_booking_for_update(db, booking_id)
    if booking is None:
        raise NotFoundException("Booking not found", details={"booking_id": booking_id})
    if user_id not in participant_user_ids(booking):
        raise ForbiddenException("Not authorized to cancel this booking")

    ensure_transition(booking, BookingStatus.CANCELLED)
    booking.cancel_reason = reason or "cancelled"
    booking.hold_expires_at = None

    payment = booking.payment
    if payment is not None and payment.status == PaymentStatus.PENDING:
        payment.status = PaymentStatus.FAILED
        payment.failure_reason = "cancelled"

    db.commit()
    registry.release(booking.mentor_id, booking.start_time)
    db.refresh(booking)
    return booking


# =====================================
# HOLD EXPIRY
# =====================================

def expire_abandoned_bookings(
    db: Session,
    now: Optional[datetime] = None,
    registry: Optional[SlotLockRegistry] = None
) -> int:
    """
    Cancel PENDING bookings whose checkout hold lapsed without payment.

    Returns:
        Number of bookings cancelled
    """
    registry = _registry(registry)
    now = now or utcnow()

    abandoned = booking_crud.find_abandoned_bookings(db, now)
    if not abandoned:
        return 0

    for booking in abandoned:
        fail_booking(booking, "hold_expired")
        booking.payment.status = PaymentStatus.FAILED
        booking.payment.failure_reason = "hold_expired"
    db.commit()

    for booking in abandoned:
        registry.release(booking.mentor_id, booking.start_time)
    logger.info("Expired %d abandoned booking hold(s)", len(abandoned))
    return len(abandoned)


def make_hold_expiry_task(
    session_factory: Callable[[], Session],
    registry: Optional[SlotLockRegistry] = None
) -> Callable[[], int]:
    """Wrap expire_abandoned_bookings with its own session for the background sweeper."""
    def expire_holds() -> int:
        db = session_factory()
        try:
            return expire_abandoned_bookings(db, registry=registry)
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    return expire_holds


# =====================================
# READS
# =====================================

def participant_user_ids(booking: Booking) -> List[int]:
    ids = []
    if booking.student is not None:
        ids.append(booking.student.user_id)
    if booking.mentor is not None:
        ids.append(booking.mentor.user_id)
    return ids


def get_booking(db: Session, booking_id: int) -> Booking:
    booking = booking_crud.get_booking(db, booking_id)
    if booking is None:
        raise NotFoundException("Booking not found", details={"booking_id": booking_id})
    return booking


def get_booking_for_participant(db: Session, booking_id: int, user_id: int) -> Booking:
    booking = get_booking(db, booking_id)
    if user_id not in participant_user_ids(booking):
        raise ForbiddenException("Access denied")
    return booking


def list_bookings_for_student(
    db: Session,
    student_id: int,
    status: Optional[BookingStatus] = None,
    limit: int = 50,
    offset: int = 0
) -> List[Booking]:
    return booking_crud.list_bookings_for_student(db, student_id, status, limit, offset)


def list_bookings_for_mentor(
    db: Session,
    mentor_id: int,
    status: Optional[BookingStatus] = None,
    limit: int = 50,
    offset: int = 0
) -> List[Booking]:
    return booking_crud.list_bookings_for_mentor(db, mentor_id, status, limit, offset)
