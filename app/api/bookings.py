# app/api/bookings.py
"""
Booking API Router

Endpoints:
- POST /bookings/ - Create a booking (student)
- GET /bookings/my - List the caller's bookings
- GET /bookings/{booking_id} - Booking details (participants only)
- PATCH /bookings/{booking_id}/complete - Mark completed (mentor)
- PATCH /bookings/{booking_id}/cancel - Cancel (either participant)
"""

from typing import List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app import models
from app.database import get_db
from app.models.booking import BookingStatus
from app.schemas.booking import BookingCancel, BookingCreate, BookingResponse
from app.services import booking_service
from app.services.slot_lock import SlotLockRegistry, get_slot_lock_registry
from app.utils.security import get_current_mentor, get_current_student, get_current_user

router = APIRouter(prefix="/bookings", tags=["bookings"])


# ======================
# CREATE BOOKING
# ======================
@router.post("/", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
def create_booking(
    request: BookingCreate,
    student: models.Student = Depends(get_current_student),
    registry: SlotLockRegistry = Depends(get_slot_lock_registry),
    db: Session = Depends(get_db)
):
    """
    Reserve a mentor slot.

    Returns the PENDING booking with its PENDING payment. The slot stays
    held for the checkout window; pay via /payments/initiate.
    """
    booking = booking_service.create_booking(
        db,
        student_id=student.id,
        mentor_id=request.mentor_id,
        start_time=request.start_time,
        duration_minutes=request.duration_minutes,
        declared_price=request.price_total,
        notes="\n\n".join(request.pre_questions) or None,
        registry=registry,
    )
    return BookingResponse.from_booking(booking)


# ======================
# LISTING
# ======================
@router.get("/my", response_model=List[BookingResponse])
def get_my_bookings(
    status_filter: Optional[BookingStatus] = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Bookings where the caller is the student, or the mentor."""
    if current_user.student is not None:
        bookings = booking_service.list_bookings_for_student(
            db, current_user.student.id, status_filter, limit, offset
        )
    elif current_user.mentor is not None:
        bookings = booking_service.list_bookings_for_mentor(
            db, current_user.mentor.id, status_filter, limit, offset
        )
    else:
        raise HTTPException(status_code=403, detail="No student or mentor profile")
    return [BookingResponse.from_booking(b) for b in bookings]


@router.get("/{booking_id}", response_model=BookingResponse)
def get_booking(
    booking_id: int,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    booking = booking_service.get_booking_for_participant(db, booking_id, current_user.id)
    return BookingResponse.from_booking(booking)


# ======================
# TRANSITIONS
# ======================
@router.patch("/{booking_id}/complete", response_model=BookingResponse)
def complete_booking(
    booking_id: int,
    mentor: models.Mentor = Depends(get_current_mentor),
    db: Session = Depends(get_db)
):
    """Mentor marks a confirmed session as completed."""
    booking = booking_service.complete_booking(db, booking_id, mentor.id)
    return BookingResponse.from_booking(booking)


@router.patch("/{booking_id}/cancel", response_model=BookingResponse)
def cancel_booking(
    booking_id: int,
    body: Optional[BookingCancel] = Body(None),
    current_user: models.User = Depends(get_current_user),
    registry: SlotLockRegistry = Depends(get_slot_lock_registry),
    db: Session = Depends(get_db)
):
    """Cancel a pending or confirmed booking (student or mentor)."""
    booking = booking_service.cancel_booking(
        db,
        booking_id,
        current_user.id,
        reason=body.reason if body else None,
        registry=registry,
    )
    return BookingResponse.from_booking(booking)
