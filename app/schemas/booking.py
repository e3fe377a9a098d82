# app/schemas/booking.py
"""
Booking & Payment Pydantic Schemas
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.models.booking import BookingStatus
from app.models.payment import PaymentStatus


# ======================
# BOOKING REQUESTS
# ======================

class BookingCreate(BaseModel):
    mentor_id: int = Field(..., description="Mentor profile ID")
    start_time: datetime = Field(..., description="Session start, ISO 8601")
    duration_minutes: int = Field(..., description="Session length in minutes (30-180)")
    price_total: int = Field(..., ge=0, description="Declared price in minor currency units")
    pre_questions: List[str] = Field(default_factory=list, max_length=5)

    @field_validator("pre_questions")
    @classmethod
    def validate_pre_questions(cls, v):
        for question in v:
            if len(question) > 500:
                raise ValueError("Each question must be 500 characters or less")
        return [q.strip() for q in v if q.strip()]


class BookingCancel(BaseModel):
    reason: Optional[str] = Field(None, max_length=255)


# ======================
# RESPONSES
# ======================

class PaymentResponse(BaseModel):
    id: int
    booking_id: int
    amount: int
    currency: str
    status: PaymentStatus
    gateway_order_ref: Optional[str] = None
    gateway_txn_ref: Optional[str] = None
    failure_reason: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class BookingResponse(BaseModel):
    id: int
    student_id: int
    mentor_id: int
    mentor_name: Optional[str] = None
    start_time: datetime
    end_time: datetime
    duration_minutes: int
    status: BookingStatus
    notes: Optional[str] = None
    hold_expires_at: Optional[datetime] = None
    cancel_reason: Optional[str] = None
    payment: Optional[PaymentResponse] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def from_booking(cls, booking) -> "BookingResponse":
        return cls(
            id=booking.id,
            student_id=booking.student_id,
            mentor_id=booking.mentor_id,
            mentor_name=booking.mentor.name if booking.mentor else None,
            start_time=booking.start_time,
            end_time=booking.end_time,
            duration_minutes=booking.duration_minutes,
            status=booking.status,
            notes=booking.notes,
            hold_expires_at=booking.hold_expires_at,
            cancel_reason=booking.cancel_reason,
            payment=PaymentResponse.model_validate(booking.payment) if booking.payment else None,
            created_at=booking.created_at,
            updated_at=booking.updated_at,
        )


# ======================
# PAYMENT REQUESTS
# ======================

class PaymentInitiateRequest(BaseModel):
    booking_id: int


class PaymentInitiateResponse(BaseModel):
    booking_id: int
    order_id: str
    amount: int
    currency: str
    description: str


class PaymentCallback(BaseModel):
    """Gateway webhook body (Razorpay checkout field names)."""
    razorpay_order_id: str
    razorpay_payment_id: str
    razorpay_signature: str
    booking_id: Optional[int] = None
    reason: Optional[str] = Field(None, max_length=255)


class CallbackResponse(BaseModel):
    success: bool = True
    booking_id: int
    booking_status: BookingStatus
    payment_status: PaymentStatus
    duplicate: bool = False
    message: str
