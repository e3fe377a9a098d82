# app/api/payments.py
"""
Payment API Router

Endpoints:
- POST /payments/initiate - Open a gateway order for a booking (student)
- POST /payments/webhook - Gateway success callback (signature checked, no auth)
- POST /payments/webhook/failure - Gateway failure callback
- POST /payments/mock/{order_id}/succeed - Simulate the gateway (mock gateway only)
- GET /payments/booking/{booking_id} - Payment for a booking (participants only)
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app import models
from app.database import get_db
from app.schemas.booking import (
    CallbackResponse,
    PaymentCallback,
    PaymentInitiateRequest,
    PaymentInitiateResponse,
    PaymentResponse,
)
from app.services import booking_service, payment_service
from app.services.payment_gateway import MockPaymentGateway, PaymentGateway, get_payment_gateway
from app.services.slot_lock import SlotLockRegistry, get_slot_lock_registry
from app.utils.security import get_current_student, get_current_user

router = APIRouter(prefix="/payments", tags=["payments"])


def _callback_response(result, message: str) -> CallbackResponse:
    return CallbackResponse(
        booking_id=result.booking_id,
        booking_status=result.booking_status,
        payment_status=result.payment_status,
        duplicate=result.duplicate,
        message="Callback already processed" if result.duplicate else message,
    )


# ======================
# INITIATE
# ======================
@router.post("/initiate", response_model=PaymentInitiateResponse)
def initiate_payment(
    request: PaymentInitiateRequest,
    student: models.Student = Depends(get_current_student),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    db: Session = Depends(get_db)
):
    order_id = payment_service.initiate_payment(
        db, request.booking_id, student_id=student.id, gateway=gateway
    )
    booking = booking_service.get_booking(db, request.booking_id)
    return PaymentInitiateResponse(
        booking_id=booking.id,
        order_id=order_id,
        amount=booking.payment.amount,
        currency=booking.payment.currency,
        description=f"Mentorship session with {booking.mentor.name}",
    )


# ======================
# GATEWAY CALLBACKS
# ======================
@router.post("/webhook", response_model=CallbackResponse)
def payment_webhook(
    callback: PaymentCallback,
    gateway: PaymentGateway = Depends(get_payment_gateway),
    registry: SlotLockRegistry = Depends(get_slot_lock_registry),
    db: Session = Depends(get_db)
):
    """
    Successful payment notification. Safe to deliver more than once.
    A 5xx answer tells the gateway to retry.
    """
    result = payment_service.handle_callback(
        db,
        gateway_order_ref=callback.razorpay_order_id,
        gateway_txn_ref=callback.razorpay_payment_id,
        signature=callback.razorpay_signature,
        claimed_booking_id=callback.booking_id,
        gateway=gateway,
        registry=registry,
    )
    return _callback_response(result, "Payment processed successfully")


@router.post("/webhook/failure", response_model=CallbackResponse)
def payment_failure_webhook(
    callback: PaymentCallback,
    gateway: PaymentGateway = Depends(get_payment_gateway),
    registry: SlotLockRegistry = Depends(get_slot_lock_registry),
    db: Session = Depends(get_db)
):
    result = payment_service.handle_failure_callback(
        db,
        gateway_order_ref=callback.razorpay_order_id,
        gateway_txn_ref=callback.razorpay_payment_id,
        signature=callback.razorpay_signature,
        claimed_booking_id=callback.booking_id,
        reason=callback.reason,
        gateway=gateway,
        registry=registry,
    )
    return _callback_response(result, "Payment failure recorded")


@router.post("/mock/{order_id}/succeed", response_model=CallbackResponse)
def simulate_mock_payment(
    order_id: str,
    gateway: PaymentGateway = Depends(get_payment_gateway),
    registry: SlotLockRegistry = Depends(get_slot_lock_registry),
    db: Session = Depends(get_db)
):
    """Drive the success callback as the mock gateway would (development only)."""
    if not isinstance(gateway, MockPaymentGateway):
        raise HTTPException(status_code=404, detail="Not found")

    txn_ref, signature = gateway.simulate_callback(order_id)
    result = payment_service.handle_callback(
        db,
        gateway_order_ref=order_id,
        gateway_txn_ref=txn_ref,
        signature=signature,
        gateway=gateway,
        registry=registry,
    )
    return _callback_response(result, "Mock payment processed successfully")


# ======================
# READ
# ======================
@router.get("/booking/{booking_id}", response_model=PaymentResponse)
def get_booking_payment(
    booking_id: int,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    booking_service.get_booking_for_participant(db, booking_id, current_user.id)
    return PaymentResponse.model_validate(payment_service.get_payment_for_booking(db, booking_id))
