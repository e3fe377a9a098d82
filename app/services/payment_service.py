# app/services/payment_service.py
"""
Payment Reconciliation Service

Tracks a booking's payment without side effects until a trusted gateway
callback arrives, then commits payment and booking state together. Callbacks
are delivered at least once; a repeat of an applied callback is a no-op.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.crud import booking as booking_crud
from app.crud import payment as payment_crud
from app.exceptions import (
    AuthenticationException,
    ForbiddenException,
    InvalidStateException,
    NotFoundException,
    PaymentGatewayUnavailable,
    PaymentReconciliationError,
    ValidationException,
)
from app.models.booking import BookingStatus
from app.models.payment import Payment, PaymentStatus
from app.services import booking_service
from app.services.payment_gateway import PaymentGateway, PaymentGatewayError, get_payment_gateway
from app.services.slot_lock import SlotLockRegistry, get_slot_lock_registry

logger = logging.getLogger(__name__)


@dataclass
class CallbackResult:
    booking_id: int
    payment_id: int
    payment_status: PaymentStatus
    booking_status: BookingStatus
    duplicate: bool = False


# =====================================
# INITIATION
# =====================================

def initiate_payment(
    db: Session,
    booking_id: int,
    student_id: Optional[int] = None,
    gateway: Optional[PaymentGateway] = None
) -> str:
    """
    Open a gateway order for a booking's pending payment.

    Repeated calls return the order already on file instead of opening a
    second one. Payment status is not changed.

    Args:
        db: Database session
        booking_id: Booking identifier
        student_id: When given, must own the booking
        gateway: Payment gateway (configured default when omitted)

    Returns:
        Gateway order reference

    Raises:
        NotFoundException: Booking or payment missing
        ForbiddenException: Student does not own the booking
        InvalidStateException: Payment or booking no longer PENDING
        PaymentGatewayUnavailable: Gateway call failed
    """
    gateway = gateway or get_payment_gateway()

    booking = booking_crud.get_booking(db, booking_id)
    if booking is None:
        raise NotFoundException("Booking not found", details={"booking_id": booking_id})
    if student_id is not None and booking.student_id != student_id:
        raise ForbiddenException("Access denied")

    payment = booking.payment
    if payment is None:
        raise NotFoundException("Payment record not found", details={"booking_id": booking_id})
    if payment.status != PaymentStatus.PENDING:
        raise InvalidStateException(
            f"Payment is already {PaymentStatus(payment.status).value}",
            code="PAYMENT_NOT_PENDING",
            details={"payment_id": payment.id},
        )
    if booking.status != BookingStatus.PENDING:
        raise InvalidStateException(
            f"Booking is {BookingStatus(booking.status).value}; payment cannot be started",
            code="BOOKING_NOT_PENDING",
            details={"booking_id": booking.id},
        )

    if payment.gateway_order_ref:
        return payment.gateway_order_ref

    try:
        order_ref = gateway.create_order(payment.amount, payment.currency, str(booking.id))
    except PaymentGatewayError as exc:
        raise PaymentGatewayUnavailable(str(exc), code="GATEWAY_UNAVAILABLE") from exc

    payment.gateway_order_ref = order_ref
    db.commit()
    logger.info("Payment %s for booking %s initiated: order=%s", payment.id, booking.id, order_ref)
    return order_ref


# =====================================
# CALLBACKS
# =====================================

def _authenticate_and_load(
    db: Session,
    gateway: PaymentGateway,
    gateway_order_ref: str,
    gateway_txn_ref: str,
    signature: str,
    claimed_booking_id: Optional[int],
) -> Payment:
    if not gateway.verify_signature(gateway_order_ref, gateway_txn_ref, signature):
        logger.warning("Rejected payment callback with bad signature: order=%s", gateway_order_ref)
        raise AuthenticationException("Invalid payment signature", code="INVALID_SIGNATURE")

    payment = payment_crud.get_payment_by_order_ref_for_update(db, gateway_order_ref)
    if payment is None:
        raise NotFoundException("Payment not found", details={"gateway_order_ref": gateway_order_ref})

    if claimed_booking_id is not None and payment.booking_id != claimed_booking_id:
        raise ValidationException(
            "Callback booking does not match the payment order",
            code="BOOKING_MISMATCH",
            details={"claimed_booking_id": claimed_booking_id},
        )
    return payment


def handle_callback(
    db: Session,
    gateway_order_ref: str,
    gateway_txn_ref: str,
    signature: str,
    claimed_booking_id: Optional[int] = None,
    gateway: Optional[PaymentGateway] = None,
    registry: Optional[SlotLockRegistry] = None
) -> CallbackResult:
    """
    Apply a successful-payment callback.

    Payment -> COMPLETED and Booking -> CONFIRMED commit together; the slot
    lock is released only after that commit.

    Raises:
        AuthenticationException: Signature mismatch (no state change)
        NotFoundException: Unknown order reference
        ValidationException: Claimed booking does not own the order
        InvalidStateException: Payment failed/refunded or booking no longer PENDING
        PaymentReconciliationError: Commit failed; gateway should redeliver
    """
    gateway = gateway or get_payment_gateway()
    registry = registry if registry is not None else get_slot_lock_registry()

    try:
        payment = _authenticate_and_load(
            db, gateway, gateway_order_ref, gateway_txn_ref, signature, claimed_booking_id
        )
    except Exception:
        db.rollback()
        raise

    booking = payment.booking
    if payment.status == PaymentStatus.COMPLETED:
        logger.info("Duplicate payment callback ignored: order=%s", gateway_order_ref)
        result = CallbackResult(
            booking_id=booking.id,
            payment_id=payment.id,
            payment_status=PaymentStatus(payment.status),
            booking_status=BookingStatus(booking.status),
            duplicate=True,
        )
        db.rollback()
        return result

    if payment.status != PaymentStatus.PENDING or booking.status != BookingStatus.PENDING:
        logger.error(
            "Payment success for dead booking needs manual refund: order=%s txn=%s payment=%s booking=%s",
            gateway_order_ref, gateway_txn_ref,
            PaymentStatus(payment.status).value, BookingStatus(booking.status).value,
        )
        db.rollback()
        raise InvalidStateException(
            "Booking can no longer be confirmed",
            code="BOOKING_NOT_CONFIRMABLE",
            details={"booking_id": booking.id},
        )

    try:
        payment.status = PaymentStatus.COMPLETED
        payment.gateway_txn_ref = gateway_txn_ref
        booking_service.confirm_booking(booking)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Payment reconciliation commit failed: order=%s", gateway_order_ref)
        raise PaymentReconciliationError(
            "Payment could not be recorded; retry delivery",
            code="RECONCILIATION_FAILED",
        ) from exc

    registry.release(booking.mentor_id, booking.start_time)
    logger.info("Payment %s completed; booking %s confirmed", payment.id, booking.id)
    return CallbackResult(
        booking_id=booking.id,
        payment_id=payment.id,
        payment_status=PaymentStatus.COMPLETED,
        booking_status=BookingStatus.CONFIRMED,
    )


def handle_failure_callback(
    db: Session,
    gateway_order_ref: str,
    gateway_txn_ref: str,
    signature: str,
    claimed_booking_id: Optional[int] = None,
    reason: Optional[str] = None,
    gateway: Optional[PaymentGateway] = None,
    registry: Optional[SlotLockRegistry] = None
) -> CallbackResult:
    """
    Apply a failed-payment callback: Payment -> FAILED, Booking -> CANCELLED,
    slot released so it can be booked again.
    """
    gateway = gateway or get_payment_gateway()
    registry = registry if registry is not None else get_slot_lock_registry()

    try:
        payment = _authenticate_and_load(
            db, gateway, gateway_order_ref, gateway_txn_ref, signature, claimed_booking_id
        )
    except Exception:
        db.rollback()
        raise

    booking = payment.booking
    if payment.status == PaymentStatus.FAILED:
        logger.info("Duplicate failure callback ignored: order=%s", gateway_order_ref)
        result = CallbackResult(
            booking_id=booking.id,
            payment_id=payment.id,
            payment_status=PaymentStatus.FAILED,
            booking_status=BookingStatus(booking.status),
            duplicate=True,
        )
        db.rollback()
        return result

    if payment.status != PaymentStatus.PENDING:
        db.rollback()
        raise InvalidStateException(
            f"Payment is already {PaymentStatus(payment.status).value}",
            code="PAYMENT_NOT_PENDING",
            details={"payment_id": payment.id},
        )

    try:
        payment.status = PaymentStatus.FAILED
        payment.gateway_txn_ref = gateway_txn_ref
        payment.failure_reason = reason or "payment_failed"
        if booking.status == BookingStatus.PENDING:
            booking_service.fail_booking(booking, "payment_failed")
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Payment failure commit failed: order=%s", gateway_order_ref)
        raise PaymentReconciliationError(
            "Payment failure could not be recorded; retry delivery",
            code="RECONCILIATION_FAILED",
        ) from exc

    registry.release(booking.mentor_id, booking.start_time)
    logger.info("Payment %s failed; booking %s cancelled", payment.id, booking.id)
    return CallbackResult(
        booking_id=booking.id,
        payment_id=payment.id,
        payment_status=PaymentStatus.FAILED,
        booking_status=BookingStatus(booking.status),
    )


# =====================================
# READS
# =====================================

def get_payment_for_booking(db: Session, booking_id: int) -> Payment:
    payment = payment_crud.get_payment_by_booking(db, booking_id)
    if payment is None:
        raise NotFoundException("Payment record not found", details={"booking_id": booking_id})
    return payment
