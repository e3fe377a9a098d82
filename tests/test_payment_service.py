"""
Payment reconciliation tests
Order initiation, signed success/failure callbacks, duplicate delivery
and atomic payment + booking commits.
"""

import pytest
from sqlalchemy.exc import OperationalError

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
from app.models.payment import PaymentStatus
from app.services import booking_service, payment_service
from app.services.payment_gateway import MockPaymentGateway, PaymentGatewayError, compute_signature
from conftest import SLOT_START, WEBHOOK_SECRET, make_student


@pytest.fixture
def booking(db_session, student, mentor, registry):
    return booking_service.create_booking(
        db_session,
        student_id=student.id,
        mentor_id=mentor.id,
        start_time=SLOT_START,
        duration_minutes=60,
        declared_price=8000,
        registry=registry,
    )


@pytest.fixture
def order_ref(db_session, booking, student, gateway):
    return payment_service.initiate_payment(db_session, booking.id, student_id=student.id, gateway=gateway)


def _succeed(db, order_ref, gateway, registry, **kwargs):
    txn_ref, signature = gateway.simulate_callback(order_ref)
    return payment_service.handle_callback(
        db, order_ref, txn_ref, signature, gateway=gateway, registry=registry, **kwargs
    )


def _fail(db, order_ref, gateway, registry, reason="card_declined"):
    txn_ref = "pay_failed_1"
    signature = compute_signature(WEBHOOK_SECRET, order_ref, txn_ref)
    return payment_service.handle_failure_callback(
        db, order_ref, txn_ref, signature, reason=reason, gateway=gateway, registry=registry
    )


# ======================
# INITIATION
# ======================

def test_initiate_assigns_order_without_changing_status(db_session, booking, order_ref, gateway):
    db_session.refresh(booking)
    assert booking.payment.gateway_order_ref == order_ref
    assert booking.payment.status == PaymentStatus.PENDING
    assert gateway.orders[order_ref]["amount"] == 8000
    assert gateway.orders[order_ref]["currency"] == "INR"


def test_initiate_is_idempotent(db_session, booking, order_ref, student, gateway):
    again = payment_service.initiate_payment(db_session, booking.id, student_id=student.id, gateway=gateway)
    assert again == order_ref
    assert len(gateway.orders) == 1


def test_initiate_rejects_other_student(db_session, booking, gateway):
    other = make_student(db_session, email="other@test.edu")
    with pytest.raises(ForbiddenException):
        payment_service.initiate_payment(db_session, booking.id, student_id=other.id, gateway=gateway)


def test_initiate_missing_booking(db_session, gateway):
    with pytest.raises(NotFoundException):
        payment_service.initiate_payment(db_session, 12345, gateway=gateway)


def test_initiate_after_cancel_rejected(db_session, booking, student, registry, gateway):
    booking_service.cancel_booking(db_session, booking.id, student.user_id, registry=registry)
    with pytest.raises(InvalidStateException) as exc_info:
        payment_service.initiate_payment(db_session, booking.id, gateway=gateway)
    assert exc_info.value.code == "PAYMENT_NOT_PENDING"


def test_gateway_outage_maps_to_unavailable(db_session, booking):
    class DownGateway(MockPaymentGateway):
        def create_order(self, amount, currency, reference):
            raise PaymentGatewayError("connection refused")

    with pytest.raises(PaymentGatewayUnavailable):
        payment_service.initiate_payment(db_session, booking.id, gateway=DownGateway(WEBHOOK_SECRET))

    db_session.refresh(booking)
    assert booking.payment.gateway_order_ref is None


# ======================
# SUCCESS CALLBACK
# ======================

def test_success_callback_confirms_booking_and_releases_lock(
    db_session, booking, order_ref, gateway, registry, mentor
):
    assert registry.is_locked(mentor.id, SLOT_START)

    result = _succeed(db_session, order_ref, gateway, registry, claimed_booking_id=booking.id)

    assert result.duplicate is False
    assert result.booking_status == BookingStatus.CONFIRMED
    assert result.payment_status == PaymentStatus.COMPLETED
    db_session.refresh(booking)
    assert booking.status == BookingStatus.CONFIRMED
    assert booking.hold_expires_at is None
    assert booking.payment.status == PaymentStatus.COMPLETED
    assert booking.payment.gateway_txn_ref.startswith("pay_mock_")
    assert not registry.is_locked(mentor.id, SLOT_START)


def test_bad_signature_rejected_without_side_effects(db_session, booking, order_ref, gateway, registry):
    txn_ref, _ = gateway.simulate_callback(order_ref)

    with pytest.raises(AuthenticationException):
        payment_service.handle_callback(
            db_session, order_ref, txn_ref, "0" * 64, gateway=gateway, registry=registry
        )

    db_session.refresh(booking)
    assert booking.status == BookingStatus.PENDING
    assert booking.payment.status == PaymentStatus.PENDING


def test_signature_for_other_txn_rejected(db_session, order_ref, gateway, registry):
    _, signature = gateway.simulate_callback(order_ref)
    with pytest.raises(AuthenticationException):
        payment_service.handle_callback(
            db_session, order_ref, "pay_forged", signature, gateway=gateway, registry=registry
        )


def test_duplicate_success_callback_is_noop(db_session, booking, order_ref, gateway, registry):
    first = _succeed(db_session, order_ref, gateway, registry)
    db_session.refresh(booking)
    txn_ref = booking.payment.gateway_txn_ref
    updated_at = booking.updated_at

    second = _succeed(db_session, order_ref, gateway, registry)

    assert first.duplicate is False
    assert second.duplicate is True
    assert second.booking_status == BookingStatus.CONFIRMED
    db_session.refresh(booking)
    assert booking.payment.gateway_txn_ref == txn_ref
    assert booking.updated_at == updated_at


def test_unknown_order_not_found(db_session, gateway, registry):
    signature = compute_signature(WEBHOOK_SECRET, "order_nope", "pay_1")
    with pytest.raises(NotFoundException):
        payment_service.handle_callback(
            db_session, "order_nope", "pay_1", signature, gateway=gateway, registry=registry
        )


def test_claimed_booking_mismatch_rejected(db_session, booking, order_ref, gateway, registry):
    with pytest.raises(ValidationException) as exc_info:
        _succeed(db_session, order_ref, gateway, registry, claimed_booking_id=booking.id + 100)
    assert exc_info.value.code == "BOOKING_MISMATCH"

    db_session.refresh(booking)
    assert booking.status == BookingStatus.PENDING


def test_late_success_after_cancel_is_refused(db_session, booking, order_ref, student, gateway, registry):
    booking_service.cancel_booking(db_session, booking.id, student.user_id, registry=registry)

    with pytest.raises(InvalidStateException) as exc_info:
        _succeed(db_session, order_ref, gateway, registry)

    assert exc_info.value.code == "BOOKING_NOT_CONFIRMABLE"
    db_session.refresh(booking)
    assert booking.status == BookingStatus.CANCELLED
    assert booking.payment.status == PaymentStatus.FAILED


def test_commit_failure_raises_reconciliation_error(
    db_session, booking, order_ref, gateway, registry, mentor, monkeypatch
):
    def broken_commit():
        raise OperationalError("COMMIT", {}, Exception("disk I/O error"))

    monkeypatch.setattr(db_session, "commit", broken_commit)

    with pytest.raises(PaymentReconciliationError):
        _succeed(db_session, order_ref, gateway, registry)

    monkeypatch.undo()
    db_session.refresh(booking)
    assert booking.status == BookingStatus.PENDING
    assert booking.payment.status == PaymentStatus.PENDING
    # slot stays held so the redelivered callback can still confirm
    assert registry.is_locked(mentor.id, SLOT_START)

    result = _succeed(db_session, order_ref, gateway, registry)
    assert result.booking_status == BookingStatus.CONFIRMED


# ======================
# FAILURE CALLBACK
# ======================

def test_failure_callback_cancels_booking(db_session, booking, order_ref, gateway, registry, mentor):
    result = _fail(db_session, order_ref, gateway, registry)

    assert result.payment_status == PaymentStatus.FAILED
    assert result.booking_status == BookingStatus.CANCELLED
    db_session.refresh(booking)
    assert booking.payment.failure_reason == "card_declined"
    assert booking.cancel_reason == "payment_failed"
    assert not registry.is_locked(mentor.id, SLOT_START)


def test_duplicate_failure_callback_is_noop(db_session, order_ref, gateway, registry):
    _fail(db_session, order_ref, gateway, registry)
    again = _fail(db_session, order_ref, gateway, registry)
    assert again.duplicate is True


def test_failure_after_success_is_refused(db_session, booking, order_ref, gateway, registry):
    _succeed(db_session, order_ref, gateway, registry)

    with pytest.raises(InvalidStateException):
        _fail(db_session, order_ref, gateway, registry)

    db_session.refresh(booking)
    assert booking.status == BookingStatus.CONFIRMED
    assert booking.payment.status == PaymentStatus.COMPLETED


def test_get_payment_for_booking(db_session, booking, order_ref):
    payment = payment_service.get_payment_for_booking(db_session, booking.id)
    assert payment.gateway_order_ref == order_ref

    with pytest.raises(NotFoundException):
        payment_service.get_payment_for_booking(db_session, 999)
