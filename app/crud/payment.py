# app/crud/payment.py
from sqlalchemy.orm import Session
from typing import Optional

from app.models.payment import Payment


def get_payment_by_booking(db: Session, booking_id: int) -> Optional[Payment]:
    return db.query(Payment).filter(Payment.booking_id == booking_id).first()


def get_payment_by_order_ref_for_update(db: Session, gateway_order_ref: str) -> Optional[Payment]:
    """Row-locked lookup so concurrent deliveries of one callback serialize."""
    return (
        db.query(Payment)
        .filter(Payment.gateway_order_ref == gateway_order_ref)
        .with_for_update()
        .first()
    )
