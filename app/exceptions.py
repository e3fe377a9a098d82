# app/exceptions.py
"""
Domain exceptions for the booking engine.

Services raise these; the API layer turns them into HTTP responses through
a single exception handler registered in app/main.py.
"""

from typing import Any, Dict, Optional

from fastapi import status


class DomainException(Exception):
    """Base exception for all booking-engine errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "code": self.code,
            "details": self.details,
        }


class ConflictException(DomainException):
    """Slot locked, slot already booked, or already reviewed."""

    status_code = status.HTTP_409_CONFLICT


class InvalidStateException(DomainException):
    """Transition attempted from a state that does not permit it."""

    status_code = 422


class ValidationException(DomainException):
    """Business validation failed (duration, price, rating...)."""

    status_code = status.HTTP_400_BAD_REQUEST


class AuthenticationException(DomainException):
    """Payment callback could not be authenticated."""

    status_code = status.HTTP_401_UNAUTHORIZED


class ForbiddenException(DomainException):
    """Acting user is not a participant allowed to perform the action."""

    status_code = status.HTTP_403_FORBIDDEN


class NotFoundException(DomainException):
    """Referenced mentor, student, booking or payment does not exist."""

    status_code = status.HTTP_404_NOT_FOUND


class PaymentReconciliationError(DomainException):
    """
    The atomic payment + booking commit failed.

    Reported as a server error so the gateway redelivers the callback.
    """

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class PaymentGatewayUnavailable(DomainException):
    """Outbound call to the payment gateway failed."""

    status_code = status.HTTP_502_BAD_GATEWAY
