# app/models/__init__.py
# Import models in dependency order
from .user import User, UserRole, Student, Mentor
from .booking import Booking, BookingStatus, ACTIVE_BOOKING_STATUSES
from .payment import Payment, PaymentStatus
from .review import Review, LeaderboardEntry  # Import Review LAST

__all__ = [
    "User",
    "UserRole",
    "Student",
    "Mentor",
    "Booking",
    "BookingStatus",
    "ACTIVE_BOOKING_STATUSES",
    "Payment",
    "PaymentStatus",
    "Review",
    "LeaderboardEntry",
]
