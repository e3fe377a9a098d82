# app/api/__init__.py
# This file makes the api directory a Python package.

from . import admin
from . import auth
from . import bookings
from . import leaderboard
from . import mentors
from . import payments
from . import review

__all__ = [
    "auth",
    "mentors",
    "bookings",
    "payments",
    "review",
    "leaderboard",
    "admin",
]
