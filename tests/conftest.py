"""Pytest bootstrap for project imports and shared booking fixtures."""

from pathlib import Path
import os
import sys

# Ensure project root is on sys.path so `import app` works
PROJECT_ROOT = Path(__file__).resolve().parents[1]
project_root_str = str(PROJECT_ROOT)
if project_root_str not in sys.path:
    sys.path.insert(0, project_root_str)

# Settings are read once at import; keep tests off the dev database and threads
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENABLE_BACKGROUND_SWEEPER", "false")
os.environ.setdefault("PAYMENT_GATEWAY", "mock")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from datetime import datetime  # noqa: E402
from typing import Optional  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.database import Base  # noqa: E402
from app.models.user import Mentor, Student, User  # noqa: E402
from app.services.payment_gateway import MockPaymentGateway  # noqa: E402
from app.services.slot_lock import SlotLockRegistry  # noqa: E402

WEBHOOK_SECRET = "test-webhook-secret"
SLOT_START = datetime(2030, 1, 7, 10, 0, 0)


class FakeClock:
    """Monotonic clock stand-in that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def _build_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def engine():
    engine = _build_engine()
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db_session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def registry(clock):
    return SlotLockRegistry(clock=clock, ttl_seconds=300)


@pytest.fixture
def gateway():
    return MockPaymentGateway(WEBHOOK_SECRET)


def make_student(db, email: str = "student@test.edu", name: str = "Test Student") -> Student:
    user = User(name=name, email=email, password_hash="hash", role="student", is_active=True)
    db.add(user)
    db.flush()
    student = Student(user_id=user.id)
    db.add(student)
    db.commit()
    db.refresh(student)
    return student


def make_mentor(
    db,
    email: str = "mentor@test.edu",
    name: str = "Test Mentor",
    hourly_rate: int = 8000,
    expertise: str = "Python, System Design",
    rating: float = 0.0,
    total_reviews: int = 0,
    is_available: bool = True,
    bio: Optional[str] = None,
) -> Mentor:
    user = User(name=name, email=email, password_hash="hash", role="mentor", is_active=True)
    db.add(user)
    db.flush()
    mentor = Mentor(
        user_id=user.id,
        hourly_rate=hourly_rate,
        expertise=expertise,
        rating=rating,
        total_reviews=total_reviews,
        is_available=is_available,
        bio=bio,
    )
    db.add(mentor)
    db.commit()
    db.refresh(mentor)
    return mentor


@pytest.fixture
def student(db_session):
    return make_student(db_session)


@pytest.fixture
def mentor(db_session):
    return make_mentor(db_session)
