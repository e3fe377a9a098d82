from sqlalchemy import Column, Integer, String, Boolean, Float, Text, ForeignKey, TIMESTAMP, func
from sqlalchemy.orm import relationship
from app.database import Base
import enum


class UserRole(str, enum.Enum):
    STUDENT = "student"
    MENTOR = "mentor"
    ADMIN = "admin"


# ---------------- USER (AUTH TABLE) ----------------
class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default=UserRole.STUDENT.value)
    is_active = Column(Boolean, default=True)
    created_at = Column(TIMESTAMP, server_default=func.now())
    updated_at = Column(TIMESTAMP, onupdate=func.now())

    student = relationship("Student", back_populates="user", uselist=False, cascade="all, delete-orphan")
    mentor = relationship("Mentor", back_populates="user", uselist=False, cascade="all, delete-orphan")


# ---------------- STUDENT PROFILE ----------------
class Student(Base):
    __tablename__ = "students"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    created_at = Column(TIMESTAMP, server_default=func.now())

    user = relationship("User", back_populates="student")
    bookings = relationship("Booking", back_populates="student")


# ---------------- MENTOR PROFILE ----------------
class Mentor(Base):
    __tablename__ = "mentors"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    hourly_rate = Column(Integer, nullable=False)  # minor currency units (paise)
    is_available = Column(Boolean, default=True, nullable=False)
    # Written only by the rating aggregator
    rating = Column(Float, default=0.0, nullable=False)
    total_reviews = Column(Integer, default=0, nullable=False)
    expertise = Column(String(500), default="", nullable=False)
    bio = Column(Text)
    created_at = Column(TIMESTAMP, server_default=func.now())
    updated_at = Column(TIMESTAMP, server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="mentor")
    bookings = relationship("Booking", back_populates="mentor")
    reviews = relationship("Review", back_populates="mentor")

    @property
    def name(self):
        return self.user.name if self.user else None
