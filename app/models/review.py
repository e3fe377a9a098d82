# app/models/review.py
from sqlalchemy import Column, Integer, String, Text, Float, ForeignKey, TIMESTAMP, func, CheckConstraint
from sqlalchemy.orm import relationship
from app.database import Base

class Review(Base):
    __tablename__ = "reviews"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id", ondelete="CASCADE"), unique=True, nullable=False)
    student_id = Column(Integer, ForeignKey("students.id", ondelete="CASCADE"), nullable=False)
    mentor_id = Column(Integer, ForeignKey("mentors.id", ondelete="CASCADE"), nullable=False, index=True)
    rating = Column(Integer, nullable=False)
    comment = Column(Text)
    created_at = Column(TIMESTAMP, server_default=func.now())

    # Constraints
    __table_args__ = (
        CheckConstraint('rating >= 1 AND rating <= 5', name='check_rating_range'),
    )

    # Relationships
    booking = relationship("Booking", back_populates="review")
    student = relationship("Student")
    mentor = relationship("Mentor", back_populates="reviews")


class LeaderboardEntry(Base):
    """Ranked projection of mentors; rebuilt wholesale, never edited in place."""

    __tablename__ = "leaderboard_entries"

    id = Column(Integer, primary_key=True, index=True)
    mentor_id = Column(Integer, ForeignKey("mentors.id", ondelete="CASCADE"), unique=True, nullable=False)
    mentor_name = Column(String(100), nullable=False)
    expertise = Column(String(500), default="", nullable=False)
    rating = Column(Float, default=0.0, nullable=False)
    total_reviews = Column(Integer, default=0, nullable=False)
    rank = Column(Integer, nullable=False, index=True)
    updated_at = Column(TIMESTAMP, server_default=func.now())

    # Relationship
    mentor = relationship("Mentor")
