from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


# ======================
# USER SCHEMAS
# ======================

class User(BaseModel):
    id: int
    name: str
    email: EmailStr
    role: str
    is_active: bool
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


# ======================
# MENTOR PROFILE SCHEMAS
# ======================

class MentorResponse(BaseModel):
    id: int
    user_id: int
    name: Optional[str] = None
    hourly_rate: int = Field(..., description="Hourly rate in minor currency units")
    is_available: bool
    rating: float = Field(..., description="Average rating (0-5, one decimal)")
    total_reviews: int
    expertise: str = ""
    bio: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class MentorProfileUpdate(BaseModel):
    hourly_rate: Optional[int] = Field(None, ge=0)
    is_available: Optional[bool] = None
    expertise: Optional[str] = Field(None, max_length=500)
    bio: Optional[str] = Field(None, max_length=2000)


# ======================
# ADMIN VERIFICATION SCHEMAS
# ======================

class PendingMentorResponse(MentorResponse):
    email: EmailStr
    verification_status: str = Field(..., description="pending | needs_review | new")
    joined_at: Optional[datetime] = None


class PendingMentorPage(BaseModel):
    mentors: List[PendingMentorResponse]
    page: int
    limit: int
    total: int
    pages: int


class MentorVerifyRequest(BaseModel):
    verified: bool
    notes: Optional[str] = Field(None, max_length=1000)


class MentorVerifyResponse(BaseModel):
    message: str
    mentor_id: int
    verified: bool
    notes: Optional[str] = None
