from pydantic import BaseModel, EmailStr, Field
from typing import Optional

# ======================
# TOKEN SCHEMAS
# ======================

class Token(BaseModel):
    access_token: str
    token_type: str
    role: str

class TokenData(BaseModel):
    email: Optional[str] = None
    role: Optional[str] = None


# ======================
# USER AUTHENTICATION SCHEMAS
# ======================

class LoginRequest(BaseModel):
    email: EmailStr
    password: str

class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    # Bcrypt limit is 72 bytes; max_length=72 prevents the "password too long" crash
    password: str = Field(..., min_length=6, max_length=72)
    role: str = Field("student", pattern="^(student|mentor)$")

    # Mentor-only profile fields
    hourly_rate: Optional[int] = Field(None, ge=0, description="Hourly rate in minor currency units")
    expertise: Optional[str] = Field(None, max_length=500)
    bio: Optional[str] = Field(None, max_length=2000)
