# app/schemas/__init__.py

# Auth schemas
from .auth import Token, TokenData, LoginRequest, RegisterRequest

# User / mentor schemas
from .user import User, MentorResponse, MentorProfileUpdate

__all__ = [
    "Token",
    "TokenData",
    "LoginRequest",
    "RegisterRequest",
    "User",
    "MentorResponse",
    "MentorProfileUpdate",
]
