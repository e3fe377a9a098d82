import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.crud import user as user_crud
from app.database import get_db
from app.models.user import UserRole
from app.schemas.auth import LoginRequest, RegisterRequest, Token
from app.utils.security import authenticate_user, create_access_token

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


# ===== REGISTER ENDPOINT =====

@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(user_data: RegisterRequest, db: Session = Depends(get_db)):
    """Register new user and create the student or mentor profile"""
    if user_crud.get_user_by_email(db, user_data.email):
        raise HTTPException(status_code=400, detail="Email already registered")

    if user_data.role == UserRole.MENTOR.value and user_data.hourly_rate is None:
        raise HTTPException(status_code=400, detail="Mentors must provide an hourly_rate")

    try:
        new_user = user_crud.create_user(
            db,
            name=user_data.name,
            email=user_data.email,
            password=user_data.password,
            role=user_data.role,
            hourly_rate=user_data.hourly_rate,
            expertise=user_data.expertise,
            bio=user_data.bio,
        )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Registration failed for %s", user_data.email)
        raise HTTPException(status_code=500, detail="Internal server error")

    return {
        "message": "Registration successful",
        "user_id": new_user.id,
        "role": new_user.role,
    }

# ===== LOGIN ENDPOINT =====

@router.post("/login", response_model=Token)
def login(credentials: LoginRequest, db: Session = Depends(get_db)):
    """Verify credentials and return access token"""
    user = authenticate_user(db, credentials.email, credentials.password)

    if not user or not user.is_active:
        raise HTTPException(status_code=401, detail="Invalid email or password")

    access_token = create_access_token(data={"sub": user.email, "role": user.role})

    return {
        "access_token": access_token,
        "token_type": "bearer",
        "role": user.role
    }
