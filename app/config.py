from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Database
    DATABASE_URL: str = "sqlite:///./mentorbook.db"

    # JWT Authentication
    SECRET_KEY: str = "change-me"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # Application
    APP_ENV: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # Slot locking
    SLOT_LOCK_TTL_SECONDS: int = 300
    SLOT_LOCK_SWEEP_INTERVAL_SECONDS: int = 60
    ENABLE_BACKGROUND_SWEEPER: bool = True

    # Booking policy
    BOOKING_MIN_DURATION_MINUTES: int = 30
    BOOKING_MAX_DURATION_MINUTES: int = 180
    PRICE_TOLERANCE: int = 1  # minor currency units

    # Payments
    PAYMENT_GATEWAY: str = "mock"  # "mock" or "razorpay"
    PAYMENT_CURRENCY: str = "INR"
    PAYMENT_WEBHOOK_SECRET: str = "mock-webhook-secret"
    RAZORPAY_KEY_ID: Optional[str] = None
    RAZORPAY_KEY_SECRET: Optional[str] = None
    RAZORPAY_API_URL: str = "https://api.razorpay.com"
    PAYMENT_HTTP_TIMEOUT_SECONDS: float = 10.0

    # Leaderboard
    LEADERBOARD_MIN_REVIEWS: int = 1

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
    )


settings = Settings()
