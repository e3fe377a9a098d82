# app/main.py
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import settings
from app.database import Base, SessionLocal, engine
from app.exceptions import DomainException
from app.api import admin, auth, bookings, leaderboard, mentors, payments, review
from app.services.booking_service import make_hold_expiry_task
from app.services.slot_lock import BackgroundSweeper, get_slot_lock_registry

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

# Create database tables
Base.metadata.create_all(bind=engine)


@asynccontextmanager
async def lifespan(app: FastAPI):
    sweeper = None
    if settings.ENABLE_BACKGROUND_SWEEPER:
        registry = get_slot_lock_registry()
        sweeper = BackgroundSweeper(
            tasks=[registry.sweep, make_hold_expiry_task(SessionLocal, registry)],
        )
        sweeper.start()
    yield
    if sweeper is not None:
        sweeper.stop()


# Initialize FastAPI app
app = FastAPI(title="MentorBook API", lifespan=lifespan)

# CORS Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(DomainException)
async def domain_exception_handler(request: Request, exc: DomainException):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_dict()})


# API routers
app.include_router(auth.router)         # /auth/*
app.include_router(mentors.router)      # /mentors/*
app.include_router(bookings.router)     # /bookings/*
app.include_router(payments.router)     # /payments/*
app.include_router(review.router)       # /reviews/*
app.include_router(leaderboard.router)  # /leaderboard/*
app.include_router(admin.router)        # /admin/*


@app.get("/health")
def health_check():
    return {
        "status": "healthy",
        "message": "MentorBook API is running",
        "version": "1.0.0",
    }
