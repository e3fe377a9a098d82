# app/api/leaderboard.py
"""
Leaderboard API Router

Endpoints:
- GET /leaderboard/         - Ranked mentors, optionally filtered by expertise
- GET /leaderboard/domains  - Expertise areas by mentor count
- GET /leaderboard/stats    - Catalogue-wide rating figures
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.database import get_db
from app.schemas.review import (
    DomainListResponse,
    LeaderboardEntryResponse,
    LeaderboardStatsResponse,
)
from app.services import leaderboard_service

router = APIRouter(prefix="/leaderboard", tags=["leaderboard"])


@router.get("/", response_model=List[LeaderboardEntryResponse])
def get_leaderboard(
    limit: int = Query(20, ge=1, le=100),
    expertise: Optional[str] = Query(None, description="Case-insensitive expertise filter"),
    db: Session = Depends(get_db)
):
    """
    Read the published leaderboard. Ranks come from the last rebuild and are
    not renumbered by the expertise filter.
    """
    entries = leaderboard_service.get_leaderboard(db, limit=limit, expertise=expertise)
    return [LeaderboardEntryResponse.model_validate(e) for e in entries]


@router.get("/domains", response_model=DomainListResponse)
def get_domains(
    limit: int = Query(20, ge=1, le=50),
    db: Session = Depends(get_db)
):
    domains = leaderboard_service.get_domains(db, limit=limit)
    return DomainListResponse(domains=domains, total_domains=len(domains))


@router.get("/stats", response_model=LeaderboardStatsResponse)
def get_stats(db: Session = Depends(get_db)):
    return LeaderboardStatsResponse(**leaderboard_service.get_leaderboard_stats(db))
