"""Hourly challenges API."""

from __future__ import annotations

from datetime import datetime

import structlog
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from byterunner.auth.dependencies import get_current_user, require_admin
from byterunner.database import get_session
from byterunner.db.models import User
from byterunner.hourly.schemas import (
    CurrentChallengeResponse,
    HourlyChallengeResponse,
    HourlyEntryResponse,
    HourlyLeaderboardEntry,
    HourlyLeaderboardResponse,
    HourlyProcessResponse,
    MyHourlyEntriesResponse,
)
from byterunner.hourly.service import (
    get_current_challenge,
    get_hour_leaderboard,
    get_user_entries_for_hour,
    list_challenges,
)
from byterunner.hourly.settlement import process_hourly_challenge
from byterunner.time_utils import get_current_hour, truncate_to_hour

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/hourly-challenges", tags=["Hourly Challenges"])
admin_router = APIRouter(prefix="/api/v1/admin/hourly-challenges", tags=["Admin"])


def _resolve_hour(challenge_hour: datetime | None) -> datetime:
    return get_current_hour() if challenge_hour is None else truncate_to_hour(challenge_hour)


@router.get("/current", response_model=CurrentChallengeResponse)
async def current_challenge(
    db: AsyncSession = Depends(get_session),
) -> CurrentChallengeResponse:
    challenge = await get_current_challenge(db)
    if challenge is None:
        return CurrentChallengeResponse(challenge=None, message="No active challenge found")
    return CurrentChallengeResponse(challenge=HourlyChallengeResponse.model_validate(challenge))


@router.get("/leaderboard", response_model=HourlyLeaderboardResponse)
async def hour_leaderboard(
    challenge_hour: datetime | None = Query(None),
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_session),
) -> HourlyLeaderboardResponse:
    """Best run per player in the given hour (default: the current hour)."""
    hour = _resolve_hour(challenge_hour)
    entries = await get_hour_leaderboard(db, hour, limit=limit)
    return HourlyLeaderboardResponse(
        challenge_hour=hour,
        leaderboard=[HourlyLeaderboardEntry(**e) for e in entries],
    )


@router.get("/my-entries", response_model=MyHourlyEntriesResponse)
async def my_entries(
    challenge_hour: datetime | None = Query(None),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> MyHourlyEntriesResponse:
    hour = _resolve_hour(challenge_hour)
    runs = await get_user_entries_for_hour(db, user.id, hour)
    return MyHourlyEntriesResponse(
        challenge_hour=hour,
        entries=[
            HourlyEntryResponse(run_id=r.id, score=r.score, distance=r.distance, created_at=r.created_at)
            for r in runs
        ],
    )


@admin_router.get("", response_model=list[HourlyChallengeResponse])
async def admin_list_challenges(
    limit: int = Query(50, ge=1, le=500),
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> list[HourlyChallengeResponse]:
    return [HourlyChallengeResponse.model_validate(c) for c in await list_challenges(db, limit)]


@admin_router.post("/process", response_model=HourlyProcessResponse)
async def admin_process_hour(
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> HourlyProcessResponse:
    """Settle the previous hour now instead of waiting for the cron job."""
    logger.info("hourly_settlement_triggered", admin_id=admin.id)
    result = await process_hourly_challenge(db)
    return HourlyProcessResponse(**result)
