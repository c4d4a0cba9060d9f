"""Public rolling leaderboard."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from byterunner.config import get_settings
from byterunner.database import get_session
from byterunner.leaderboard.schemas import LeaderboardEntryResponse, LeaderboardResponse
from byterunner.leaderboard.service import get_rolling_leaderboard

router = APIRouter(prefix="/api/v1", tags=["Leaderboard"])


@router.get("/leaderboard", response_model=LeaderboardResponse)
async def leaderboard(
    limit: int = Query(50, ge=1, le=100),
    db: AsyncSession = Depends(get_session),
) -> LeaderboardResponse:
    """Best run per player over the rolling window."""
    entries = await get_rolling_leaderboard(db, limit=limit)
    return LeaderboardResponse(
        window_hours=get_settings().leaderboard_window_hours,
        entries=[LeaderboardEntryResponse(**e) for e in entries],
    )
