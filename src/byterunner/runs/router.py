"""Runs API: start a run, submit a finished run, personal stats."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from byterunner.auth.dependencies import get_current_user
from byterunner.database import get_session
from byterunner.db.models import User
from byterunner.runs.schemas import (
    RunFinishRequest,
    RunFinishResponse,
    RunStartResponse,
    UserStatsResponse,
)
from byterunner.runs.service import finish_run, get_user_stats, start_run

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/runs", tags=["Runs"])


@router.post("/start", response_model=RunStartResponse)
async def start(
    user: User = Depends(get_current_user),
) -> RunStartResponse:
    """Issue a signed run token. Submit it back with the finished run."""
    token, expires_at = start_run(user)
    return RunStartResponse(run_token=token, expires_at=expires_at)


@router.post("/finish", response_model=RunFinishResponse)
async def finish(
    body: RunFinishRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> RunFinishResponse:
    """Validate and record a finished run, entering it into open contests."""
    result = await finish_run(
        db,
        user,
        run_token=body.run_token,
        score=body.score,
        distance=body.distance,
        duration_ms=body.duration_ms,
        client_version=body.client_version,
    )
    return RunFinishResponse(
        id=result.id,
        score=result.score,
        distance=result.distance,
        duration_ms=result.duration_ms,
        created_at=result.created_at,
        entered_contests=result.entered_contests,
    )


@router.get("/my-stats", response_model=UserStatsResponse)
async def my_stats(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> UserStatsResponse:
    stats = await get_user_stats(db, user.id)
    return UserStatsResponse(**stats)
