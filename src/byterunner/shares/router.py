"""Shares API: /api/v1/shares."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from byterunner.auth.dependencies import get_current_user
from byterunner.database import get_session
from byterunner.db.models import User
from byterunner.shares.schemas import ShareCountResponse, ShareRequest, ShareResponse
from byterunner.shares.service import get_user_share_count, record_share

router = APIRouter(prefix="/api/v1/shares", tags=["Shares"])


@router.post("", response_model=ShareResponse, status_code=201)
async def create_share(
    body: ShareRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> ShareResponse:
    """Record a share. Earns one continue token."""
    share = await record_share(db, user.id, body.platform, score=body.score, run_id=body.run_id)
    return ShareResponse.model_validate(share)


@router.get("/count", response_model=ShareCountResponse)
async def share_count(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> ShareCountResponse:
    return ShareCountResponse(count=await get_user_share_count(db, user.id))
