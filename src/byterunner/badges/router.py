"""Badges API: /api/v1/badges."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from byterunner.auth.dependencies import get_current_user
from byterunner.badges.schemas import (
    BadgeCheckResponse,
    BadgeResponse,
    FeaturedBadgeRequest,
    FeaturedBadgeResponse,
    UserBadgeResponse,
)
from byterunner.badges.service import (
    check_and_award_badges,
    get_all_badges,
    get_user_badges,
    set_featured_badge,
)
from byterunner.database import get_session
from byterunner.db.models import User

router = APIRouter(prefix="/api/v1/badges", tags=["Badges"])


@router.get("", response_model=list[BadgeResponse])
async def list_badges(db: AsyncSession = Depends(get_session)) -> list[BadgeResponse]:
    """The full badge catalogue. Public."""
    return [BadgeResponse.model_validate(b) for b in await get_all_badges(db)]


@router.get("/me", response_model=list[UserBadgeResponse])
async def my_badges(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> list[UserBadgeResponse]:
    return [UserBadgeResponse.model_validate(ub) for ub in await get_user_badges(db, user.id)]


@router.post("/check", response_model=BadgeCheckResponse)
async def check_badges(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> BadgeCheckResponse:
    """Award any badges the caller has newly qualified for."""
    awarded = await check_and_award_badges(db, user.id)
    message = f"Earned {len(awarded)} new badge(s)!" if awarded else "No new badges"
    return BadgeCheckResponse(awarded=awarded, message=message)


@router.post("/featured", response_model=FeaturedBadgeResponse)
async def feature_badge(
    body: FeaturedBadgeRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> FeaturedBadgeResponse:
    user = await set_featured_badge(db, user, body.badge)
    return FeaturedBadgeResponse(featured_badge=user.featured_badge)
