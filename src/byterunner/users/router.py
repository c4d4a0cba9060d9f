"""User router: /api/v1/users/* endpoints."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from byterunner.auth.dependencies import get_current_user
from byterunner.database import get_session
from byterunner.db.models import User
from byterunner.users.schemas import UsernameUpdateRequest, UserResponse
from byterunner.users.service import set_username

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/users", tags=["Users"])


def _user_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        email=user.email,
        username=user.username,
        balance_cents=user.balance_cents,
        last_withdrawal_at=user.last_withdrawal_at,
        continue_tokens=user.continue_tokens,
        featured_badge=user.featured_badge,
        created_at=user.created_at,
    )


@router.get("/me", response_model=UserResponse)
async def get_profile(
    user: User = Depends(get_current_user),
) -> UserResponse:
    """Get own profile."""
    return _user_response(user)


@router.post("/username", response_model=UserResponse)
async def update_username(
    body: UsernameUpdateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> UserResponse:
    """Pick or change the display name shown on leaderboards."""
    user = await set_username(db, user, body.username)
    logger.info("username_set", user_id=user.id)
    return _user_response(user)
