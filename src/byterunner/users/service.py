"""User lookup, lazy creation and username management."""

from __future__ import annotations

import re
from datetime import datetime
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import func, select

from byterunner.db.models import User
from byterunner.errors import NotFound, ValidationError
from byterunner.time_utils import utcnow

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9_]{3,16}$")


async def get_user_by_id(db: AsyncSession, user_id: int) -> User | None:
    """Fetch a user by ID."""
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def require_user(db: AsyncSession, user_id: int) -> User:
    """Fetch a user by ID or raise NotFound."""
    user = await get_user_by_id(db, user_id)
    if user is None:
        raise NotFound("User not found")
    return user


async def get_user_by_subject(db: AsyncSession, auth_subject: str) -> User | None:
    """Fetch a user by session-provider subject."""
    result = await db.execute(select(User).where(User.auth_subject == auth_subject))
    return result.scalar_one_or_none()


async def get_or_create_user(
    db: AsyncSession,
    auth_subject: str,
    email: str | None = None,
    now: datetime | None = None,
) -> tuple[User, bool]:
    """
    Get existing user or create one on first sight of a session subject.

    The stored email is refreshed when the session provider reports a new one.

    Returns:
        Tuple of (user, created) where created is True if a new user was made.
    """
    user = await get_user_by_subject(db, auth_subject)
    if user is not None:
        if email and user.email != email:
            user.email = email
            await db.commit()
        return user, False

    user = User(
        auth_subject=auth_subject,
        email=email,
        balance_cents=0,
        created_at=now or utcnow(),
    )
    db.add(user)
    await db.commit()
    logger.info("user_created", user_id=user.id)
    return user, True


def normalize_username(username: str) -> str:
    """Trim and validate a username. Raises ValidationError if unusable."""
    normalized = username.strip()
    if not normalized:
        raise ValidationError("Username is required.")
    if not USERNAME_PATTERN.match(normalized):
        raise ValidationError(
            "Username must be 3-16 characters of letters, numbers, and underscores."
        )
    return normalized


async def set_username(db: AsyncSession, user: User, username: str) -> User:
    """Set the display name. Names are unique case-insensitively."""
    normalized = normalize_username(username)

    taken = await db.execute(
        select(User.id).where(
            func.lower(User.username) == normalized.lower(),
            User.id != user.id,
        ).limit(1)
    )
    if taken.scalar_one_or_none() is not None:
        raise ValidationError("Username is already taken.")

    user.username = normalized
    await db.commit()
    return user
