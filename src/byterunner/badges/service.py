"""Badge awards with duplicate prevention.

Badges are earned by crossing a threshold on one of a user's stats:
shares, finished runs, best single-run score or contest wins (rank 1
prize claims). ``special`` badges are never awarded automatically.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from byterunner.db.models import Badge, PrizeClaim, Run, User, UserBadge
from byterunner.errors import NotFound, ValidationError
from byterunner.shares.service import get_user_share_count
from byterunner.time_utils import utcnow

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()


async def get_all_badges(db: AsyncSession) -> list[Badge]:
    """The catalogue, easiest first."""
    result = await db.execute(
        select(Badge).order_by(Badge.requirement_value.asc(), Badge.sort_order.asc())
    )
    return list(result.scalars().all())


async def get_badge_by_slug(db: AsyncSession, slug: str) -> Badge | None:
    result = await db.execute(select(Badge).where(Badge.slug == slug))
    return result.scalar_one_or_none()


async def has_badge(db: AsyncSession, user_id: int, badge_id: int) -> bool:
    result = await db.execute(
        select(UserBadge.id).where(
            UserBadge.user_id == user_id,
            UserBadge.badge_id == badge_id,
        )
    )
    return result.scalar_one_or_none() is not None


async def get_user_badges(db: AsyncSession, user_id: int) -> list[UserBadge]:
    """Badges the user has earned, newest first, with the badge loaded."""
    result = await db.execute(
        select(UserBadge)
        .where(UserBadge.user_id == user_id)
        .order_by(UserBadge.earned_at.desc(), UserBadge.id.desc())
    )
    return list(result.unique().scalars().all())


async def award_badge(
    db: AsyncSession,
    user_id: int,
    badge_slug: str,
    now: datetime | None = None,
) -> UserBadge | None:
    """Award a badge to a user.

    Returns the new row, or None if the badge is unknown or already earned.
    """
    badge = await get_badge_by_slug(db, badge_slug)
    if badge is None:
        logger.warning("badge_not_found", badge=badge_slug)
        return None

    if await has_badge(db, user_id, badge.id):
        return None

    user_badge = UserBadge(user_id=user_id, badge_id=badge.id, earned_at=now or utcnow())
    db.add(user_badge)
    try:
        await db.commit()
    except IntegrityError:
        # Awarded concurrently.
        await db.rollback()
        return None

    logger.info("badge_awarded", user_id=user_id, badge=badge_slug)
    return user_badge


async def get_badge_progress(db: AsyncSession, user_id: int) -> dict[str, int]:
    """Current value of every stat a badge can require."""
    runs = await db.execute(
        select(func.count(Run.id), func.coalesce(func.max(Run.score), 0)).where(Run.user_id == user_id)
    )
    run_count, best_score = runs.one()
    wins = await db.execute(
        select(func.count(PrizeClaim.id)).where(PrizeClaim.user_id == user_id, PrizeClaim.rank == 1)
    )
    return {
        "shares": await get_user_share_count(db, user_id),
        "runs": int(run_count),
        "score": int(best_score),
        "contest_wins": int(wins.scalar_one()),
    }


async def check_and_award_badges(
    db: AsyncSession,
    user_id: int,
    now: datetime | None = None,
) -> list[str]:
    """Award every catalogue badge whose threshold the user has reached.

    Returns:
        Slugs of the badges awarded by this call.
    """
    progress = await get_badge_progress(db, user_id)
    candidates = [
        badge.slug
        for badge in await get_all_badges(db)
        if badge.requirement_type in progress and progress[badge.requirement_type] >= badge.requirement_value
    ]

    awarded = []
    for slug in candidates:
        if await award_badge(db, user_id, slug, now) is not None:
            awarded.append(slug)
    return awarded


async def set_featured_badge(db: AsyncSession, user: User, badge_slug: str) -> User:
    """Show an earned badge next to the user's name on leaderboards."""
    badge = await get_badge_by_slug(db, badge_slug)
    if badge is None:
        raise NotFound("Badge not found.")
    if not await has_badge(db, user.id, badge.id):
        raise ValidationError("You have not earned this badge.")

    user.featured_badge = badge.slug
    await db.commit()
    return user
