"""Hourly challenge reads.

A challenge covers one wall-clock hour [hour, hour + 1h). Its leaderboard
is computed from the runs created in that window.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from byterunner.db.models import HourlyChallenge, Run, User
from byterunner.ranking import rank_entries
from byterunner.time_utils import get_current_hour, get_hour_window, truncate_to_hour, utcnow

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

MY_ENTRIES_LIMIT = 10


async def get_challenge_for_hour(db: AsyncSession, hour: datetime) -> HourlyChallenge | None:
    result = await db.execute(
        select(HourlyChallenge)
        .where(HourlyChallenge.challenge_hour == truncate_to_hour(hour))
        .order_by(HourlyChallenge.id)
        .limit(1)
    )
    return result.scalar_one_or_none()


async def get_current_challenge(db: AsyncSession, now: datetime | None = None) -> HourlyChallenge | None:
    return await get_challenge_for_hour(db, get_current_hour(now))


async def get_or_create_challenge(
    db: AsyncSession,
    hour: datetime,
    now: datetime | None = None,
) -> HourlyChallenge:
    """Fetch the challenge row for an hour, creating it as ``active`` if absent.

    ``challenge_hour`` is unique, so a concurrent creator makes this fall
    back to the row that won.
    """
    challenge = await get_challenge_for_hour(db, hour)
    if challenge is not None:
        return challenge

    challenge = HourlyChallenge(
        challenge_hour=truncate_to_hour(hour),
        status="active",
        created_at=now or utcnow(),
    )
    db.add(challenge)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        existing = await get_challenge_for_hour(db, hour)
        if existing is None:
            raise
        return existing
    return challenge


async def lock_challenge(db: AsyncSession, challenge_id: int) -> HourlyChallenge | None:
    """SELECT ... FOR UPDATE a challenge row, refreshing any loaded copy."""
    result = await db.execute(
        select(HourlyChallenge)
        .where(HourlyChallenge.id == challenge_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def find_hour_winner(db: AsyncSession, hour: datetime) -> Run | None:
    """Highest-scoring run created in the hour. Distance breaks ties, then the earlier run."""
    start, end = get_hour_window(hour)
    result = await db.execute(
        select(Run)
        .where(Run.created_at >= start, Run.created_at < end)
        .order_by(Run.score.desc(), Run.distance.desc(), Run.created_at.asc(), Run.id.asc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def get_hour_leaderboard(
    db: AsyncSession,
    hour: datetime,
    limit: int = 10,
) -> list[dict[str, Any]]:
    """Best run per user in the hour, ranked."""
    start, end = get_hour_window(hour)
    result = await db.execute(
        select(Run.id, Run.user_id, Run.score, Run.distance, Run.created_at, User.username)
        .join(User, User.id == Run.user_id)
        .where(Run.created_at >= start, Run.created_at < end)
        .order_by(Run.created_at.asc(), Run.id.asc())
    )
    entries = [
        {
            "run_id": row.id,
            "user_id": row.user_id,
            "username": row.username or "Anonymous",
            "score": row.score,
            "distance": row.distance,
            "created_at": row.created_at,
        }
        for row in result.all()
    ]
    return rank_entries(entries, limit=limit)


async def get_user_entries_for_hour(db: AsyncSession, user_id: int, hour: datetime) -> list[Run]:
    """The user's top runs within the hour."""
    start, end = get_hour_window(hour)
    result = await db.execute(
        select(Run)
        .where(Run.user_id == user_id, Run.created_at >= start, Run.created_at < end)
        .order_by(Run.score.desc(), Run.distance.desc(), Run.id.asc())
        .limit(MY_ENTRIES_LIMIT)
    )
    return list(result.scalars().all())


async def list_challenges(db: AsyncSession, limit: int = 50) -> list[HourlyChallenge]:
    """Most recent challenges first (admin)."""
    result = await db.execute(
        select(HourlyChallenge)
        .order_by(HourlyChallenge.challenge_hour.desc(), HourlyChallenge.id.desc())
        .limit(limit)
    )
    return list(result.scalars().all())
