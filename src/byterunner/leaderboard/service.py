"""Rolling leaderboard over the most recent runs."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from sqlalchemy import select

from byterunner.config import get_settings
from byterunner.db.models import Badge, Run, User
from byterunner.ranking import find_user_rank, rank_entries
from byterunner.time_utils import utcnow

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

MAX_LIMIT = 100


async def _window_entries(db: AsyncSession, now: datetime) -> list[dict[str, Any]]:
    since = now - timedelta(hours=get_settings().leaderboard_window_hours)
    result = await db.execute(
        select(Run.user_id, Run.score, Run.distance, Run.created_at, User.username, Badge.emoji)
        .join(User, User.id == Run.user_id)
        .outerjoin(Badge, Badge.slug == User.featured_badge)
        .where(Run.created_at >= since)
        .order_by(Run.created_at.asc(), Run.id.asc())
    )
    return [
        {
            "user_id": row.user_id,
            "username": row.username or "Unknown",
            "score": row.score,
            "distance": row.distance,
            "created_at": row.created_at,
            "badge_emoji": row.emoji,
        }
        for row in result.all()
    ]


async def get_rolling_leaderboard(
    db: AsyncSession,
    limit: int = 50,
    now: datetime | None = None,
) -> list[dict[str, Any]]:
    """Best run per user within ``leaderboard_window_hours``. Limit is clamped to 1..100."""
    if now is None:
        now = utcnow()
    limit = max(1, min(limit, MAX_LIMIT))
    return rank_entries(await _window_entries(db, now), limit=limit)


async def get_rolling_rank(db: AsyncSession, user_id: int, now: datetime | None = None) -> int | None:
    """User's position on the full rolling leaderboard, or None if they have no recent run."""
    if now is None:
        now = utcnow()
    return find_user_rank(rank_entries(await _window_entries(db, now)), user_id)
