"""Badge catalogue seed data."""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from byterunner.db.models import Badge
from byterunner.time_utils import utcnow

logger = logging.getLogger(__name__)

BADGE_SEED_DATA: list[dict] = [
    # Social (shares)
    {
        "slug": "advocate",
        "name": "Advocate",
        "description": "Share your first run",
        "emoji": "\U0001F4E3",
        "category": "social",
        "tier": "bronze",
        "requirement_type": "shares",
        "requirement_value": 1,
        "sort_order": 1,
    },
    {
        "slug": "promoter",
        "name": "Promoter",
        "description": "Share 5 runs",
        "emoji": "\U0001F4E2",
        "category": "social",
        "tier": "silver",
        "requirement_type": "shares",
        "requirement_value": 5,
        "sort_order": 2,
    },
    {
        "slug": "influencer",
        "name": "Influencer",
        "description": "Share 15 runs",
        "emoji": "\U0001F31F",
        "category": "social",
        "tier": "gold",
        "requirement_type": "shares",
        "requirement_value": 15,
        "sort_order": 3,
    },
    {
        "slug": "ambassador",
        "name": "Ambassador",
        "description": "Share 50 runs",
        "emoji": "\U0001F451",
        "category": "social",
        "tier": "platinum",
        "requirement_type": "shares",
        "requirement_value": 50,
        "sort_order": 4,
    },
    # Skill (runs)
    {
        "slug": "newbie",
        "name": "Newbie",
        "description": "Finish your first run",
        "emoji": "\U0001F423",
        "category": "skill",
        "tier": "bronze",
        "requirement_type": "runs",
        "requirement_value": 1,
        "sort_order": 5,
    },
    {
        "slug": "regular",
        "name": "Regular",
        "description": "Finish 10 runs",
        "emoji": "\U0001F3C3",
        "category": "skill",
        "tier": "silver",
        "requirement_type": "runs",
        "requirement_value": 10,
        "sort_order": 6,
    },
    {
        "slug": "veteran",
        "name": "Veteran",
        "description": "Finish 50 runs",
        "emoji": "\U0001F396",
        "category": "skill",
        "tier": "gold",
        "requirement_type": "runs",
        "requirement_value": 50,
        "sort_order": 7,
    },
    {
        "slug": "legend",
        "name": "Legend",
        "description": "Finish 100 runs",
        "emoji": "\U0001F3C6",
        "category": "skill",
        "tier": "platinum",
        "requirement_type": "runs",
        "requirement_value": 100,
        "sort_order": 8,
    },
    # Achievements (best score)
    {
        "slug": "score_1k",
        "name": "Byte Sized",
        "description": "Score 1,000 points in a single run",
        "emoji": "\U0001F4BE",
        "category": "achievement",
        "tier": "bronze",
        "requirement_type": "score",
        "requirement_value": 1_000,
        "sort_order": 9,
    },
    {
        "slug": "score_10k",
        "name": "Kilobyte Club",
        "description": "Score 10,000 points in a single run",
        "emoji": "\U0001F4BF",
        "category": "achievement",
        "tier": "silver",
        "requirement_type": "score",
        "requirement_value": 10_000,
        "sort_order": 10,
    },
    {
        "slug": "score_100k",
        "name": "Megabyte Runner",
        "description": "Score 100,000 points in a single run",
        "emoji": "\U0001F680",
        "category": "achievement",
        "tier": "gold",
        "requirement_type": "score",
        "requirement_value": 100_000,
        "sort_order": 11,
    },
    # Contests
    {
        "slug": "champion",
        "name": "Champion",
        "description": "Finish first in a contest",
        "emoji": "\U0001F947",
        "category": "contest",
        "tier": "platinum",
        "requirement_type": "contest_wins",
        "requirement_value": 1,
        "sort_order": 12,
    },
]


async def seed_badges(db: AsyncSession, now: datetime | None = None) -> int:
    """Insert or refresh every catalogue badge by slug. Returns number of badges seeded."""
    existing = {
        badge.slug: badge
        for badge in (await db.execute(select(Badge))).scalars().all()
    }

    seeded = 0
    for badge_data in BADGE_SEED_DATA:
        badge = existing.get(badge_data["slug"])
        if badge is None:
            db.add(Badge(**badge_data, created_at=now or utcnow()))
        else:
            for field, value in badge_data.items():
                setattr(badge, field, value)
        seeded += 1

    await db.commit()
    logger.info("Seeded %d badges", seeded)
    return seeded
