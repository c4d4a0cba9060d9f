"""Social shares. Every recorded share earns the user one continue token."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import func, select, update

from byterunner.db.models import Run, Share, User
from byterunner.errors import NotFound, ValidationError
from byterunner.time_utils import utcnow

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

CONTINUE_TOKENS_PER_SHARE = 1
MAX_PLATFORM_LENGTH = 32


async def record_share(
    db: AsyncSession,
    user_id: int,
    platform: str,
    score: int | None = None,
    run_id: int | None = None,
    now: datetime | None = None,
) -> Share:
    """
    Store a share and credit a continue token in the same commit.

    Raises:
        ValidationError: Blank or overlong platform name.
        NotFound: ``run_id`` is not one of the user's runs.
    """
    platform = platform.strip().lower()
    if not platform:
        raise ValidationError("Platform is required.")
    if len(platform) > MAX_PLATFORM_LENGTH:
        raise ValidationError(f"Platform must be at most {MAX_PLATFORM_LENGTH} characters.")

    if run_id is not None:
        owned = await db.execute(select(Run.id).where(Run.id == run_id, Run.user_id == user_id))
        if owned.scalar_one_or_none() is None:
            raise NotFound("Run not found.")

    share = Share(
        user_id=user_id,
        run_id=run_id,
        score=score,
        platform=platform,
        created_at=now or utcnow(),
    )
    db.add(share)
    await db.execute(
        update(User)
        .where(User.id == user_id)
        .values(continue_tokens=User.continue_tokens + CONTINUE_TOKENS_PER_SHARE)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    await db.execute(
        select(User).where(User.id == user_id).execution_options(populate_existing=True)
    )

    logger.info("share_recorded", user_id=user_id, platform=platform, share_id=share.id)
    return share


async def get_user_share_count(db: AsyncSession, user_id: int) -> int:
    result = await db.execute(select(func.count(Share.id)).where(Share.user_id == user_id))
    return int(result.scalar_one())
