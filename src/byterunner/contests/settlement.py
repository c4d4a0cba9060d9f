"""Contest lifecycle reconciliation.

Called by the arq cron job every few minutes and by the admin trigger.
Each pass:

1. starts upcoming contests whose start time has passed,
2. settles active contests whose end time has passed (prize claims for
   every ranked entrant the prize pool pays, then ``ended``),
3. re-scans ended contests for missing prize claims.

Settling or recovering a contest locks its row first and re-reads it, and
every claim is existence-checked under that lock, so concurrent or
repeated passes create at most one claim per (contest, user). A unique
constraint on prize claims backs the check. Each contest is handled inside its
own error boundary and a failure is retried on the next pass.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING

from byterunner.contests.prizes import get_prize_for_rank
from byterunner.contests.service import (
    compute_contest_leaderboard,
    get_contest,
    get_contests_to_start,
    get_ended_contests,
    get_expired_active_contests,
    lock_contest,
    set_contest_status,
)
from byterunner.prize_claims.service import create_prize_claim, get_user_claim_for_contest
from byterunner.time_utils import utcnow

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


async def ensure_prize_claims(
    db: AsyncSession,
    contest_id: int,
    prize_pool: dict[str, str] | None,
    now: datetime | None = None,
) -> int:
    """Create the missing prize claims for a contest. Does not commit.

    Returns:
        Number of claims created.
    """
    if not prize_pool:
        return 0

    ranked = await compute_contest_leaderboard(db, contest_id)
    created = 0
    for entry in ranked:
        prize = get_prize_for_rank(prize_pool, entry["rank"])
        if prize is None:
            continue
        existing = await get_user_claim_for_contest(db, contest_id, entry["user_id"])
        if existing is not None:
            continue
        await create_prize_claim(
            db, contest_id, entry["user_id"], entry["rank"], prize, now=now, commit=False,
        )
        created += 1
        logger.info(
            "Prize claim for user %d in contest %d (rank %d, prize %r)",
            entry["user_id"], contest_id, entry["rank"], prize,
        )
    return created


async def start_upcoming_contests(db: AsyncSession, now: datetime | None = None) -> int:
    """Move due upcoming contests to active. Returns how many started."""
    if now is None:
        now = utcnow()
    due = [c.id for c in await get_contests_to_start(db, now)]

    started = 0
    for contest_id in due:
        try:
            contest = await get_contest(db, contest_id)
            if contest is None or contest.status != "upcoming":
                continue
            set_contest_status(contest, "active", now)
            await db.commit()
            started += 1
            logger.info("Started contest %d", contest_id)
        except Exception:
            logger.exception("Failed to start contest %d", contest_id)
            await db.rollback()
    return started


async def finish_contest(db: AsyncSession, contest_id: int, now: datetime | None = None) -> int | None:
    """Settle one expired active contest.

    Prize claims and the ``ended`` transition commit together.

    Returns:
        Claims created, or None if the contest was not active.
    """
    if now is None:
        now = utcnow()
    contest = await lock_contest(db, contest_id)
    if contest is None or contest.status != "active":
        await db.rollback()
        return None

    created = await ensure_prize_claims(db, contest_id, contest.prize_pool, now)
    set_contest_status(contest, "ended", now)
    await db.commit()
    logger.info("Finished contest %d, created %d prize claims", contest_id, created)
    return created


async def finish_expired_contests(db: AsyncSession, now: datetime | None = None) -> tuple[int, int]:
    """Settle every active contest past its end. Returns (finished, claims_created)."""
    if now is None:
        now = utcnow()
    expired = [c.id for c in await get_expired_active_contests(db, now)]

    finished = claims = 0
    for contest_id in expired:
        try:
            created = await finish_contest(db, contest_id, now)
        except Exception:
            logger.exception("Failed to finish contest %d", contest_id)
            await db.rollback()
            continue
        if created is not None:
            finished += 1
            claims += created
    return finished, claims


async def recover_ended_contests(db: AsyncSession, now: datetime | None = None) -> int:
    """Create prize claims missing from already-ended contests. Returns claims created."""
    if now is None:
        now = utcnow()
    ended = [c.id for c in await get_ended_contests(db)]

    recovered = 0
    for contest_id in ended:
        try:
            contest = await lock_contest(db, contest_id)
            if contest is None or contest.status != "ended":
                await db.rollback()
                continue
            created = await ensure_prize_claims(db, contest_id, contest.prize_pool, now)
            await db.commit()
            if created:
                logger.warning("Recovered %d missing prize claims for contest %d", created, contest_id)
            recovered += created
        except Exception:
            logger.exception("Failed to recover prize claims for contest %d", contest_id)
            await db.rollback()
    return recovered


async def check_and_update_contests(db: AsyncSession, now: datetime | None = None) -> dict[str, int]:
    """Run one full reconciliation pass and return a summary."""
    if now is None:
        now = utcnow()

    started = await start_upcoming_contests(db, now)
    finished, claims_created = await finish_expired_contests(db, now)
    recovered = await recover_ended_contests(db, now)

    summary = {
        "started": started,
        "finished": finished,
        "claims_created": claims_created,
        "claims_recovered": recovered,
    }
    logger.info("Contest reconciliation: %s", summary)
    return summary
