"""Run lifecycle: start token, validated finish, stats.

``finish_run`` checks, in order: the run token, the per-second rate
ceilings and the username. Only then is the run stored. Entering the new
run into open contests is best-effort: a failed entry is logged and
skipped, the run itself is already committed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from byterunner.config import get_settings
from byterunner.contests.service import enter_contest, get_active_contests
from byterunner.db.models import Run, User
from byterunner.errors import ByteRunnerError, UsernameRequired
from byterunner.leaderboard.service import get_rolling_rank
from byterunner.runs.tokens import issue_run_token, verify_run_token
from byterunner.runs.validator import check_run_rates, effective_duration_ms
from byterunner.time_utils import epoch_ms, utcnow

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()


@dataclass
class FinishedRun:
    id: int
    score: int
    distance: int
    duration_ms: int
    created_at: datetime
    entered_contests: list[str] = field(default_factory=list)


def start_run(user: User, now: datetime | None = None) -> tuple[str, datetime]:
    """Issue a run token for the user. Returns (token, expires_at)."""
    token, expires_at = issue_run_token(user.auth_subject, now)
    logger.info("run_started", user_id=user.id)
    return token, expires_at


async def auto_enter_contests(
    db: AsyncSession,
    user_id: int,
    run_id: int,
    score: int,
    distance: int,
    now: datetime | None = None,
) -> list[str]:
    """Enter a run into every open contest. Returns names of contests entered."""
    try:
        contests = [(c.id, c.name) for c in await get_active_contests(db, now)]
    except SQLAlchemyError:
        logger.exception("auto_entry_lookup_failed", run_id=run_id)
        return []

    entered: list[str] = []
    for contest_id, name in contests:
        try:
            await enter_contest(db, contest_id, user_id, run_id, score, distance, now=now)
        except ByteRunnerError as e:
            logger.info("auto_entry_skipped", contest_id=contest_id, run_id=run_id, reason=e.reason)
            continue
        except SQLAlchemyError:
            await db.rollback()
            logger.exception("auto_entry_failed", contest_id=contest_id, run_id=run_id)
            continue
        entered.append(name)
    return entered


async def finish_run(
    db: AsyncSession,
    user: User,
    run_token: str,
    score: int,
    distance: int,
    duration_ms: int,
    client_version: str | None = None,
    now: datetime | None = None,
) -> FinishedRun:
    """
    Validate and store a finished run.

    Raises:
        InvalidToken: Token bad, expired or issued to someone else.
        RateExceeded: Score or distance implausible for the effective duration.
        UsernameRequired: The user has not picked a display name yet.
    """
    settings = get_settings()
    if now is None:
        now = utcnow()

    started_at_ms = verify_run_token(run_token, user.auth_subject, now)
    duration = effective_duration_ms(duration_ms, started_at_ms, epoch_ms(now))
    check_run_rates(
        score,
        distance,
        duration,
        settings.max_score_per_second,
        settings.max_distance_per_second,
    )

    if not user.username:
        raise UsernameRequired("Username must be set before submitting scores.")

    run = Run(
        user_id=user.id,
        score=score,
        distance=distance,
        duration_ms=duration,
        client_version=client_version,
        created_at=now,
    )
    db.add(run)
    await db.commit()

    user_id, run_id = user.id, run.id
    logger.info("run_finished", user_id=user_id, run_id=run_id, score=score, distance=distance, duration_ms=duration)

    entered = await auto_enter_contests(db, user_id, run_id, score, distance, now)
    if entered:
        logger.info("run_auto_entered", run_id=run_id, contests=entered)
    return FinishedRun(
        id=run_id,
        score=score,
        distance=distance,
        duration_ms=duration,
        created_at=now,
        entered_contests=entered,
    )


async def get_user_stats(db: AsyncSession, user_id: int, now: datetime | None = None) -> dict[str, Any]:
    """Best score and distance, total runs, and rank on the rolling leaderboard."""
    best = await db.execute(
        select(Run.score, Run.distance)
        .where(Run.user_id == user_id)
        .order_by(Run.score.desc(), Run.distance.desc())
        .limit(1)
    )
    best_row = best.one_or_none()

    total = await db.execute(select(func.count()).select_from(Run).where(Run.user_id == user_id))

    return {
        "best_score": best_row.score if best_row else 0,
        "best_distance": best_row.distance if best_row else 0,
        "total_runs": total.scalar_one() or 0,
        "rank": await get_rolling_rank(db, user_id, now),
    }
