"""Additive, time-windowed fraud scoring.

A user's fraud score is the sum of severities of their fraud flags created
in the trailing window (7 days by default). Scores are always recomputed
from raw flag rows.

Eligibility checks are split in two steps:

1. Pure ``check_*`` functions turn already-fetched signals into an
   ``EligibilityResult``. A rejecting check may attach a ``FlagSpec``
   describing the flag it wants written.
2. The service entry points (``is_eligible_for_prize``, ``can_withdraw``)
   fetch signals lazily in check order and persist the attached flag.

A written flag raises future scores even though the decision that wrote it
was made with the score from before it existed.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import func, select

from byterunner.config import Settings, get_settings
from byterunner.db.models import BalanceTransaction, FraudFlag, Run, User
from byterunner.time_utils import start_of_day, utcnow

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

HOURLY_WIN_TX_TYPE = "hourly_challenge"

FLAG_NEW_ACCOUNT = "new_account"
FLAG_MULTIPLE_WINS = "multiple_wins"
FLAG_RAPID_WITHDRAWAL = "rapid_withdrawal"

SEVERITY_NEW_ACCOUNT = 2
SEVERITY_MULTIPLE_WINS = 3
SEVERITY_RAPID_WITHDRAWAL = 2

USER_NOT_FOUND_SCORE = 10


@dataclass(frozen=True)
class FlagSpec:
    """A fraud flag a check decided to record."""

    flag_type: str
    severity: int
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class EligibilityResult:
    eligible: bool
    fraud_score: int
    flags: list[str]
    reason: str | None = None
    flag: FlagSpec | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "eligible": self.eligible,
            "fraud_score": self.fraud_score,
            "flags": list(self.flags),
        }
        if self.reason is not None:
            data["reason"] = self.reason
        return data


def user_not_found() -> EligibilityResult:
    return EligibilityResult(
        eligible=False,
        fraud_score=USER_NOT_FOUND_SCORE,
        flags=["user_not_found"],
        reason="User not found",
    )


# ---------------------------------------------------------------------------
# Pure checks
# ---------------------------------------------------------------------------


def check_account_age(created_at: datetime, now: datetime, settings: Settings) -> EligibilityResult | None:
    """Reject accounts younger than min_account_age_hours. Boundary is inclusive."""
    age = now - created_at
    if age >= timedelta(hours=settings.min_account_age_hours):
        return None

    age_hours = age.total_seconds() / 3600
    return EligibilityResult(
        eligible=False,
        fraud_score=SEVERITY_NEW_ACCOUNT,
        flags=[FLAG_NEW_ACCOUNT],
        reason=(
            f"Account must be at least {settings.min_account_age_hours} hours old. "
            f"Your account is {round(age_hours)} hours old."
        ),
        flag=FlagSpec(FLAG_NEW_ACCOUNT, SEVERITY_NEW_ACCOUNT, {"account_age_hours": round(age_hours, 1)}),
    )


def check_min_runs(run_count: int, settings: Settings) -> EligibilityResult | None:
    """Reject users with fewer than min_runs_for_prize completed runs."""
    if run_count >= settings.min_runs_for_prize:
        return None
    return EligibilityResult(
        eligible=False,
        fraud_score=1,
        flags=["insufficient_runs"],
        reason=(
            f"You must complete at least {settings.min_runs_for_prize} games to be eligible. "
            f"You have {run_count} games."
        ),
    )


def check_daily_wins(wins_today: int, day_start: datetime, settings: Settings) -> EligibilityResult | None:
    """Reject users who already hit the daily hourly-win cap."""
    if wins_today < settings.max_daily_wins:
        return None
    return EligibilityResult(
        eligible=False,
        fraud_score=SEVERITY_MULTIPLE_WINS,
        flags=["multiple_wins_today"],
        reason=(
            f"Maximum {settings.max_daily_wins} wins per day reached. "
            f"You've won {wins_today} times today. Try again tomorrow!"
        ),
        flag=FlagSpec(
            FLAG_MULTIPLE_WINS,
            SEVERITY_MULTIPLE_WINS,
            {"wins_today": wins_today, "date": day_start.isoformat()},
        ),
    )


def score_recent_flags(recent_flags: list[tuple[str, int]], settings: Settings) -> EligibilityResult:
    """Final check: sum recent severities against the threshold.

    ``recent_flags`` is a list of (flag_type, severity) inside the window.
    """
    fraud_score = sum(severity for _, severity in recent_flags)
    flags = [flag_type for flag_type, _ in recent_flags]

    if fraud_score >= settings.fraud_score_threshold:
        return EligibilityResult(
            eligible=False,
            fraud_score=fraud_score,
            flags=flags,
            reason="Your account has been flagged for suspicious activity. Please contact support.",
        )
    return EligibilityResult(eligible=True, fraud_score=fraud_score, flags=flags)


def check_withdrawal_velocity(
    last_withdrawal_at: datetime | None,
    now: datetime,
    settings: Settings,
) -> EligibilityResult:
    """Allow one withdrawal per cooldown window. Boundary is inclusive."""
    if last_withdrawal_at is None:
        return EligibilityResult(eligible=True, fraud_score=0, flags=[])

    elapsed = now - last_withdrawal_at
    cooldown = timedelta(days=settings.withdrawal_cooldown_days)
    if elapsed >= cooldown:
        return EligibilityResult(eligible=True, fraud_score=0, flags=[])

    days_since = elapsed.total_seconds() / 86400
    days_remaining = max(1, math.ceil(settings.withdrawal_cooldown_days - days_since))
    plural = "s" if days_remaining > 1 else ""
    return EligibilityResult(
        eligible=False,
        fraud_score=SEVERITY_RAPID_WITHDRAWAL,
        flags=[FLAG_RAPID_WITHDRAWAL],
        reason=f"You can only withdraw once per week. Please wait {days_remaining} more day{plural}.",
        flag=FlagSpec(
            FLAG_RAPID_WITHDRAWAL,
            SEVERITY_RAPID_WITHDRAWAL,
            {"days_since_last_withdrawal": round(days_since, 1)},
        ),
    )


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


async def count_runs(db: AsyncSession, user_id: int) -> int:
    result = await db.execute(select(func.count()).select_from(Run).where(Run.user_id == user_id))
    return result.scalar_one() or 0


async def count_wins_since(db: AsyncSession, user_id: int, since: datetime) -> int:
    """Count hourly-challenge payouts credited since the given instant."""
    result = await db.execute(
        select(func.count()).select_from(BalanceTransaction).where(
            BalanceTransaction.user_id == user_id,
            BalanceTransaction.type == HOURLY_WIN_TX_TYPE,
            BalanceTransaction.created_at >= since,
        )
    )
    return result.scalar_one() or 0


async def get_recent_flags(
    db: AsyncSession,
    user_id: int,
    now: datetime | None = None,
) -> list[tuple[str, int]]:
    """(flag_type, severity) for flags with created_at >= now - window."""
    settings = get_settings()
    if now is None:
        now = utcnow()
    since = now - timedelta(days=settings.fraud_window_days)
    result = await db.execute(
        select(FraudFlag.flag_type, FraudFlag.severity)
        .where(FraudFlag.user_id == user_id, FraudFlag.created_at >= since)
        .order_by(FraudFlag.created_at.asc())
    )
    return [(row.flag_type, row.severity) for row in result.all()]


async def calculate_fraud_score(db: AsyncSession, user_id: int, now: datetime | None = None) -> int:
    """Current fraud score: sum of severities inside the trailing window."""
    return sum(severity for _, severity in await get_recent_flags(db, user_id, now))


async def get_user_fraud_flags(db: AsyncSession, user_id: int, limit: int = 50) -> list[FraudFlag]:
    """Most recent flags for a user (admin view)."""
    result = await db.execute(
        select(FraudFlag)
        .where(FraudFlag.user_id == user_id)
        .order_by(FraudFlag.created_at.desc(), FraudFlag.id.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def record_flag(
    db: AsyncSession,
    user_id: int,
    flag_spec: FlagSpec,
    reference_id: str | None = None,
    now: datetime | None = None,
    commit: bool = True,
) -> FraudFlag:
    """Append a fraud flag. With ``commit=False`` it is only flushed."""
    flag = FraudFlag(
        user_id=user_id,
        flag_type=flag_spec.flag_type,
        severity=flag_spec.severity,
        reference_id=reference_id,
        flag_metadata=dict(flag_spec.metadata),
        created_at=now or utcnow(),
    )
    db.add(flag)
    if commit:
        await db.commit()
    else:
        await db.flush()
    logger.warning(
        "fraud_flag_recorded",
        user_id=user_id,
        flag_type=flag_spec.flag_type,
        severity=flag_spec.severity,
    )
    return flag


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------


async def evaluate_prize_eligibility(
    db: AsyncSession,
    user_id: int,
    now: datetime | None = None,
) -> EligibilityResult:
    """Gather signals and evaluate prize eligibility without writing anything.

    Checks run in order and stop at the first rejection:
    account age, minimum runs, daily win cap, recent flag score.
    """
    settings = get_settings()
    if now is None:
        now = utcnow()

    created = await db.execute(select(User.created_at).where(User.id == user_id))
    created_at = created.scalar_one_or_none()
    if created_at is None:
        return user_not_found()

    result = check_account_age(created_at, now, settings)
    if result is None:
        result = check_min_runs(await count_runs(db, user_id), settings)
    if result is None:
        day_start = start_of_day(now)
        result = check_daily_wins(await count_wins_since(db, user_id, day_start), day_start, settings)
    if result is None:
        result = score_recent_flags(await get_recent_flags(db, user_id, now), settings)
    return result


async def is_eligible_for_prize(
    db: AsyncSession,
    user_id: int,
    now: datetime | None = None,
    commit: bool = True,
) -> EligibilityResult:
    """Decide whether a user may receive a payout.

    A rejection that carries a flag has it written before returning. With
    ``commit=False`` the flag joins the caller's transaction.
    """
    if now is None:
        now = utcnow()
    result = await evaluate_prize_eligibility(db, user_id, now)

    if result.flag is not None:
        await record_flag(db, user_id, result.flag, now=now, commit=commit)

    if result.eligible:
        logger.info("prize_eligibility_passed", user_id=user_id, fraud_score=result.fraud_score)
    else:
        logger.warning(
            "prize_eligibility_failed",
            user_id=user_id,
            fraud_score=result.fraud_score,
            reason=result.reason,
        )
    return result


async def evaluate_withdrawal(
    db: AsyncSession,
    user_id: int,
    now: datetime | None = None,
) -> EligibilityResult:
    """Velocity evaluation without writing anything."""
    if now is None:
        now = utcnow()
    found = await db.execute(select(User.id, User.last_withdrawal_at).where(User.id == user_id))
    row = found.one_or_none()
    if row is None:
        return user_not_found()
    return check_withdrawal_velocity(row.last_withdrawal_at, now, get_settings())


async def can_withdraw(
    db: AsyncSession,
    user_id: int,
    now: datetime | None = None,
) -> EligibilityResult:
    """Velocity gate on withdrawals: at most one per cooldown window."""
    if now is None:
        now = utcnow()
    result = await evaluate_withdrawal(db, user_id, now)
    if result.flag is not None:
        await record_flag(db, user_id, result.flag, now=now)
    return result
