"""Hourly challenge settlement.

Called by arq at minute 0 of every hour, and by the admin trigger.

Settles the hour that just ended:
- no runs: the challenge ends without a winner
- winner not eligible: the challenge ends with the winner recorded, unpaid
- winner eligible: the reward is credited and the challenge becomes ``paid``

A ``paid`` challenge is never touched again. Settlement holds a row lock
on the challenge, checks for an existing ``hourly_challenge`` transaction
referencing it, and commits the credit together with the ``paid`` status.
A partial unique index on that transaction type backs the check.

Afterwards the row for the current hour is created if missing.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import select

from byterunner.balance.service import add_balance
from byterunner.config import get_settings
from byterunner.db.models import BalanceTransaction
from byterunner.fraud.service import HOURLY_WIN_TX_TYPE, is_eligible_for_prize
from byterunner.hourly.service import find_hour_winner, get_or_create_challenge, lock_challenge
from byterunner.time_utils import get_current_hour, get_previous_hour, utcnow

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

OUTCOME_ALREADY_PAID = "already_paid"
OUTCOME_NO_WINNER = "no_winner"
OUTCOME_INELIGIBLE = "ineligible"
OUTCOME_PAID = "paid"
OUTCOME_FAILED = "failed"


async def _reward_exists(db: AsyncSession, challenge_id: int) -> bool:
    result = await db.execute(
        select(BalanceTransaction.id).where(
            BalanceTransaction.type == HOURLY_WIN_TX_TYPE,
            BalanceTransaction.reference_id == str(challenge_id),
        ).limit(1)
    )
    return result.scalar_one_or_none() is not None


async def settle_hour(db: AsyncSession, hour: datetime, now: datetime | None = None) -> str:
    """Settle the challenge for ``hour`` and return the outcome.

    The challenge row is locked for the rest of the transaction and its
    status re-read under the lock, so overlapping passes serialise on it.
    """
    if now is None:
        now = utcnow()

    challenge_id = (await get_or_create_challenge(db, hour, now)).id
    challenge = await lock_challenge(db, challenge_id)
    if challenge is None or challenge.status == "paid":
        await db.rollback()
        logger.info("Hourly challenge %s already paid, skipping", hour.isoformat())
        return OUTCOME_ALREADY_PAID

    winner = await find_hour_winner(db, hour)
    if winner is None:
        challenge.status = "ended"
        challenge.ended_at = now
        await db.commit()
        logger.info("Hourly challenge %s ended with no runs", hour.isoformat())
        return OUTCOME_NO_WINNER

    winner_user_id = winner.user_id
    challenge.winner_user_id = winner_user_id
    challenge.winner_run_id = winner.id
    challenge.winner_score = winner.score
    challenge.winner_distance = winner.distance

    eligibility = await is_eligible_for_prize(db, winner_user_id, now, commit=False)
    if not eligibility.eligible:
        challenge.status = "ended"
        challenge.ended_at = now
        await db.commit()
        logger.warning(
            "Hourly winner %d not eligible for %s: %s (fraud score %d)",
            winner_user_id, hour.isoformat(), eligibility.reason, eligibility.fraud_score,
        )
        return OUTCOME_INELIGIBLE

    if await _reward_exists(db, challenge_id):
        logger.warning("Reward for hourly challenge %d already credited", challenge_id)
    else:
        await add_balance(
            db,
            winner_user_id,
            get_settings().hourly_reward_cents,
            HOURLY_WIN_TX_TYPE,
            reference_id=str(challenge_id),
            description=f"Hourly Challenge Winner - {hour:%Y-%m-%d %H:00} UTC",
            now=now,
            commit=False,
        )

    challenge.status = "paid"
    challenge.ended_at = now
    await db.commit()
    logger.info("Hourly challenge %s paid to user %d", hour.isoformat(), winner_user_id)
    return OUTCOME_PAID


async def process_hourly_challenge(db: AsyncSession, now: datetime | None = None) -> dict[str, Any]:
    """Settle the previous hour, then ensure the current hour's row exists."""
    if now is None:
        now = utcnow()
    previous_hour = get_previous_hour(now)

    try:
        outcome = await settle_hour(db, previous_hour, now)
    except Exception:
        logger.exception("Failed to settle hourly challenge %s", previous_hour.isoformat())
        await db.rollback()
        outcome = OUTCOME_FAILED

    try:
        await get_or_create_challenge(db, get_current_hour(now), now)
    except Exception:
        logger.exception("Failed to create hourly challenge for current hour")
        await db.rollback()

    return {"challenge_hour": previous_hour, "outcome": outcome}
