"""Balance ledger and withdrawals.

Invariant: ``users.balance_cents`` equals the signed sum of the user's
``balance_transactions`` rows and never goes negative. Every mutation
locks the user row, changes the balance in SQL and appends the matching
transaction inside one database transaction.

Withdrawals debit the balance at submission. Admin review only changes the
withdrawal's status and never touches the balance again.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError

from byterunner.config import get_settings
from byterunner.db.models import BalanceTransaction, User, Withdrawal
from byterunner.errors import (
    BelowMinimum,
    InsufficientBalance,
    LedgerWriteFailed,
    NotEligible,
    NotFound,
    ValidationError,
)
from byterunner.fraud.service import can_withdraw
from byterunner.time_utils import utcnow

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

WITHDRAWAL_STATUSES = {"pending", "approved", "rejected", "paid"}
OUTSTANDING_WITHDRAWAL_STATUSES = ("pending", "approved")
WITHDRAWAL_TX_TYPE = "withdrawal"


def format_cents(cents: int) -> str:
    return f"${cents / 100:.2f}"


async def _lock_balance(db: AsyncSession, user_id: int) -> int:
    """SELECT ... FOR UPDATE the user's balance. Raises NotFound."""
    result = await db.execute(
        select(User.balance_cents).where(User.id == user_id).with_for_update()
    )
    balance = result.scalar_one_or_none()
    if balance is None:
        raise NotFound("User not found")
    return balance


async def _reload_user(db: AsyncSession, user_id: int) -> None:
    """Refresh any loaded User row after a bulk UPDATE."""
    await db.execute(
        select(User).where(User.id == user_id).execution_options(populate_existing=True)
    )


async def add_balance(
    db: AsyncSession,
    user_id: int,
    amount_cents: int,
    tx_type: str,
    reference_id: str | None = None,
    description: str = "",
    now: datetime | None = None,
    commit: bool = True,
) -> BalanceTransaction:
    """
    Apply a signed balance change and append its transaction row.

    With ``commit=False`` the change joins the caller's transaction and is
    only flushed.

    Raises:
        NotFound: Unknown user.
        InsufficientBalance: A debit would make the balance negative.
        LedgerWriteFailed: The datastore rejected the write; nothing was applied.
    """
    if now is None:
        now = utcnow()

    balance = await _lock_balance(db, user_id)
    if balance + amount_cents < 0:
        if commit:
            await db.rollback()
        raise InsufficientBalance(
            f"Insufficient balance. You have {format_cents(balance)}, "
            f"but this requires {format_cents(-amount_cents)}"
        )

    try:
        result = await db.execute(
            update(User)
            .where(User.id == user_id, User.balance_cents + amount_cents >= 0)
            .values(balance_cents=User.balance_cents + amount_cents)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise InsufficientBalance("Insufficient balance.")

        tx = BalanceTransaction(
            user_id=user_id,
            amount_cents=amount_cents,
            type=tx_type,
            reference_id=reference_id,
            description=description,
            created_at=now,
        )
        db.add(tx)
        if commit:
            await db.commit()
        else:
            await db.flush()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.exception("balance_update_failed", user_id=user_id, amount_cents=amount_cents, type=tx_type)
        raise LedgerWriteFailed("Failed to update balance.") from e

    await _reload_user(db, user_id)
    logger.info(
        "balance_updated",
        user_id=user_id,
        amount_cents=amount_cents,
        type=tx_type,
        reference_id=reference_id,
    )
    return tx


async def submit_withdrawal(
    db: AsyncSession,
    user_id: int,
    amount_cents: int,
    payment_method: str,
    contact_info: dict[str, Any],
    now: datetime | None = None,
) -> Withdrawal:
    """
    Debit the balance and file a pending withdrawal.

    The debit, the withdrawal row, the negative ``withdrawal`` transaction
    and ``last_withdrawal_at`` are committed together or not at all.

    Raises:
        BelowMinimum: Amount below ``min_withdrawal_cents``.
        NotEligible: The velocity gate rejected the request.
        InsufficientBalance: Balance lower than the amount.
        LedgerWriteFailed: Datastore failure or a concurrent balance change.
    """
    settings = get_settings()
    if now is None:
        now = utcnow()

    if amount_cents < settings.min_withdrawal_cents:
        raise BelowMinimum(f"Minimum withdrawal is {format_cents(settings.min_withdrawal_cents)}")
    if not payment_method.strip():
        raise ValidationError("Payment method is required.")

    eligibility = await can_withdraw(db, user_id, now)
    if not eligibility.eligible:
        if eligibility.flags == ["user_not_found"]:
            raise NotFound("User not found")
        raise NotEligible(eligibility.reason or "You are not eligible to withdraw at this time.")

    balance = await _lock_balance(db, user_id)
    if balance < amount_cents:
        await db.rollback()
        raise InsufficientBalance(
            f"Insufficient balance. You have {format_cents(balance)}, "
            f"but requested {format_cents(amount_cents)}"
        )

    try:
        # Compare-and-set against the balance read under the lock.
        result = await db.execute(
            update(User)
            .where(User.id == user_id, User.balance_cents == balance)
            .values(balance_cents=balance - amount_cents, last_withdrawal_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            await db.rollback()
            raise LedgerWriteFailed("Balance changed during withdrawal. Please try again.")

        withdrawal = Withdrawal(
            user_id=user_id,
            amount_cents=amount_cents,
            payment_method=payment_method,
            contact_info=contact_info,
            status="pending",
            submitted_at=now,
            created_at=now,
        )
        db.add(withdrawal)
        await db.flush()

        db.add(BalanceTransaction(
            user_id=user_id,
            amount_cents=-amount_cents,
            type=WITHDRAWAL_TX_TYPE,
            reference_id=str(withdrawal.id),
            description=f"Withdrawal request - {payment_method}",
            created_at=now,
        ))
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.exception("withdrawal_failed", user_id=user_id, amount_cents=amount_cents)
        raise LedgerWriteFailed("Failed to submit withdrawal.") from e

    await _reload_user(db, user_id)
    logger.info(
        "withdrawal_submitted",
        user_id=user_id,
        withdrawal_id=withdrawal.id,
        amount_cents=amount_cents,
        payment_method=payment_method,
    )
    return withdrawal


async def get_user_balance(
    db: AsyncSession,
    user_id: int,
    recent_limit: int | None = None,
) -> dict[str, Any]:
    """Balance summary, computed from the ledger tables on every call."""
    if recent_limit is None:
        recent_limit = get_settings().recent_transactions_limit

    found = await db.execute(select(User.balance_cents).where(User.id == user_id))
    balance = found.scalar_one_or_none()
    if balance is None:
        raise NotFound("User not found")

    pending = await db.execute(
        select(func.coalesce(func.sum(Withdrawal.amount_cents), 0)).where(
            Withdrawal.user_id == user_id,
            Withdrawal.status.in_(OUTSTANDING_WITHDRAWAL_STATUSES),
        )
    )
    earned = await db.execute(
        select(func.coalesce(func.sum(BalanceTransaction.amount_cents), 0)).where(
            BalanceTransaction.user_id == user_id,
            BalanceTransaction.amount_cents > 0,
        )
    )

    return {
        "balance_cents": balance,
        "pending_withdrawals_cents": int(pending.scalar_one()),
        "total_earned_cents": int(earned.scalar_one()),
        "transactions": await get_transactions(db, user_id, limit=recent_limit),
    }


async def get_transactions(
    db: AsyncSession,
    user_id: int,
    limit: int = 50,
    offset: int = 0,
) -> list[BalanceTransaction]:
    result = await db.execute(
        select(BalanceTransaction)
        .where(BalanceTransaction.user_id == user_id)
        .order_by(BalanceTransaction.created_at.desc(), BalanceTransaction.id.desc())
        .offset(offset)
        .limit(limit)
    )
    return list(result.scalars().all())


async def get_ledger_sum(db: AsyncSession, user_id: int) -> int:
    """Signed sum of all transactions. Equals the stored balance."""
    result = await db.execute(
        select(func.coalesce(func.sum(BalanceTransaction.amount_cents), 0)).where(
            BalanceTransaction.user_id == user_id
        )
    )
    return int(result.scalar_one())


async def get_withdrawals(db: AsyncSession, user_id: int) -> list[Withdrawal]:
    result = await db.execute(
        select(Withdrawal)
        .where(Withdrawal.user_id == user_id)
        .order_by(Withdrawal.created_at.desc(), Withdrawal.id.desc())
    )
    return list(result.scalars().all())


async def list_withdrawals(db: AsyncSession, status: str | None = None) -> list[Withdrawal]:
    """Admin view of all withdrawals, optionally filtered by status."""
    query = select(Withdrawal)
    if status:
        if status not in WITHDRAWAL_STATUSES:
            raise ValidationError(f"Invalid withdrawal status: {status}")
        query = query.where(Withdrawal.status == status)
    result = await db.execute(query.order_by(Withdrawal.created_at.desc(), Withdrawal.id.desc()))
    return list(result.scalars().all())


async def update_withdrawal_status(
    db: AsyncSession,
    withdrawal_id: int,
    status: str,
    reviewed_by: str,
    notes: str | None = None,
    now: datetime | None = None,
) -> Withdrawal:
    """Record an admin review. The balance is not touched."""
    if status not in WITHDRAWAL_STATUSES:
        raise ValidationError(f"Invalid withdrawal status: {status}")

    result = await db.execute(select(Withdrawal).where(Withdrawal.id == withdrawal_id))
    withdrawal = result.scalar_one_or_none()
    if withdrawal is None:
        raise NotFound("Withdrawal not found")

    withdrawal.status = status
    withdrawal.reviewed_at = now or utcnow()
    withdrawal.reviewed_by = reviewed_by
    withdrawal.notes = notes
    await db.commit()

    logger.info("withdrawal_reviewed", withdrawal_id=withdrawal_id, status=status, reviewed_by=reviewed_by)
    return withdrawal
