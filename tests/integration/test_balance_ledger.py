"""Integration tests for the balance ledger and withdrawals.

Every scenario ends by checking that the stored balance equals the signed
sum of the user's transactions.
"""

from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy import func, select

from byterunner.balance.service import (
    add_balance,
    get_ledger_sum,
    get_user_balance,
    list_withdrawals,
    submit_withdrawal,
    update_withdrawal_status,
)
from byterunner.db.models import BalanceTransaction, FraudFlag, User, Withdrawal
from byterunner.errors import (
    BelowMinimum,
    InsufficientBalance,
    NotEligible,
    NotFound,
    ValidationError,
)


async def _balance(db, user_id: int) -> int:
    result = await db.execute(select(User.balance_cents).where(User.id == user_id))
    return result.scalar_one()


async def _assert_ledger_consistent(db, user_id: int) -> None:
    assert await _balance(db, user_id) == await get_ledger_sum(db, user_id)


async def _funded_user(db, make_user, cents: int, now):
    user = await make_user()
    await add_balance(db, user.id, cents, "contest_prize", description="seed", now=now - timedelta(days=1))
    return user


class TestAddBalance:
    @pytest.mark.asyncio
    async def test_credit_and_debit(self, db_session, make_user, now):
        user = await make_user()

        tx = await add_balance(db_session, user.id, 250, "hourly_challenge", reference_id="9", now=now)
        await add_balance(db_session, user.id, -100, "adjustment", now=now)

        assert tx.amount_cents == 250
        assert tx.reference_id == "9"
        assert await _balance(db_session, user.id) == 150
        assert user.balance_cents == 150
        await _assert_ledger_consistent(db_session, user.id)

    @pytest.mark.asyncio
    async def test_overdraw_rejected_without_side_effects(self, db_session, make_user, now):
        user = await _funded_user(db_session, make_user, 50, now)
        user_id = user.id

        with pytest.raises(InsufficientBalance):
            await add_balance(db_session, user_id, -51, "adjustment", now=now)

        assert not db_session.in_transaction()
        assert await _balance(db_session, user_id) == 50
        await _assert_ledger_consistent(db_session, user_id)

    @pytest.mark.asyncio
    async def test_unknown_user(self, db_session):
        with pytest.raises(NotFound):
            await add_balance(db_session, 999, 100, "adjustment")


class TestSubmitWithdrawal:
    @pytest.mark.asyncio
    async def test_debits_and_files_pending_withdrawal(self, db_session, make_user, now):
        user = await _funded_user(db_session, make_user, 2_500, now)
        user_id = user.id

        withdrawal = await submit_withdrawal(
            db_session, user_id, 1_000, "paypal", {"email": "runner@example.com"}, now=now
        )

        assert withdrawal.status == "pending"
        assert withdrawal.amount_cents == 1_000
        assert await _balance(db_session, user_id) == 1_500
        last = await db_session.execute(select(User.last_withdrawal_at).where(User.id == user_id))
        assert last.scalar_one() == now

        tx = await db_session.execute(
            select(BalanceTransaction).where(
                BalanceTransaction.user_id == user_id, BalanceTransaction.type == "withdrawal"
            )
        )
        debit = tx.scalar_one()
        assert debit.amount_cents == -1_000
        assert debit.reference_id == str(withdrawal.id)
        await _assert_ledger_consistent(db_session, user_id)

    @pytest.mark.asyncio
    async def test_below_minimum_checked_first(self, db_session, make_user, now):
        user = await make_user(last_withdrawal_at=now - timedelta(days=1))

        with pytest.raises(BelowMinimum, match=r"\$10\.00"):
            await submit_withdrawal(db_session, user.id, 999, "paypal", {}, now=now)

        # The velocity gate never ran, so no flag was written.
        flags = await db_session.execute(select(func.count()).select_from(FraudFlag))
        assert flags.scalar_one() == 0

    @pytest.mark.asyncio
    async def test_second_withdrawal_within_a_week(self, db_session, make_user, now):
        user = await _funded_user(db_session, make_user, 5_000, now)
        user_id = user.id
        await submit_withdrawal(db_session, user_id, 1_000, "paypal", {}, now=now - timedelta(days=2))

        with pytest.raises(NotEligible, match="once per week"):
            await submit_withdrawal(db_session, user_id, 1_000, "paypal", {}, now=now)

        assert await _balance(db_session, user_id) == 4_000
        withdrawals = await db_session.execute(
            select(func.count()).select_from(Withdrawal).where(Withdrawal.user_id == user_id)
        )
        assert withdrawals.scalar_one() == 1
        await _assert_ledger_consistent(db_session, user_id)

    @pytest.mark.asyncio
    async def test_insufficient_balance(self, db_session, make_user, now):
        user = await _funded_user(db_session, make_user, 1_200, now)
        user_id = user.id

        with pytest.raises(InsufficientBalance, match=r"You have \$12\.00"):
            await submit_withdrawal(db_session, user_id, 1_500, "paypal", {}, now=now)

        # The row lock is released with the transaction.
        assert not db_session.in_transaction()
        assert await _balance(db_session, user_id) == 1_200
        await _assert_ledger_consistent(db_session, user_id)

    @pytest.mark.asyncio
    async def test_unknown_user(self, db_session, now):
        with pytest.raises(NotFound):
            await submit_withdrawal(db_session, 31337, 1_000, "paypal", {}, now=now)

    @pytest.mark.asyncio
    async def test_blank_payment_method(self, db_session, make_user, now):
        user = await _funded_user(db_session, make_user, 2_000, now)
        with pytest.raises(ValidationError):
            await submit_withdrawal(db_session, user.id, 1_000, "   ", {}, now=now)


class TestBalanceViews:
    @pytest.mark.asyncio
    async def test_summary_is_derived_from_ledger(self, db_session, make_user, now):
        user = await _funded_user(db_session, make_user, 3_000, now)
        user_id = user.id
        await add_balance(db_session, user_id, 100, "hourly_challenge", now=now)
        withdrawal = await submit_withdrawal(db_session, user_id, 1_000, "paypal", {}, now=now)

        summary = await get_user_balance(db_session, user_id)

        assert summary["balance_cents"] == 2_100
        assert summary["pending_withdrawals_cents"] == 1_000
        assert summary["total_earned_cents"] == 3_100
        assert [tx.type for tx in summary["transactions"]][0] == "withdrawal"

        await update_withdrawal_status(db_session, withdrawal.id, "paid", "admin@example.com", now=now)
        summary = await get_user_balance(db_session, user_id)
        assert summary["pending_withdrawals_cents"] == 0
        assert summary["balance_cents"] == 2_100

    @pytest.mark.asyncio
    async def test_unknown_user(self, db_session):
        with pytest.raises(NotFound):
            await get_user_balance(db_session, 77)


class TestWithdrawalReview:
    @pytest.mark.asyncio
    async def test_review_never_touches_balance(self, db_session, make_user, now):
        user = await _funded_user(db_session, make_user, 2_000, now)
        user_id = user.id
        withdrawal = await submit_withdrawal(db_session, user_id, 1_000, "paypal", {}, now=now)

        reviewed = await update_withdrawal_status(
            db_session, withdrawal.id, "rejected", "admin@example.com", notes="Bad address", now=now
        )

        assert reviewed.status == "rejected"
        assert reviewed.reviewed_by == "admin@example.com"
        assert reviewed.notes == "Bad address"
        assert await _balance(db_session, user_id) == 1_000
        await _assert_ledger_consistent(db_session, user_id)

    @pytest.mark.asyncio
    async def test_invalid_status(self, db_session, make_user, now):
        user = await _funded_user(db_session, make_user, 2_000, now)
        withdrawal = await submit_withdrawal(db_session, user.id, 1_000, "paypal", {}, now=now)
        with pytest.raises(ValidationError):
            await update_withdrawal_status(db_session, withdrawal.id, "lost", "admin@example.com")

    @pytest.mark.asyncio
    async def test_missing_withdrawal(self, db_session):
        with pytest.raises(NotFound):
            await update_withdrawal_status(db_session, 5, "approved", "admin@example.com")

    @pytest.mark.asyncio
    async def test_list_filters_by_status(self, db_session, make_user, now):
        user = await _funded_user(db_session, make_user, 2_000, now)
        await submit_withdrawal(db_session, user.id, 1_000, "paypal", {}, now=now)

        assert len(await list_withdrawals(db_session)) == 1
        assert len(await list_withdrawals(db_session, "pending")) == 1
        assert await list_withdrawals(db_session, "paid") == []
        with pytest.raises(ValidationError):
            await list_withdrawals(db_session, "bogus")
