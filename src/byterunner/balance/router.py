"""Balance API: own balance, transactions and withdrawals, plus admin review."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from byterunner.auth.dependencies import get_current_user, require_admin
from byterunner.balance.schemas import (
    BalanceResponse,
    TransactionResponse,
    WithdrawalRequest,
    WithdrawalResponse,
    WithdrawalReviewRequest,
)
from byterunner.balance.service import (
    get_transactions,
    get_user_balance,
    get_withdrawals,
    list_withdrawals,
    submit_withdrawal,
    update_withdrawal_status,
)
from byterunner.database import get_session
from byterunner.db.models import User

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/balance", tags=["Balance"])
admin_router = APIRouter(prefix="/api/v1/admin/withdrawals", tags=["Admin"])


@router.get("/me", response_model=BalanceResponse)
async def my_balance(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> BalanceResponse:
    """Current balance, outstanding withdrawals, lifetime earnings and recent activity."""
    summary = await get_user_balance(db, user.id)
    return BalanceResponse(
        balance_cents=summary["balance_cents"],
        pending_withdrawals_cents=summary["pending_withdrawals_cents"],
        total_earned_cents=summary["total_earned_cents"],
        transactions=[TransactionResponse.model_validate(tx) for tx in summary["transactions"]],
    )


@router.get("/transactions", response_model=list[TransactionResponse])
async def my_transactions(
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> list[TransactionResponse]:
    txs = await get_transactions(db, user.id, limit=limit, offset=offset)
    return [TransactionResponse.model_validate(tx) for tx in txs]


@router.post("/withdraw", response_model=WithdrawalResponse, status_code=201)
async def withdraw(
    body: WithdrawalRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> WithdrawalResponse:
    """Request a cash-out. The balance is debited immediately."""
    withdrawal = await submit_withdrawal(
        db,
        user.id,
        amount_cents=body.amount_cents,
        payment_method=body.payment_method,
        contact_info=body.contact_info,
    )
    return WithdrawalResponse.model_validate(withdrawal)


@router.get("/withdrawals", response_model=list[WithdrawalResponse])
async def my_withdrawals(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> list[WithdrawalResponse]:
    return [WithdrawalResponse.model_validate(w) for w in await get_withdrawals(db, user.id)]


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------


@admin_router.get("", response_model=list[WithdrawalResponse])
async def admin_list_withdrawals(
    status: str | None = Query(None),
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> list[WithdrawalResponse]:
    return [WithdrawalResponse.model_validate(w) for w in await list_withdrawals(db, status)]


@admin_router.patch("/{withdrawal_id}", response_model=WithdrawalResponse)
async def admin_review_withdrawal(
    withdrawal_id: int,
    body: WithdrawalReviewRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> WithdrawalResponse:
    """Approve, reject or mark paid. Never changes the balance."""
    reviewer = admin.email or str(admin.id)
    withdrawal = await update_withdrawal_status(db, withdrawal_id, body.status, reviewer, body.notes)
    return WithdrawalResponse.model_validate(withdrawal)
