"""Admin fraud report."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from byterunner.auth.dependencies import require_admin
from byterunner.database import get_session
from byterunner.db.models import User
from byterunner.fraud.schemas import EligibilityResponse, FraudFlagResponse, UserFraudReportResponse
from byterunner.fraud.service import (
    calculate_fraud_score,
    evaluate_prize_eligibility,
    evaluate_withdrawal,
    get_user_fraud_flags,
)
from byterunner.time_utils import utcnow
from byterunner.users.service import require_user

router = APIRouter(prefix="/api/v1/admin/fraud", tags=["Admin"])


@router.get("/users/{user_id}", response_model=UserFraudReportResponse)
async def user_fraud_report(
    user_id: int,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> UserFraudReportResponse:
    """Current score, recent flags and a dry run of both gates (no flags written)."""
    await require_user(db, user_id)
    now = utcnow()
    prize = await evaluate_prize_eligibility(db, user_id, now)
    withdrawal = await evaluate_withdrawal(db, user_id, now)
    flags = await get_user_fraud_flags(db, user_id)

    return UserFraudReportResponse(
        user_id=user_id,
        fraud_score=await calculate_fraud_score(db, user_id, now),
        prize_eligibility=EligibilityResponse(**prize.to_dict()),
        withdrawal_eligibility=EligibilityResponse(**withdrawal.to_dict()),
        flags=[FraudFlagResponse.model_validate(f) for f in flags],
    )
