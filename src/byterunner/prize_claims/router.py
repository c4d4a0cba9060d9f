"""Prize claims API."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from byterunner.auth.dependencies import get_current_user, require_admin
from byterunner.database import get_session
from byterunner.db.models import User
from byterunner.prize_claims.schemas import (
    ClaimReviewRequest,
    ClaimSubmitRequest,
    MyPrizeClaimResponse,
    PrizeClaimResponse,
)
from byterunner.prize_claims.service import get_user_claims, submit_claim, update_claim_status

router = APIRouter(prefix="/api/v1/prize-claims", tags=["Prize Claims"])
admin_router = APIRouter(prefix="/api/v1/admin/prize-claims", tags=["Admin"])


@router.get("/me", response_model=list[MyPrizeClaimResponse])
async def my_claims(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> list[MyPrizeClaimResponse]:
    rows = await get_user_claims(db, user.id)
    return [
        MyPrizeClaimResponse(
            **PrizeClaimResponse.model_validate(row["claim"]).model_dump(),
            contest_name=row["contest_name"],
            contest_slug=row["contest_slug"],
        )
        for row in rows
    ]


@router.post("/{claim_id}/submit", response_model=PrizeClaimResponse)
async def submit(
    claim_id: int,
    body: ClaimSubmitRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> PrizeClaimResponse:
    """Provide contact details so the prize can be delivered."""
    claim = await submit_claim(db, claim_id, user.id, body.contact_info)
    return PrizeClaimResponse.model_validate(claim)


@admin_router.patch("/{claim_id}", response_model=PrizeClaimResponse)
async def admin_review_claim(
    claim_id: int,
    body: ClaimReviewRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> PrizeClaimResponse:
    reviewer = admin.email or str(admin.id)
    claim = await update_claim_status(db, claim_id, body.status, reviewer, body.notes)
    return PrizeClaimResponse.model_validate(claim)
