"""Prize claims owed to contest winners.

Claims are created by contest settlement only. The winner then submits
contact details (pending -> submitted) and an admin reviews the claim.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import select

from byterunner.db.models import Contest, PrizeClaim
from byterunner.errors import NotFound, ValidationError
from byterunner.time_utils import utcnow

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

CLAIM_STATUSES = {"pending", "submitted", "approved", "rejected", "paid"}


async def create_prize_claim(
    db: AsyncSession,
    contest_id: int,
    user_id: int,
    rank: int,
    prize_description: str,
    now: datetime | None = None,
    commit: bool = True,
) -> PrizeClaim:
    """Insert a pending claim.

    Callers check for an existing claim first. The (contest, user) unique
    constraint rejects a duplicate that slips past the check.
    """
    claim = PrizeClaim(
        contest_id=contest_id,
        user_id=user_id,
        rank=rank,
        prize_description=prize_description,
        claim_status="pending",
        created_at=now or utcnow(),
    )
    db.add(claim)
    if commit:
        await db.commit()
    else:
        await db.flush()
    return claim


async def get_claim(db: AsyncSession, claim_id: int) -> PrizeClaim | None:
    result = await db.execute(select(PrizeClaim).where(PrizeClaim.id == claim_id))
    return result.scalar_one_or_none()


async def get_user_claim_for_contest(db: AsyncSession, contest_id: int, user_id: int) -> PrizeClaim | None:
    result = await db.execute(
        select(PrizeClaim)
        .where(PrizeClaim.contest_id == contest_id, PrizeClaim.user_id == user_id)
        .order_by(PrizeClaim.id)
        .limit(1)
    )
    return result.scalar_one_or_none()


async def get_user_claims(db: AsyncSession, user_id: int) -> list[dict[str, Any]]:
    """The user's claims, newest first, with the contest name and slug."""
    result = await db.execute(
        select(PrizeClaim, Contest.name, Contest.slug)
        .join(Contest, Contest.id == PrizeClaim.contest_id)
        .where(PrizeClaim.user_id == user_id)
        .order_by(PrizeClaim.created_at.desc(), PrizeClaim.id.desc())
    )
    return [
        {"claim": claim, "contest_name": name, "contest_slug": slug}
        for claim, name, slug in result.all()
    ]


async def submit_claim(
    db: AsyncSession,
    claim_id: int,
    user_id: int,
    contact_info: dict[str, Any],
    now: datetime | None = None,
) -> PrizeClaim:
    """Attach contact details to a pending claim owned by ``user_id``."""
    claim = await get_claim(db, claim_id)
    if claim is None or claim.user_id != user_id:
        raise NotFound("Prize claim not found.")
    if claim.claim_status != "pending":
        raise ValidationError("Prize claim has already been submitted.")

    claim.contact_info = contact_info
    claim.claim_status = "submitted"
    claim.submitted_at = now or utcnow()
    await db.commit()

    logger.info("prize_claim_submitted", claim_id=claim_id, user_id=user_id)
    return claim


async def update_claim_status(
    db: AsyncSession,
    claim_id: int,
    status: str,
    reviewed_by: str,
    notes: str | None = None,
    now: datetime | None = None,
) -> PrizeClaim:
    """Admin review of a claim."""
    if status not in CLAIM_STATUSES:
        raise ValidationError(f"Invalid claim status: {status}")

    claim = await get_claim(db, claim_id)
    if claim is None:
        raise NotFound("Prize claim not found.")

    claim.claim_status = status
    claim.reviewed_at = now or utcnow()
    claim.reviewed_by = reviewed_by
    if notes is not None:
        claim.notes = notes
    await db.commit()

    logger.info("prize_claim_reviewed", claim_id=claim_id, status=status, reviewed_by=reviewed_by)
    return claim
