"""Pydantic schemas for prize claim endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel


class PrizeClaimResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: int
    contest_id: int
    user_id: int
    rank: int
    prize_description: str
    claim_status: str
    contact_info: dict[str, Any] | None
    submitted_at: datetime | None
    reviewed_at: datetime | None
    reviewed_by: str | None
    notes: str | None
    created_at: datetime


class MyPrizeClaimResponse(PrizeClaimResponse):
    contest_name: str
    contest_slug: str


class ClaimSubmitRequest(BaseModel):
    contact_info: dict[str, Any]


class ClaimReviewRequest(BaseModel):
    status: str
    notes: str | None = None
