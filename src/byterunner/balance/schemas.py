"""Pydantic schemas for balance and withdrawal endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class TransactionResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: int
    amount_cents: int
    type: str
    reference_id: str | None
    description: str
    created_at: datetime


class BalanceResponse(BaseModel):
    balance_cents: int
    pending_withdrawals_cents: int
    total_earned_cents: int
    transactions: list[TransactionResponse]


class WithdrawalRequest(BaseModel):
    amount_cents: int = Field(..., ge=0)
    payment_method: str = Field(..., min_length=1, max_length=32)
    contact_info: dict[str, Any]


class WithdrawalResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: int
    user_id: int
    amount_cents: int
    payment_method: str
    contact_info: dict[str, Any]
    status: str
    submitted_at: datetime
    reviewed_at: datetime | None
    reviewed_by: str | None
    notes: str | None


class WithdrawalReviewRequest(BaseModel):
    status: str
    notes: str | None = None
