"""Pydantic schemas for the fraud admin view."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, Field


class FraudFlagResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: int
    flag_type: str
    severity: int
    reference_id: str | None
    metadata: dict[str, Any] = Field(validation_alias=AliasChoices("flag_metadata", "metadata"))
    created_at: datetime


class EligibilityResponse(BaseModel):
    eligible: bool
    fraud_score: int
    flags: list[str]
    reason: str | None = None


class UserFraudReportResponse(BaseModel):
    user_id: int
    fraud_score: int
    prize_eligibility: EligibilityResponse
    withdrawal_eligibility: EligibilityResponse
    flags: list[FraudFlagResponse]
