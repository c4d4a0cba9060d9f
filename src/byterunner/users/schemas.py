"""Pydantic schemas for user endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class UserResponse(BaseModel):
    id: int
    email: str | None
    username: str | None
    balance_cents: int
    last_withdrawal_at: datetime | None
    continue_tokens: int
    featured_badge: str | None
    created_at: datetime


class UsernameUpdateRequest(BaseModel):
    username: str = Field(..., max_length=64)
