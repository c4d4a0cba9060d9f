"""Pydantic schemas for share endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class ShareRequest(BaseModel):
    platform: str = Field(..., max_length=64)
    score: int | None = Field(default=None, ge=0)
    run_id: int | None = None


class ShareResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: int
    platform: str
    run_id: int | None
    score: int | None
    created_at: datetime


class ShareCountResponse(BaseModel):
    count: int
