"""Pydantic schemas for run endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class RunStartResponse(BaseModel):
    run_token: str
    expires_at: datetime


class RunFinishRequest(BaseModel):
    run_token: str
    score: int = Field(..., ge=0)
    distance: int = Field(..., ge=0)
    duration_ms: int = Field(..., ge=0)
    client_version: str | None = Field(None, max_length=32)


class RunFinishResponse(BaseModel):
    id: int
    score: int
    distance: int
    duration_ms: int
    created_at: datetime
    entered_contests: list[str]


class UserStatsResponse(BaseModel):
    best_score: int
    best_distance: int
    total_runs: int
    rank: int | None
