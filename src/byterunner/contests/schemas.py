"""Pydantic schemas for contest endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


# ── Contests ──


class ContestResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: int
    name: str
    slug: str
    description: str | None
    start_date: datetime
    end_date: datetime
    contest_timezone: str
    status: str
    prize_pool: dict[str, str] | None
    rules: dict[str, Any] | None
    max_entries_per_user: int
    created_at: datetime
    updated_at: datetime


class ContestCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=128)
    slug: str | None = Field(None, max_length=128)
    description: str | None = None
    start_date: datetime
    end_date: datetime
    contest_timezone: str = "UTC"
    status: str = "upcoming"
    prize_pool: dict[str, str] | None = None
    rules: dict[str, Any] | None = None
    max_entries_per_user: int = Field(999, ge=1)


class ContestUpdateRequest(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=128)
    slug: str | None = Field(None, max_length=128)
    description: str | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    contest_timezone: str | None = None
    status: str | None = None
    prize_pool: dict[str, str] | None = None
    rules: dict[str, Any] | None = None
    max_entries_per_user: int | None = Field(None, ge=1)


# ── Entries & leaderboard ──


class ContestEnterRequest(BaseModel):
    run_id: int


class ContestEntryResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: int
    contest_id: int
    run_id: int
    score: int
    distance: int
    created_at: datetime


class ContestLeaderboardEntry(BaseModel):
    rank: int
    user_id: int
    username: str
    score: int
    distance: int
    created_at: datetime


class ContestLeaderboardResponse(BaseModel):
    contest_id: int
    entries: list[ContestLeaderboardEntry]


class MyContestEntriesResponse(BaseModel):
    contest_id: int
    rank: int | None
    entries: list[ContestEntryResponse]


class SettlementSummaryResponse(BaseModel):
    started: int
    finished: int
    claims_created: int
    claims_recovered: int
