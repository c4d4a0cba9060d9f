"""Pydantic schemas for hourly challenge endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class HourlyChallengeResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: int
    challenge_hour: datetime
    status: str
    winner_user_id: int | None
    winner_run_id: int | None
    winner_score: int | None
    winner_distance: int | None
    created_at: datetime
    ended_at: datetime | None


class CurrentChallengeResponse(BaseModel):
    challenge: HourlyChallengeResponse | None
    message: str | None = None


class HourlyLeaderboardEntry(BaseModel):
    rank: int
    user_id: int
    username: str
    score: int
    distance: int
    created_at: datetime


class HourlyLeaderboardResponse(BaseModel):
    challenge_hour: datetime
    leaderboard: list[HourlyLeaderboardEntry]


class HourlyEntryResponse(BaseModel):
    run_id: int
    score: int
    distance: int
    created_at: datetime


class MyHourlyEntriesResponse(BaseModel):
    challenge_hour: datetime
    entries: list[HourlyEntryResponse]


class HourlyProcessResponse(BaseModel):
    challenge_hour: datetime
    outcome: str
