"""Pydantic schemas for the rolling leaderboard."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class LeaderboardEntryResponse(BaseModel):
    rank: int
    user_id: int
    username: str
    score: int
    distance: int
    created_at: datetime
    badge_emoji: str | None = None


class LeaderboardResponse(BaseModel):
    window_hours: int
    entries: list[LeaderboardEntryResponse]
