"""Pydantic schemas for badge endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class BadgeResponse(BaseModel):
    model_config = {"from_attributes": True}

    slug: str
    name: str
    description: str
    emoji: str
    category: str
    tier: str
    requirement_type: str
    requirement_value: int


class UserBadgeResponse(BaseModel):
    model_config = {"from_attributes": True}

    badge: BadgeResponse
    earned_at: datetime


class BadgeCheckResponse(BaseModel):
    awarded: list[str]
    message: str


class FeaturedBadgeRequest(BaseModel):
    badge: str


class FeaturedBadgeResponse(BaseModel):
    featured_badge: str | None
