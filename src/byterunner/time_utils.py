"""Clock helpers for hour and day boundaries.

All boundaries are computed in UTC on the server clock.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def truncate_to_hour(dt: datetime) -> datetime:
    """Round down to the start of the hour, e.g. 14:37:12 -> 14:00:00."""
    return dt.astimezone(timezone.utc).replace(minute=0, second=0, microsecond=0)


def get_hour_window(hour_start: datetime) -> tuple[datetime, datetime]:
    """Get [start, end) for the hour beginning at hour_start."""
    start = truncate_to_hour(hour_start)
    return start, start + timedelta(hours=1)


def get_previous_hour(now: datetime | None = None) -> datetime:
    """Start of the hour that just completed."""
    if now is None:
        now = utcnow()
    return truncate_to_hour(now) - timedelta(hours=1)


def get_current_hour(now: datetime | None = None) -> datetime:
    """Start of the hour containing now."""
    if now is None:
        now = utcnow()
    return truncate_to_hour(now)


def start_of_day(now: datetime | None = None) -> datetime:
    """Midnight (UTC) of the day containing now."""
    if now is None:
        now = utcnow()
    return now.astimezone(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)


def epoch_ms(dt: datetime) -> int:
    """Milliseconds since the Unix epoch."""
    return int(dt.timestamp() * 1000)
