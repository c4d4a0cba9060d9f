"""Plausibility checks for submitted runs.

The server-measured elapsed time (now minus the token's start) is a floor on
the duration used for rate checks, and durations are counted in whole
seconds rounded up, never less than one. Offending submissions are
rejected, never clamped.
"""

from __future__ import annotations

import math

from byterunner.errors import RateExceeded


def effective_duration_ms(claimed_duration_ms: int, started_at_ms: int, now_ms: int) -> int:
    """Larger of the claimed duration and the server-measured elapsed time."""
    elapsed = max(0, now_ms - started_at_ms)
    return max(claimed_duration_ms, elapsed)


def duration_seconds(duration_ms: int) -> int:
    return max(1, math.ceil(duration_ms / 1000))


def max_allowed(per_second: int, duration_ms: int) -> int:
    return per_second * duration_seconds(duration_ms)


def check_run_rates(
    score: int,
    distance: int,
    duration_ms: int,
    max_score_per_second: int,
    max_distance_per_second: int,
) -> None:
    """Raise RateExceeded if score or distance is too high for the duration."""
    if score > max_allowed(max_score_per_second, duration_ms):
        raise RateExceeded("Score exceeds maximum allowed rate.")
    if distance > max_allowed(max_distance_per_second, duration_ms):
        raise RateExceeded("Distance exceeds maximum allowed rate.")
