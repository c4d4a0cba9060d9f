"""Prize-pool lookup.

A prize pool maps rank keys to prize descriptions. A key is either a single
rank (``"1"``) or an inclusive range (``"4-10"``). Exact keys win over
ranges; keys that parse as neither are ignored.
"""

from __future__ import annotations


def _parse_range(key: str) -> tuple[int, int] | None:
    start, sep, end = key.partition("-")
    if not sep:
        return None
    try:
        low, high = int(start), int(end)
    except ValueError:
        return None
    if low > high:
        return None
    return low, high


def get_prize_for_rank(prize_pool: dict[str, str] | None, rank: int) -> str | None:
    """Prize description for ``rank``, or None if the pool pays nothing there."""
    if not prize_pool:
        return None

    exact = prize_pool.get(str(rank))
    if exact is not None:
        return exact

    for key, prize in prize_pool.items():
        bounds = _parse_range(key)
        if bounds is not None and bounds[0] <= rank <= bounds[1]:
            return prize

    return None
