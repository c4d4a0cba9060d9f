"""Deterministic leaderboard ranking.

Every leaderboard (contest, hourly, rolling) is computed the same way:
keep each user's best entry by score DESC then distance DESC, sort the
survivors by the same key and number them 1..N by position.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any


def entry_sort_key(entry: dict[str, Any]) -> tuple[int, int]:
    return (-entry.get("score", 0), -entry.get("distance", 0))


def _beats(candidate: dict[str, Any], current: dict[str, Any]) -> bool:
    return entry_sort_key(candidate) < entry_sort_key(current)


def best_entry_per_user(entries: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
    """Collapse entries to one per user_id, keeping the best. First seen wins ties."""
    best: dict[Any, dict[str, Any]] = {}
    for entry in entries:
        user_id = entry["user_id"]
        current = best.get(user_id)
        if current is None or _beats(entry, current):
            best[user_id] = entry
    return list(best.values())


def rank_entries(
    entries: Iterable[dict[str, Any]],
    limit: int | None = None,
) -> list[dict[str, Any]]:
    """Rank entries for a leaderboard.

    Input: dicts with at least ``user_id``, ``score`` and ``distance``.

    Output: one dict per user (best entry only), sorted and augmented with a
    1-based ``rank``. ``limit`` truncates after ranking.
    """
    deduped = best_entry_per_user(entries)
    ranked = sorted(deduped, key=entry_sort_key)
    if limit is not None:
        ranked = ranked[:limit]

    for idx, entry in enumerate(ranked):
        entry["rank"] = idx + 1

    return ranked


def find_user_rank(ranked: list[dict[str, Any]], user_id: Any) -> int | None:  # noqa: ANN401
    """Rank of user_id in an already-ranked list, or None if absent."""
    for entry in ranked:
        if entry["user_id"] == user_id:
            return entry["rank"]
    return None
