"""Contest CRUD, entries and leaderboards.

Lifecycle: upcoming -> active -> ended, with cancellation allowed from
either open state. Every status change, whether made by an admin or by the
settlement loop, goes through ``validate_transition``.
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from byterunner.db.models import Contest, ContestEntry, User
from byterunner.errors import DuplicateEntry, InvalidTransition, NotFound, ValidationError
from byterunner.ranking import find_user_rank, rank_entries
from byterunner.time_utils import utcnow

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

VALID_STATUSES = {"upcoming", "active", "ended", "cancelled"}
OPEN_STATUSES = ("active", "upcoming")

VALID_TRANSITIONS: dict[str, list[str]] = {
    "upcoming": ["active", "cancelled"],
    "active": ["ended", "cancelled"],
    "ended": [],
    "cancelled": [],
}

MAX_LEADERBOARD_LIMIT = 100

UPDATABLE_FIELDS = (
    "name",
    "slug",
    "description",
    "start_date",
    "end_date",
    "contest_timezone",
    "status",
    "prize_pool",
    "rules",
    "max_entries_per_user",
)


def validate_transition(current_status: str, target_status: str) -> None:
    """Validate a status change. Raises InvalidTransition if not allowed."""
    valid = VALID_TRANSITIONS.get(current_status, [])
    if target_status not in valid:
        raise InvalidTransition(
            f"Invalid transition: {current_status} -> {target_status}. "
            f"Valid transitions: {valid}"
        )


def generate_slug(name: str) -> str:
    """URL slug from a contest name: "Summer Sprint 2025!" -> "summer-sprint-2025"."""
    slug = re.sub(r"[^a-z0-9\s-]", "", name.lower()).strip()
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"-+", "-", slug)
    return slug.strip("-")


def set_contest_status(contest: Contest, target_status: str, now: datetime | None = None) -> None:
    """Apply a validated status change to a loaded contest. Does not commit."""
    validate_transition(contest.status, target_status)
    contest.status = target_status
    contest.updated_at = now or utcnow()


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


async def get_contest(db: AsyncSession, contest_id: int) -> Contest | None:
    result = await db.execute(select(Contest).where(Contest.id == contest_id))
    return result.scalar_one_or_none()


async def lock_contest(db: AsyncSession, contest_id: int) -> Contest | None:
    """SELECT ... FOR UPDATE a contest, refreshing any loaded copy.

    Settlement holds this lock until it commits, so passes that overlap
    handle a contest one after the other.
    """
    result = await db.execute(
        select(Contest)
        .where(Contest.id == contest_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def require_contest(db: AsyncSession, contest_id: int) -> Contest:
    contest = await get_contest(db, contest_id)
    if contest is None:
        raise NotFound("Contest not found.")
    return contest


async def get_contest_by_slug(db: AsyncSession, slug: str) -> Contest | None:
    result = await db.execute(select(Contest).where(Contest.slug == slug))
    return result.scalar_one_or_none()


async def get_contest_by_id_or_slug(db: AsyncSession, id_or_slug: str) -> Contest | None:
    """Numeric strings are treated as ids, anything else as a slug."""
    if id_or_slug.isdigit():
        return await get_contest(db, int(id_or_slug))
    return await get_contest_by_slug(db, id_or_slug)


async def list_contests(db: AsyncSession, status: str | None = None) -> list[Contest]:
    query = select(Contest)
    if status:
        query = query.where(Contest.status == status)
    result = await db.execute(query.order_by(Contest.start_date.desc(), Contest.id.desc()))
    return list(result.scalars().all())


async def get_active_contests(db: AsyncSession, now: datetime | None = None) -> list[Contest]:
    """Contests still accepting entries: active or upcoming and not yet ended."""
    if now is None:
        now = utcnow()
    result = await db.execute(
        select(Contest)
        .where(Contest.status.in_(OPEN_STATUSES), Contest.end_date >= now)
        .order_by(Contest.start_date.desc(), Contest.id.desc())
    )
    return list(result.scalars().all())


async def get_contests_to_start(db: AsyncSession, now: datetime | None = None) -> list[Contest]:
    if now is None:
        now = utcnow()
    result = await db.execute(
        select(Contest)
        .where(Contest.status == "upcoming", Contest.start_date <= now)
        .order_by(Contest.id)
    )
    return list(result.scalars().all())


async def get_expired_active_contests(db: AsyncSession, now: datetime | None = None) -> list[Contest]:
    if now is None:
        now = utcnow()
    result = await db.execute(
        select(Contest)
        .where(Contest.status == "active", Contest.end_date < now)
        .order_by(Contest.id)
    )
    return list(result.scalars().all())


async def get_ended_contests(db: AsyncSession) -> list[Contest]:
    result = await db.execute(select(Contest).where(Contest.status == "ended").order_by(Contest.id))
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Leaderboard
# ---------------------------------------------------------------------------


async def compute_contest_leaderboard(
    db: AsyncSession,
    contest_id: int,
    limit: int | None = None,
) -> list[dict[str, Any]]:
    """Rank a contest's entries: best entry per user, score desc then distance desc."""
    result = await db.execute(
        select(
            ContestEntry.user_id,
            ContestEntry.run_id,
            ContestEntry.score,
            ContestEntry.distance,
            ContestEntry.created_at,
            User.username,
        )
        .join(User, User.id == ContestEntry.user_id)
        .where(ContestEntry.contest_id == contest_id)
        .order_by(ContestEntry.created_at.asc(), ContestEntry.id.asc())
    )
    entries = [
        {
            "user_id": row.user_id,
            "username": row.username or "Unknown",
            "run_id": row.run_id,
            "score": row.score,
            "distance": row.distance,
            "created_at": row.created_at,
        }
        for row in result.all()
    ]
    return rank_entries(entries, limit=limit)


async def get_contest_leaderboard(
    db: AsyncSession,
    contest_id: int,
    limit: int = MAX_LEADERBOARD_LIMIT,
) -> list[dict[str, Any]]:
    """Public leaderboard. ``limit`` is clamped to 1..100."""
    limit = max(1, min(limit, MAX_LEADERBOARD_LIMIT))
    return await compute_contest_leaderboard(db, contest_id, limit=limit)


async def get_user_entries(db: AsyncSession, contest_id: int, user_id: int) -> list[ContestEntry]:
    result = await db.execute(
        select(ContestEntry)
        .where(ContestEntry.contest_id == contest_id, ContestEntry.user_id == user_id)
        .order_by(ContestEntry.score.desc(), ContestEntry.distance.desc(), ContestEntry.id.asc())
    )
    return list(result.scalars().all())


async def get_user_rank(db: AsyncSession, contest_id: int, user_id: int) -> int | None:
    """Position of the user's best entry on the full leaderboard."""
    ranked = await compute_contest_leaderboard(db, contest_id)
    return find_user_rank(ranked, user_id)


# ---------------------------------------------------------------------------
# Entries
# ---------------------------------------------------------------------------


async def enter_contest(
    db: AsyncSession,
    contest_id: int,
    user_id: int,
    run_id: int,
    score: int,
    distance: int,
    now: datetime | None = None,
) -> ContestEntry:
    """Enter a run into a contest.

    Raises:
        NotFound: Contest does not exist.
        ValidationError: Contest closed, or user reached max entries.
        DuplicateEntry: The run is already entered.
    """
    if now is None:
        now = utcnow()

    contest = await require_contest(db, contest_id)
    if now > contest.end_date:
        raise ValidationError("Contest has ended.")
    if contest.status not in OPEN_STATUSES:
        raise ValidationError("Contest is not open for entries.")
    max_entries = contest.max_entries_per_user

    existing = await db.execute(
        select(ContestEntry.id).where(
            ContestEntry.contest_id == contest_id,
            ContestEntry.run_id == run_id,
        )
    )
    if existing.scalar_one_or_none() is not None:
        raise DuplicateEntry("This run is already entered in the contest.")

    count = await db.execute(
        select(func.count()).select_from(ContestEntry).where(
            ContestEntry.contest_id == contest_id,
            ContestEntry.user_id == user_id,
        )
    )
    if (count.scalar_one() or 0) >= max_entries:
        raise ValidationError("Maximum entries reached for this contest.")

    entry = ContestEntry(
        contest_id=contest_id,
        user_id=user_id,
        run_id=run_id,
        score=score,
        distance=distance,
        created_at=now,
    )
    db.add(entry)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise DuplicateEntry("This run is already entered in the contest.") from None

    logger.info("contest_entered", contest_id=contest_id, user_id=user_id, run_id=run_id, score=score)
    return entry


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------


def _validate_window(start_date: datetime, end_date: datetime) -> None:
    if end_date <= start_date:
        raise ValidationError("Contest end date must be after its start date.")


async def _ensure_slug_free(db: AsyncSession, slug: str, contest_id: int | None = None) -> None:
    query = select(Contest.id).where(Contest.slug == slug)
    if contest_id is not None:
        query = query.where(Contest.id != contest_id)
    taken = await db.execute(query.limit(1))
    if taken.scalar_one_or_none() is not None:
        raise DuplicateEntry(f"Contest slug '{slug}' is already in use.")


async def create_contest(
    db: AsyncSession,
    name: str,
    start_date: datetime,
    end_date: datetime,
    slug: str | None = None,
    description: str | None = None,
    contest_timezone: str = "UTC",
    status: str = "upcoming",
    prize_pool: dict[str, str] | None = None,
    rules: dict[str, Any] | None = None,
    max_entries_per_user: int = 999,
    now: datetime | None = None,
) -> Contest:
    """Create a contest. The slug is derived from the name when omitted."""
    if now is None:
        now = utcnow()
    if status not in VALID_STATUSES:
        raise ValidationError(f"Invalid contest status: {status}")
    _validate_window(start_date, end_date)

    slug = slug or generate_slug(name)
    if not slug:
        raise ValidationError("Contest slug cannot be empty.")
    await _ensure_slug_free(db, slug)

    contest = Contest(
        name=name,
        slug=slug,
        description=description,
        start_date=start_date,
        end_date=end_date,
        contest_timezone=contest_timezone,
        status=status,
        prize_pool=prize_pool,
        rules=rules,
        max_entries_per_user=max_entries_per_user,
        created_at=now,
        updated_at=now,
    )
    db.add(contest)
    await db.commit()
    logger.info("contest_created", contest_id=contest.id, slug=slug, status=status)
    return contest


async def update_contest(
    db: AsyncSession,
    contest_id: int,
    changes: dict[str, Any],
    now: datetime | None = None,
) -> Contest:
    """Apply a partial update. A status change must be a valid transition."""
    contest = await require_contest(db, contest_id)

    unknown = set(changes) - set(UPDATABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Cannot update fields: {sorted(unknown)}")

    if "slug" in changes and changes["slug"] != contest.slug:
        if not changes["slug"]:
            raise ValidationError("Contest slug cannot be empty.")
        await _ensure_slug_free(db, changes["slug"], contest_id)

    start_date = changes.get("start_date", contest.start_date)
    end_date = changes.get("end_date", contest.end_date)
    _validate_window(start_date, end_date)

    target_status = changes.get("status")
    if target_status is not None and target_status != contest.status:
        validate_transition(contest.status, target_status)

    for field in UPDATABLE_FIELDS:
        if field in changes:
            setattr(contest, field, changes[field])
    contest.updated_at = now or utcnow()

    await db.commit()
    logger.info("contest_updated", contest_id=contest_id, fields=sorted(changes))
    return contest


async def delete_contest(db: AsyncSession, contest_id: int) -> None:
    """Delete a contest along with its entries."""
    contest = await require_contest(db, contest_id)
    await db.delete(contest)
    await db.commit()
    logger.info("contest_deleted", contest_id=contest_id)
