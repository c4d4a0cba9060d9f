"""Contests API: public reads, entering runs, admin management."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from byterunner.auth.dependencies import get_current_user, require_admin
from byterunner.contests.schemas import (
    ContestCreateRequest,
    ContestEnterRequest,
    ContestEntryResponse,
    ContestLeaderboardEntry,
    ContestLeaderboardResponse,
    ContestResponse,
    ContestUpdateRequest,
    MyContestEntriesResponse,
    SettlementSummaryResponse,
)
from byterunner.contests.service import (
    create_contest,
    delete_contest,
    enter_contest,
    get_active_contests,
    get_contest_by_id_or_slug,
    get_contest_leaderboard,
    get_user_entries,
    get_user_rank,
    list_contests,
    require_contest,
    update_contest,
)
from byterunner.contests.settlement import check_and_update_contests
from byterunner.database import get_session
from byterunner.db.models import Run, User
from byterunner.errors import NotFound

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/contests", tags=["Contests"])


# ── Public reads ──


@router.get("", response_model=list[ContestResponse])
async def contests(
    status: str | None = Query(None),
    db: AsyncSession = Depends(get_session),
) -> list[ContestResponse]:
    return [ContestResponse.model_validate(c) for c in await list_contests(db, status)]


@router.get("/active", response_model=list[ContestResponse])
async def active_contests(
    db: AsyncSession = Depends(get_session),
) -> list[ContestResponse]:
    """Contests currently accepting entries."""
    return [ContestResponse.model_validate(c) for c in await get_active_contests(db)]


@router.get("/{id_or_slug}", response_model=ContestResponse)
async def contest_detail(
    id_or_slug: str,
    db: AsyncSession = Depends(get_session),
) -> ContestResponse:
    contest = await get_contest_by_id_or_slug(db, id_or_slug)
    if contest is None:
        raise NotFound("Contest not found.")
    return ContestResponse.model_validate(contest)


@router.get("/{contest_id}/leaderboard", response_model=ContestLeaderboardResponse)
async def contest_leaderboard(
    contest_id: int,
    limit: int = Query(100),
    db: AsyncSession = Depends(get_session),
) -> ContestLeaderboardResponse:
    await require_contest(db, contest_id)
    entries = await get_contest_leaderboard(db, contest_id, limit=limit)
    return ContestLeaderboardResponse(
        contest_id=contest_id,
        entries=[ContestLeaderboardEntry(**e) for e in entries],
    )


# ── Authenticated ──


@router.post("/{contest_id}/enter", response_model=ContestEntryResponse, status_code=201)
async def enter(
    contest_id: int,
    body: ContestEnterRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> ContestEntryResponse:
    """Enter one of the caller's stored runs into a contest."""
    result = await db.execute(select(Run).where(Run.id == body.run_id, Run.user_id == user.id))
    run = result.scalar_one_or_none()
    if run is None:
        raise NotFound("Run not found.")

    entry = await enter_contest(db, contest_id, user.id, run.id, run.score, run.distance)
    return ContestEntryResponse.model_validate(entry)


@router.get("/{contest_id}/my-entries", response_model=MyContestEntriesResponse)
async def my_entries(
    contest_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> MyContestEntriesResponse:
    await require_contest(db, contest_id)
    entries = await get_user_entries(db, contest_id, user.id)
    return MyContestEntriesResponse(
        contest_id=contest_id,
        rank=await get_user_rank(db, contest_id, user.id),
        entries=[ContestEntryResponse.model_validate(e) for e in entries],
    )


# ── Admin ──


@router.post("/admin", response_model=ContestResponse, status_code=201)
async def admin_create_contest(
    body: ContestCreateRequest,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> ContestResponse:
    contest = await create_contest(db, **body.model_dump())
    return ContestResponse.model_validate(contest)


@router.patch("/admin/{contest_id}", response_model=ContestResponse)
async def admin_update_contest(
    contest_id: int,
    body: ContestUpdateRequest,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> ContestResponse:
    """Partial update. Status changes must follow the contest lifecycle."""
    contest = await update_contest(db, contest_id, body.model_dump(exclude_unset=True))
    return ContestResponse.model_validate(contest)


@router.delete("/admin/{contest_id}", status_code=204)
async def admin_delete_contest(
    contest_id: int,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> Response:
    await delete_contest(db, contest_id)
    return Response(status_code=204)


@router.post("/admin/check-status", response_model=SettlementSummaryResponse)
async def admin_check_status(
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> SettlementSummaryResponse:
    """Run one contest reconciliation pass now."""
    logger.info("contest_settlement_triggered", admin_id=admin.id)
    summary = await check_and_update_contests(db)
    return SettlementSummaryResponse(**summary)
