"""Integration tests for contest entries, leaderboards and settlement."""

from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from byterunner.contests import settlement
from byterunner.contests.service import (
    compute_contest_leaderboard,
    create_contest,
    enter_contest,
    get_contest,
    get_user_rank,
    update_contest,
)
from byterunner.contests.settlement import (
    check_and_update_contests,
    finish_contest,
    recover_ended_contests,
)
from byterunner.db.models import ContestEntry, PrizeClaim
from byterunner.errors import DuplicateEntry, InvalidTransition, ValidationError
from byterunner.prize_claims.service import create_prize_claim


async def _claims(db, contest_id: int) -> list[tuple[int, int, str]]:
    result = await db.execute(
        select(PrizeClaim.user_id, PrizeClaim.rank, PrizeClaim.prize_description)
        .where(PrizeClaim.contest_id == contest_id)
        .order_by(PrizeClaim.rank)
    )
    return [tuple(row) for row in result.all()]


async def _enter(db, make_run, contest_id: int, user_id: int, score: int, distance: int, now) -> int:
    run = await make_run(user_id, score=score, distance=distance, created_at=now)
    await enter_contest(db, contest_id, user_id, run.id, score, distance, now=now)
    return run.id


class TestEntries:
    @pytest.mark.asyncio
    async def test_duplicate_run_rejected(self, db_session, make_user, make_run, make_contest, now):
        user = await make_user(username="alice")
        contest = await make_contest()
        run_id = await _enter(db_session, make_run, contest.id, user.id, 100, 10, now)

        with pytest.raises(DuplicateEntry):
            await enter_contest(db_session, contest.id, user.id, run_id, 100, 10, now=now)

    @pytest.mark.asyncio
    async def test_max_entries_per_user(self, db_session, make_user, make_run, make_contest, now):
        user = await make_user(username="alice")
        contest = await make_contest(max_entries_per_user=1)
        await _enter(db_session, make_run, contest.id, user.id, 100, 10, now)

        second = await make_run(user.id, score=200, created_at=now)
        with pytest.raises(ValidationError, match="Maximum entries"):
            await enter_contest(db_session, contest.id, user.id, second.id, 200, 0, now=now)

    @pytest.mark.asyncio
    async def test_closed_contests(self, db_session, make_user, make_run, make_contest, now):
        user = await make_user(username="alice")
        run = await make_run(user.id, score=100, created_at=now)
        past = await make_contest(end_date=now - timedelta(minutes=1))
        cancelled = await make_contest(status="cancelled")

        with pytest.raises(ValidationError, match="ended"):
            await enter_contest(db_session, past.id, user.id, run.id, 100, 0, now=now)
        with pytest.raises(ValidationError, match="not open"):
            await enter_contest(db_session, cancelled.id, user.id, run.id, 100, 0, now=now)

    @pytest.mark.asyncio
    async def test_upcoming_contest_accepts_entries(self, db_session, make_user, make_run, make_contest, now):
        user = await make_user(username="alice")
        contest = await make_contest(status="upcoming", start_date=now + timedelta(hours=1))
        await _enter(db_session, make_run, contest.id, user.id, 100, 10, now)
        count = await db_session.execute(select(func.count()).select_from(ContestEntry))
        assert count.scalar_one() == 1


class TestLeaderboard:
    @pytest.mark.asyncio
    async def test_best_entry_per_user(self, db_session, make_user, make_run, make_contest, now):
        alice = await make_user(username="alice")
        bob = await make_user(username="bob")
        contest = await make_contest()
        await _enter(db_session, make_run, contest.id, alice.id, 100, 50, now)
        await _enter(db_session, make_run, contest.id, alice.id, 80, 90, now)
        await _enter(db_session, make_run, contest.id, bob.id, 100, 60, now)

        ranked = await compute_contest_leaderboard(db_session, contest.id)

        assert [(e["username"], e["rank"], e["score"], e["distance"]) for e in ranked] == [
            ("bob", 1, 100, 60),
            ("alice", 2, 100, 50),
        ]
        assert await get_user_rank(db_session, contest.id, alice.id) == 2


class TestSettlement:
    @pytest.mark.asyncio
    async def test_two_ticks_create_one_claim_per_winner(self, db_session, make_user, make_run, make_contest, now):
        users = [await make_user(username=f"runner{i}") for i in range(3)]
        contest = await make_contest(prize_pool={"1": "Gold", "2-3": "Sticker"})
        contest_id = contest.id
        for user, score in zip(users, (300, 200, 100)):
            await _enter(db_session, make_run, contest_id, user.id, score, 0, now)

        later = now + timedelta(days=2)
        first = await check_and_update_contests(db_session, later)
        second = await check_and_update_contests(db_session, later)

        assert first == {"started": 0, "finished": 1, "claims_created": 3, "claims_recovered": 0}
        assert second == {"started": 0, "finished": 0, "claims_created": 0, "claims_recovered": 0}
        assert await _claims(db_session, contest_id) == [
            (users[0].id, 1, "Gold"),
            (users[1].id, 2, "Sticker"),
            (users[2].id, 3, "Sticker"),
        ]
        assert (await get_contest(db_session, contest_id)).status == "ended"

    @pytest.mark.asyncio
    async def test_only_paid_ranks_get_claims(self, db_session, make_user, make_run, make_contest, now):
        users = [await make_user(username=f"runner{i}") for i in range(3)]
        contest = await make_contest(prize_pool={"1": "Gold"})
        for user, score in zip(users, (300, 200, 100)):
            await _enter(db_session, make_run, contest.id, user.id, score, 0, now)

        assert await finish_contest(db_session, contest.id, now + timedelta(days=2)) == 1
        assert await _claims(db_session, contest.id) == [(users[0].id, 1, "Gold")]

    @pytest.mark.asyncio
    async def test_start_due_contests(self, db_session, make_contest, now):
        due = await make_contest(status="upcoming", start_date=now - timedelta(minutes=1))
        not_yet = await make_contest(status="upcoming", start_date=now + timedelta(hours=1))
        due_id, not_yet_id = due.id, not_yet.id

        summary = await check_and_update_contests(db_session, now)

        assert summary["started"] == 1
        assert (await get_contest(db_session, due_id)).status == "active"
        assert (await get_contest(db_session, not_yet_id)).status == "upcoming"

    @pytest.mark.asyncio
    async def test_recovery_fills_missing_claims(self, db_session, make_user, make_run, make_contest, now):
        alice = await make_user(username="alice")
        contest = await make_contest()
        await _enter(db_session, make_run, contest.id, alice.id, 100, 0, now)
        contest.status = "ended"
        await db_session.commit()

        assert await recover_ended_contests(db_session, now) == 1
        assert await recover_ended_contests(db_session, now) == 0
        assert await _claims(db_session, contest.id) == [(alice.id, 1, "Gold")]

    @pytest.mark.asyncio
    async def test_one_failing_contest_does_not_block_others(
        self, db_session, make_user, make_run, make_contest, now, monkeypatch
    ):
        alice = await make_user(username="alice")
        broken = await make_contest()
        healthy = await make_contest()
        broken_id, healthy_id = broken.id, healthy.id
        alice_id = alice.id
        await _enter(db_session, make_run, broken_id, alice_id, 100, 0, now)
        await _enter(db_session, make_run, healthy_id, alice_id, 100, 0, now)

        unpatched = settlement.ensure_prize_claims

        async def flaky(db, contest_id, prize_pool, now=None):
            if contest_id == broken_id:
                raise RuntimeError("datastore unavailable")
            return await unpatched(db, contest_id, prize_pool, now)

        monkeypatch.setattr(settlement, "ensure_prize_claims", flaky)
        later = now + timedelta(days=2)
        summary = await check_and_update_contests(db_session, later)

        assert summary["finished"] == 1
        assert (await get_contest(db_session, broken_id)).status == "active"
        assert (await get_contest(db_session, healthy_id)).status == "ended"

        monkeypatch.setattr(settlement, "ensure_prize_claims", unpatched)
        retry = await check_and_update_contests(db_session, later)
        assert retry["finished"] == 1
        assert await _claims(db_session, broken_id) == [(alice_id, 1, "Gold")]

    @pytest.mark.asyncio
    async def test_overlapping_pass_does_not_settle_twice(
        self, db_session, second_session, make_user, make_run, make_contest, now, monkeypatch
    ):
        alice = await make_user(username="alice")
        contest = await make_contest()
        contest_id, alice_id = contest.id, alice.id
        await _enter(db_session, make_run, contest_id, alice_id, 100, 0, now)
        later = now + timedelta(days=2)

        unpatched = settlement.get_expired_active_contests

        async def listed_then_overtaken(db, now=None):
            expired = await unpatched(db, now)
            # Another worker settles the contest before this pass locks it.
            assert await finish_contest(second_session, contest_id, later) == 1
            return expired

        monkeypatch.setattr(settlement, "get_expired_active_contests", listed_then_overtaken)
        finished, created = await settlement.finish_expired_contests(db_session, later)

        assert (finished, created) == (0, 0)
        assert await _claims(db_session, contest_id) == [(alice_id, 1, "Gold")]
        assert (await get_contest(db_session, contest_id)).status == "ended"

    @pytest.mark.asyncio
    async def test_duplicate_claim_is_rejected_by_the_database(self, db_session, make_user, make_contest):
        alice = await make_user(username="alice")
        contest = await make_contest()
        await create_prize_claim(db_session, contest.id, alice.id, 1, "Gold")

        with pytest.raises(IntegrityError):
            await create_prize_claim(db_session, contest.id, alice.id, 1, "Gold")
        await db_session.rollback()


class TestAdmin:
    @pytest.mark.asyncio
    async def test_create_derives_slug_and_rejects_duplicates(self, db_session, now):
        contest = await create_contest(
            db_session, "Neon Night Run", now, now + timedelta(days=3), now=now,
        )
        assert contest.slug == "neon-night-run"
        assert contest.status == "upcoming"

        with pytest.raises(DuplicateEntry):
            await create_contest(db_session, "Neon Night Run", now, now + timedelta(days=3), now=now)

    @pytest.mark.asyncio
    async def test_create_rejects_inverted_window(self, db_session, now):
        with pytest.raises(ValidationError):
            await create_contest(db_session, "Backwards", now, now - timedelta(days=1), now=now)

    @pytest.mark.asyncio
    async def test_update_enforces_lifecycle(self, db_session, make_contest, now):
        contest = await make_contest(status="ended")
        with pytest.raises(InvalidTransition):
            await update_contest(db_session, contest.id, {"status": "active"}, now=now)

        contest = await make_contest(status="upcoming")
        updated = await update_contest(db_session, contest.id, {"status": "cancelled", "name": "Renamed"}, now=now)
        assert updated.status == "cancelled"
        assert updated.name == "Renamed"
