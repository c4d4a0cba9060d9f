"""Integration tests for hourly challenge settlement.

``now`` is 15:00:30, so the hour being settled is 14:00-15:00.
"""

from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from byterunner.balance.service import add_balance, get_ledger_sum
from byterunner.db.models import BalanceTransaction, FraudFlag, HourlyChallenge, User
from byterunner.hourly import settlement
from byterunner.hourly.service import (
    find_hour_winner,
    get_challenge_for_hour,
    get_hour_leaderboard,
    get_or_create_challenge,
)
from byterunner.hourly.settlement import (
    OUTCOME_ALREADY_PAID,
    OUTCOME_INELIGIBLE,
    OUTCOME_NO_WINNER,
    OUTCOME_PAID,
    process_hourly_challenge,
)
from byterunner.time_utils import get_current_hour, get_previous_hour


async def _challenge(db, hour) -> dict:
    result = await db.execute(
        select(
            HourlyChallenge.id,
            HourlyChallenge.status,
            HourlyChallenge.winner_user_id,
            HourlyChallenge.winner_score,
            HourlyChallenge.winner_distance,
            HourlyChallenge.ended_at,
        ).where(HourlyChallenge.challenge_hour == hour)
    )
    return dict(result.one()._mapping)


async def _hourly_credits(db, user_id: int) -> list[BalanceTransaction]:
    result = await db.execute(
        select(BalanceTransaction).where(
            BalanceTransaction.user_id == user_id,
            BalanceTransaction.type == "hourly_challenge",
        )
    )
    return list(result.scalars().all())


async def _balance(db, user_id: int) -> int:
    result = await db.execute(select(User.balance_cents).where(User.id == user_id))
    return result.scalar_one()


async def _play_hour(make_run, user_id: int, hour, scores: list[int], distance: int = 10) -> None:
    for i, score in enumerate(scores):
        await make_run(user_id, score=score, distance=distance, created_at=hour + timedelta(minutes=5 + i))


class TestHourlySettlement:
    @pytest.mark.asyncio
    async def test_empty_hour_ends_without_winner(self, db_session, now):
        result = await process_hourly_challenge(db_session, now)

        hour = get_previous_hour(now)
        assert result == {"challenge_hour": hour, "outcome": OUTCOME_NO_WINNER}
        challenge = await _challenge(db_session, hour)
        assert challenge["status"] == "ended"
        assert challenge["winner_user_id"] is None
        assert challenge["ended_at"] == now

        current = await _challenge(db_session, get_current_hour(now))
        assert current["status"] == "active"

    @pytest.mark.asyncio
    async def test_eligible_winner_is_paid_once(self, db_session, make_user, make_run, now):
        hour = get_previous_hour(now)
        winner = await make_user(username="winner")
        rival = await make_user(username="rival")
        winner_id, rival_id = winner.id, rival.id
        await _play_hour(make_run, winner_id, hour, [100, 200, 300, 400, 500])
        await _play_hour(make_run, rival_id, hour, [450])

        first = await process_hourly_challenge(db_session, now)
        second = await process_hourly_challenge(db_session, now)

        assert first["outcome"] == OUTCOME_PAID
        assert second["outcome"] == OUTCOME_ALREADY_PAID
        challenge = await _challenge(db_session, hour)
        assert challenge["status"] == "paid"
        assert challenge["winner_user_id"] == winner_id
        assert challenge["winner_score"] == 500

        credits = await _hourly_credits(db_session, winner_id)
        assert len(credits) == 1
        assert credits[0].amount_cents == 100
        assert credits[0].reference_id == str(challenge["id"])
        assert await _balance(db_session, winner_id) == 100
        assert await get_ledger_sum(db_session, winner_id) == 100
        assert await _balance(db_session, rival_id) == 0

    @pytest.mark.asyncio
    async def test_ineligible_winner_recorded_but_unpaid(self, db_session, make_user, make_run, now):
        hour = get_previous_hour(now)
        newcomer = await make_user(username="newbie", created_at=now - timedelta(hours=2))
        newcomer_id = newcomer.id
        await _play_hour(make_run, newcomer_id, hour, [10, 20, 30, 40, 900])

        result = await process_hourly_challenge(db_session, now)

        assert result["outcome"] == OUTCOME_INELIGIBLE
        challenge = await _challenge(db_session, hour)
        assert challenge["status"] == "ended"
        assert challenge["winner_user_id"] == newcomer_id
        assert challenge["winner_score"] == 900
        assert await _hourly_credits(db_session, newcomer_id) == []
        assert await _balance(db_session, newcomer_id) == 0

        flags = await db_session.execute(select(FraudFlag.flag_type).where(FraudFlag.user_id == newcomer_id))
        assert flags.scalars().all() == ["new_account"]

    @pytest.mark.asyncio
    async def test_ended_challenge_is_retried_without_double_credit(self, db_session, make_user, make_run, now):
        hour = get_previous_hour(now)
        winner = await make_user(username="winner")
        winner_id = winner.id
        await _play_hour(make_run, winner_id, hour, [100, 200, 300, 400, 500])

        # A previous pass credited the reward but never reached the paid status.
        db_session.add(HourlyChallenge(challenge_hour=hour, status="active", created_at=hour))
        await db_session.commit()
        challenge_id = (await get_challenge_for_hour(db_session, hour)).id
        await add_balance(db_session, winner_id, 100, "hourly_challenge", reference_id=str(challenge_id), now=now)

        result = await process_hourly_challenge(db_session, now)

        assert result["outcome"] == OUTCOME_PAID
        assert len(await _hourly_credits(db_session, winner_id)) == 1
        assert await _balance(db_session, winner_id) == 100

    @pytest.mark.asyncio
    async def test_overlapping_pass_sees_paid_status_under_lock(
        self, db_session, second_session, make_user, make_run, now, monkeypatch
    ):
        hour = get_previous_hour(now)
        winner = await make_user(username="winner")
        winner_id = winner.id
        await _play_hour(make_run, winner_id, hour, [100, 200, 300, 400, 500])

        unpatched = settlement.get_or_create_challenge
        overtaken = []

        async def fetched_then_overtaken(db, hour, now=None):
            challenge = await unpatched(db, hour, now)
            if not overtaken:
                overtaken.append(True)
                # Another worker pays the hour before this pass takes the lock.
                assert await settlement.settle_hour(second_session, hour, now) == OUTCOME_PAID
            return challenge

        monkeypatch.setattr(settlement, "get_or_create_challenge", fetched_then_overtaken)
        outcome = await settlement.settle_hour(db_session, hour, now)

        assert outcome == OUTCOME_ALREADY_PAID
        assert len(await _hourly_credits(db_session, winner_id)) == 1
        assert await _balance(db_session, winner_id) == 100

    @pytest.mark.asyncio
    async def test_second_reward_for_a_challenge_is_rejected_by_the_database(self, db_session, make_user, now):
        user = await make_user()
        for _ in range(2):
            db_session.add(BalanceTransaction(
                user_id=user.id, amount_cents=100, type="hourly_challenge",
                reference_id="7", description="", created_at=now,
            ))

        with pytest.raises(IntegrityError):
            await db_session.commit()
        await db_session.rollback()

    @pytest.mark.asyncio
    async def test_one_challenge_row_per_hour(self, db_session, now):
        hour = get_previous_hour(now)
        first = await get_or_create_challenge(db_session, hour, now)
        first_id = first.id

        db_session.add(HourlyChallenge(challenge_hour=hour, status="active", created_at=now))
        with pytest.raises(IntegrityError):
            await db_session.commit()
        await db_session.rollback()

        assert (await get_or_create_challenge(db_session, hour, now)).id == first_id

    @pytest.mark.asyncio
    async def test_runs_outside_the_hour_are_ignored(self, db_session, make_user, make_run, now):
        hour = get_previous_hour(now)
        user = await make_user(username="late")
        await make_run(user.id, score=999, created_at=hour + timedelta(hours=1))
        await make_run(user.id, score=999, created_at=hour - timedelta(seconds=1))

        assert await find_hour_winner(db_session, hour) is None


class TestHourWinner:
    @pytest.mark.asyncio
    async def test_distance_then_earlier_run_break_ties(self, db_session, make_user, make_run, now):
        hour = get_previous_hour(now)
        a = await make_user(username="a")
        b = await make_user(username="b")
        c = await make_user(username="c")
        await make_run(a.id, score=500, distance=10, created_at=hour + timedelta(minutes=1))
        early = await make_run(b.id, score=500, distance=20, created_at=hour + timedelta(minutes=2))
        await make_run(c.id, score=500, distance=20, created_at=hour + timedelta(minutes=3))

        winner = await find_hour_winner(db_session, hour)

        assert winner.id == early.id

    @pytest.mark.asyncio
    async def test_leaderboard_keeps_best_run_per_user(self, db_session, make_user, make_run, now):
        hour = get_previous_hour(now)
        a = await make_user(username="a")
        b = await make_user()
        await _play_hour(make_run, a.id, hour, [10, 70, 30])
        await _play_hour(make_run, b.id, hour, [50])

        board = await get_hour_leaderboard(db_session, hour)

        assert [(e["username"], e["score"], e["rank"]) for e in board] == [("a", 70, 1), ("Anonymous", 50, 2)]
