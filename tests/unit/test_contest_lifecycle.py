"""Unit tests for contest status transitions and slugs."""

from datetime import datetime, timezone

import pytest

from byterunner.contests.service import generate_slug, set_contest_status, validate_transition
from byterunner.db.models import Contest
from byterunner.errors import InvalidTransition


class TestTransitions:
    @pytest.mark.parametrize(
        ("current", "target"),
        [
            ("upcoming", "active"),
            ("upcoming", "cancelled"),
            ("active", "ended"),
            ("active", "cancelled"),
        ],
    )
    def test_allowed(self, current, target):
        validate_transition(current, target)

    @pytest.mark.parametrize(
        ("current", "target"),
        [
            ("upcoming", "ended"),
            ("active", "upcoming"),
            ("ended", "active"),
            ("ended", "cancelled"),
            ("cancelled", "active"),
        ],
    )
    def test_rejected(self, current, target):
        with pytest.raises(InvalidTransition):
            validate_transition(current, target)

    def test_set_status_stamps_updated_at(self):
        now = datetime(2026, 3, 2, 12, tzinfo=timezone.utc)
        contest = Contest(status="upcoming")
        set_contest_status(contest, "active", now)
        assert contest.status == "active"
        assert contest.updated_at == now

    def test_set_status_leaves_contest_untouched_on_rejection(self):
        contest = Contest(status="ended")
        with pytest.raises(InvalidTransition):
            set_contest_status(contest, "active")
        assert contest.status == "ended"


class TestSlug:
    def test_basic(self):
        assert generate_slug("Summer Sprint 2026!") == "summer-sprint-2026"

    def test_collapses_whitespace_and_dashes(self):
        assert generate_slug("  Neon --  Night   Run ") == "neon-night-run"

    def test_only_symbols(self):
        assert generate_slug("!!!") == ""
