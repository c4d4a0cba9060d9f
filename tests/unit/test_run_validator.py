"""Unit tests for run plausibility checks."""

import pytest

from byterunner.errors import RateExceeded
from byterunner.runs.validator import (
    check_run_rates,
    duration_seconds,
    effective_duration_ms,
    max_allowed,
)


class TestEffectiveDuration:
    def test_server_elapsed_is_a_floor(self):
        # Client claims 5s, server saw 20s go by.
        assert effective_duration_ms(5_000, started_at_ms=1_000, now_ms=21_000) == 20_000

    def test_claimed_duration_used_when_longer(self):
        assert effective_duration_ms(30_000, started_at_ms=1_000, now_ms=21_000) == 30_000

    def test_clock_skew_does_not_go_negative(self):
        assert effective_duration_ms(0, started_at_ms=5_000, now_ms=1_000) == 0


class TestDurationSeconds:
    @pytest.mark.parametrize(
        ("duration_ms", "expected"),
        [(0, 1), (1, 1), (999, 1), (1_000, 1), (1_001, 2), (60_000, 60)],
    )
    def test_rounds_up_with_one_second_floor(self, duration_ms, expected):
        assert duration_seconds(duration_ms) == expected

    def test_max_allowed(self):
        assert max_allowed(500, 10_500) == 500 * 11


class TestCheckRunRates:
    def test_at_ceiling_is_accepted(self):
        check_run_rates(5_000, 2_000, 10_000, max_score_per_second=500, max_distance_per_second=200)

    def test_score_over_ceiling(self):
        with pytest.raises(RateExceeded, match="Score"):
            check_run_rates(5_001, 0, 10_000, max_score_per_second=500, max_distance_per_second=200)

    def test_distance_over_ceiling(self):
        with pytest.raises(RateExceeded, match="Distance"):
            check_run_rates(0, 2_001, 10_000, max_score_per_second=500, max_distance_per_second=200)

    def test_zero_duration_counts_as_one_second(self):
        check_run_rates(500, 200, 0, max_score_per_second=500, max_distance_per_second=200)
        with pytest.raises(RateExceeded):
            check_run_rates(501, 0, 0, max_score_per_second=500, max_distance_per_second=200)
