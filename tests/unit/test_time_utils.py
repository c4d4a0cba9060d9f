"""Unit tests for hour and day boundaries."""

from datetime import datetime, timedelta, timezone

from byterunner.time_utils import (
    epoch_ms,
    get_current_hour,
    get_hour_window,
    get_previous_hour,
    start_of_day,
    truncate_to_hour,
)

NOW = datetime(2026, 3, 2, 14, 37, 12, 345678, tzinfo=timezone.utc)


class TestHours:
    def test_truncate(self):
        assert truncate_to_hour(NOW) == datetime(2026, 3, 2, 14, tzinfo=timezone.utc)

    def test_truncate_converts_to_utc(self):
        plus_two = timezone(timedelta(hours=2))
        local = datetime(2026, 3, 2, 16, 37, tzinfo=plus_two)
        assert truncate_to_hour(local) == datetime(2026, 3, 2, 14, tzinfo=timezone.utc)

    def test_current_and_previous(self):
        assert get_current_hour(NOW) == datetime(2026, 3, 2, 14, tzinfo=timezone.utc)
        assert get_previous_hour(NOW) == datetime(2026, 3, 2, 13, tzinfo=timezone.utc)

    def test_previous_hour_across_midnight(self):
        just_after = datetime(2026, 3, 2, 0, 0, 5, tzinfo=timezone.utc)
        assert get_previous_hour(just_after) == datetime(2026, 3, 1, 23, tzinfo=timezone.utc)

    def test_window_is_one_hour(self):
        start, end = get_hour_window(NOW)
        assert start == datetime(2026, 3, 2, 14, tzinfo=timezone.utc)
        assert end - start == timedelta(hours=1)


class TestDays:
    def test_start_of_day(self):
        assert start_of_day(NOW) == datetime(2026, 3, 2, tzinfo=timezone.utc)

    def test_epoch_ms(self):
        assert epoch_ms(datetime(1970, 1, 1, 0, 0, 1, tzinfo=timezone.utc)) == 1000
