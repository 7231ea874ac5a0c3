"""Tests for UTC time helpers."""

from datetime import date, datetime, timedelta, timezone

import pytest

from utils.timezone import days_between, now_utc, parse_date, to_utc, today_utc


class TestNow:

    def test_now_is_timezone_aware_utc(self):
        assert now_utc().tzinfo == timezone.utc

    def test_today_matches_now(self):
        assert today_utc() == now_utc().date()


class TestToUtc:

    def test_converts_offset(self):
        dt = datetime(2024, 3, 1, 1, 30, tzinfo=timezone(timedelta(hours=2)))
        assert to_utc(dt) == datetime(2024, 2, 29, 23, 30, tzinfo=timezone.utc)

    def test_rejects_naive(self):
        with pytest.raises(ValueError, match="naive"):
            to_utc(datetime(2024, 3, 1))


class TestDaysBetween:

    def test_forward(self):
        assert days_between(date(2024, 3, 1), date(2024, 3, 21)) == 20

    def test_backward_is_negative(self):
        assert days_between(date(2024, 3, 21), date(2024, 3, 1)) == -20

    def test_leap_day_counted(self):
        assert days_between(date(2024, 2, 28), date(2024, 3, 1)) == 2

    def test_datetimes_reduced_to_utc_date(self):
        start = datetime(2024, 3, 1, 23, 0, tzinfo=timezone(timedelta(hours=-2)))
        assert days_between(start, date(2024, 3, 3)) == 1


class TestParseDate:

    def test_plain_date(self):
        assert parse_date("2024-03-31") == date(2024, 3, 31)

    def test_timestamp_with_zone(self):
        assert parse_date("2024-03-31T23:30:00-02:00") == date(2024, 4, 1)

    def test_naive_timestamp_rejected(self):
        with pytest.raises(ValueError):
            parse_date("2024-03-31T10:00:00")

    def test_garbage_rejected(self):
        with pytest.raises(ValueError):
            parse_date("31.03.2024")
