"""Tests for period resolution and day parsing."""
from datetime import date, datetime, timezone

import pytest

from balance.utils.periods import period_days, previous_period, resolve_period
from balance.utils.timestamp import parse_day, parse_timestamp

TODAY = date(2024, 3, 20)


@pytest.mark.parametrize("period,full,expected", [
    ("this-month", False, (date(2024, 3, 1), TODAY)),
    ("this-month", True, (date(2024, 3, 1), date(2024, 3, 31))),
    ("last-month", False, (date(2024, 2, 1), date(2024, 2, 29))),
    ("this-year", False, (date(2024, 1, 1), TODAY)),
    ("this-year", True, (date(2024, 1, 1), date(2024, 12, 31))),
    ("last-year", False, (date(2023, 1, 1), date(2023, 12, 31))),
    ("bogus", False, (date(2024, 3, 1), TODAY)),
])
def test_resolve_period(period, full, expected):
    assert resolve_period(period, today=TODAY, full_period=full) == expected


def test_last_month_in_january():
    assert resolve_period("last-month", today=date(2024, 1, 15)) == (date(2023, 12, 1), date(2023, 12, 31))


def test_custom_period_needs_both_ends():
    assert resolve_period("custom", today=TODAY, custom_start=date(2024, 1, 1)) == (date(2024, 3, 1), TODAY)


def test_custom_period_swaps_reversed_range():
    start, end = resolve_period(
        "custom", today=TODAY, custom_start=date(2024, 2, 10), custom_end=date(2024, 2, 1),
    )
    assert (start, end) == (date(2024, 2, 1), date(2024, 2, 10))


def test_period_days_is_inclusive():
    assert period_days(date(2024, 3, 1), date(2024, 3, 1)) == 1
    assert period_days(date(2024, 3, 1), date(2024, 3, 31)) == 31


def test_previous_period_does_not_overlap():
    prev_start, prev_end = previous_period(date(2024, 3, 1), date(2024, 3, 10))
    assert (prev_start, prev_end) == (date(2024, 2, 20), date(2024, 2, 29))


def test_parse_day():
    assert parse_day("2024-01-02") == date(2024, 1, 2)
    assert parse_day("2024-01-02T23:30:00Z") == date(2024, 1, 2)
    assert parse_day(datetime(2024, 1, 2, 8, 0)) == date(2024, 1, 2)
    with pytest.raises(ValueError):
        parse_day("yesterday")


def test_parse_timestamp_assumes_utc():
    assert parse_timestamp("2024-01-02 09:10:00") == datetime(2024, 1, 2, 9, 10, tzinfo=timezone.utc)
    with pytest.raises(ValueError):
        parse_timestamp("")
