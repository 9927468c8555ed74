"""Tests for time-of-day parsing helpers."""
from datetime import date, time

import pytest

from medbook.errors import ValidationError
from medbook.timeparse import format_minutes, normalize_time, parse_time_of_day, weekday_index


@pytest.mark.parametrize("value,expected", [
    ("00:00", 0),
    ("09:30", 570),
    ("23:59", 1439),
    ("10:00:00", 600),
    (" 08:15 ", 495),
    (time(14, 45), 885),
])
def test_parse_time_of_day(value, expected):
    assert parse_time_of_day(value) == expected


@pytest.mark.parametrize("value", ["9:30", "24:00", "12:60", "25:00", "noon", "", "10:00:61"])
def test_parse_rejects_malformed(value):
    with pytest.raises(ValidationError):
        parse_time_of_day(value)


def test_parse_rejects_non_string():
    with pytest.raises(ValidationError, match="HH:MM"):
        parse_time_of_day(930)


def test_end_of_day_only_when_allowed():
    assert parse_time_of_day("24:00", allow_end_of_day=True) == 1440
    with pytest.raises(ValidationError):
        parse_time_of_day("24:30", allow_end_of_day=True)


def test_validation_error_is_value_error():
    """Callers catching ValueError still see malformed times."""
    with pytest.raises(ValueError):
        parse_time_of_day("bad")


def test_format_and_normalize():
    assert format_minutes(0) == "00:00"
    assert format_minutes(605) == "10:05"
    assert normalize_time("09:30:00") == "09:30"
    assert normalize_time("24:00", allow_end_of_day=True) == "24:00"


def test_weekday_index_starts_on_sunday():
    assert weekday_index(date(2026, 10, 18)) == 0  # Sunday
    assert weekday_index(date(2026, 10, 19)) == 1  # Monday
    assert weekday_index(date(2026, 10, 24)) == 6  # Saturday
