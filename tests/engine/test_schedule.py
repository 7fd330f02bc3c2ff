"""Tests for schedule expansion and date helpers."""
from datetime import date, datetime

import pytest

from custom_components.medication_adherence.schedule import (
    as_date, dates_backwards, generate_times, is_active_on_date,
)

from .factories import make_medicine


@pytest.mark.parametrize(
    ("frequency", "expected"),
    [
        ("once-daily", ["09:00"]),
        ("twice-daily", ["09:00", "21:00"]),
        ("three-times-daily", ["08:00", "14:00", "20:00"]),
        ("four-times-daily", ["08:00", "12:00", "16:00", "20:00"]),
        ("weekly", []),
        ("", []),
    ],
)
def test_fixed_frequencies(frequency, expected):
    assert generate_times(make_medicine(frequency=frequency)) == expected


def test_custom_times_keep_given_order():
    medicine = make_medicine(frequency="custom-times", custom_times=("21:30", "", "07:15"))
    assert generate_times(medicine) == ["21:30", "07:15"]


def test_custom_times_missing():
    assert generate_times(make_medicine(frequency="custom-times")) == []


@pytest.mark.parametrize(
    ("interval", "expected"),
    [
        (8, ["08:00", "16:00"]),
        (5, ["08:00", "13:00", "18:00", "23:00"]),
        (24, ["08:00"]),
        (None, ["08:00", "16:00"]),
        (0, ["08:00", "16:00"]),
    ],
)
def test_interval_hours(interval, expected):
    medicine = make_medicine(frequency="interval-hours", interval_hours=interval)
    assert generate_times(medicine) == expected


def test_hourly_interval_stops_before_midnight():
    times = generate_times(make_medicine(frequency="interval-hours", interval_hours=1))
    assert len(times) == 16
    assert times[0] == "08:00"
    assert times[-1] == "23:00"


def test_active_without_end_date():
    medicine = make_medicine(start=date(2024, 1, 10))
    assert is_active_on_date(medicine, "2024-01-10")
    assert is_active_on_date(medicine, "2030-06-01")
    assert not is_active_on_date(medicine, "2024-01-09")


def test_active_end_date_is_inclusive():
    medicine = make_medicine(start=date(2024, 1, 10), end_date=date(2024, 1, 12))
    assert is_active_on_date(medicine, date(2024, 1, 12))
    assert not is_active_on_date(medicine, date(2024, 1, 13))


def test_active_ignores_time_of_day():
    medicine = make_medicine(start=date(2024, 1, 10))
    assert is_active_on_date(medicine, datetime(2024, 1, 10, 0, 1))


def test_dates_backwards():
    assert dates_backwards(3, date(2024, 3, 1)) == [
        date(2024, 2, 28),
        date(2024, 2, 29),
        date(2024, 3, 1),
    ]


def test_dates_backwards_week_ends_today():
    days = dates_backwards(7, date(2024, 3, 10))
    assert len(days) == 7
    assert days[0] == date(2024, 3, 4)
    assert days[-1] == date(2024, 3, 10)


def test_dates_backwards_empty():
    assert dates_backwards(0, date(2024, 3, 1)) == []


def test_as_date():
    assert as_date("2024-03-01") == date(2024, 3, 1)
    assert as_date(datetime(2024, 3, 1, 22, 0)) == date(2024, 3, 1)
    assert as_date(None) is None
