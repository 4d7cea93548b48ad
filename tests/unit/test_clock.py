from __future__ import annotations

import datetime

import pytest

from timetable.scheduling.clock import add_minutes, after_or_equal, before, equal, format_time, minutes_until_midnight, parse_time


def test_add_minutes_rolls_over_the_hour() -> None:
  assert add_minutes(datetime.time(9, 40), 40) == datetime.time(10, 20)


def test_add_minutes_wraps_past_midnight() -> None:
  assert add_minutes(datetime.time(23, 30), 45) == datetime.time(0, 15)


def test_comparisons_ignore_seconds() -> None:
  assert equal(datetime.time(9, 0), datetime.time(9, 0, 30))
  assert before(datetime.time(8, 59), datetime.time(9, 0))
  assert not before(datetime.time(9, 0), datetime.time(9, 0))
  assert after_or_equal(datetime.time(9, 0), datetime.time(9, 0))


def test_minutes_until_midnight() -> None:
  assert minutes_until_midnight(datetime.time(22, 0)) == 120


@pytest.mark.parametrize("raw", ["09:05", "09:05:00", " 09:05:59 "])
def test_parse_time_accepts_both_formats(raw: str) -> None:
  assert parse_time(raw) == datetime.time(9, 5)


@pytest.mark.parametrize("raw", ["9h05", "25:00", "", "09:60"])
def test_parse_time_rejects_malformed_input(raw: str) -> None:
  with pytest.raises(ValueError):
    parse_time(raw)


def test_format_time_uses_store_format() -> None:
  assert format_time(datetime.time(7, 5)) == "07:05:00"
