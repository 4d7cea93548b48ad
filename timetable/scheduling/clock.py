"""Time-of-day arithmetic on a 24-hour clock.

Times are ``datetime.time`` values truncated to whole minutes. Arithmetic never
raises: adding minutes past 23:59 wraps the hour modulo 24 and the day boundary
is not tracked. Range checks belong to the callers (generation and editing).
"""

from __future__ import annotations

import datetime

MINUTES_PER_DAY = 24 * 60


def minutes_of_day(value: datetime.time) -> int:
  """Return minutes elapsed since midnight."""
  return value.hour * 60 + value.minute


def from_minutes(total: int) -> datetime.time:
  """Build a time from minutes since midnight, wrapping modulo 24 hours."""
  total %= MINUTES_PER_DAY
  return datetime.time(hour=total // 60, minute=total % 60)


def add_minutes(value: datetime.time, minutes: int) -> datetime.time:
  """Add a duration in minutes to a time of day with hour/day rollover."""
  return from_minutes(minutes_of_day(value) + minutes)


def before(left: datetime.time, right: datetime.time) -> bool:
  return minutes_of_day(left) < minutes_of_day(right)


def equal(left: datetime.time, right: datetime.time) -> bool:
  return minutes_of_day(left) == minutes_of_day(right)


def after_or_equal(left: datetime.time, right: datetime.time) -> bool:
  return minutes_of_day(left) >= minutes_of_day(right)


def minutes_until_midnight(value: datetime.time) -> int:
  """Return how many minutes are left in the day after `value`."""
  return MINUTES_PER_DAY - minutes_of_day(value)


def parse_time(raw: str | datetime.time) -> datetime.time:
  """Parse "HH:MM" or "HH:MM:SS" into a minute-precision time.

  Raises ValueError for malformed input.
  """
  if isinstance(raw, datetime.time):
    return raw.replace(second=0, microsecond=0, tzinfo=None)
  if not isinstance(raw, str):
    raise ValueError(f"Time must be a string in HH:MM or HH:MM:SS format, got {type(raw).__name__}.")

  text = raw.strip()
  for fmt in ("%H:%M", "%H:%M:%S"):
    try:
      parsed = datetime.datetime.strptime(text, fmt).time()
    except ValueError:
      continue
    return parsed.replace(second=0)
  raise ValueError(f"Time '{raw}' does not match expected formats: 'HH:MM' or 'HH:MM:SS'")


def format_time(value: datetime.time) -> str:
  """Render a time in the HH:MM:SS form used by the slot store."""
  return f"{value.hour:02d}:{value.minute:02d}:00"
