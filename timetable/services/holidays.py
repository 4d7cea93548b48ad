"""Holiday lookups used to decide whether a day offers scheduling changes."""

from __future__ import annotations

import datetime
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Protocol

from timetable.config import weekday_name


@dataclass(frozen=True)
class HolidayInfo:
  """Why a date is not a working day."""

  title: str
  description: str | None = None
  event_type: str = "holiday"


class HolidayOracle(Protocol):
  """Contract for the school calendar."""

  async def holiday_info(self, school_code: str, on_date: datetime.date, class_id: str | None = None) -> HolidayInfo | None:
    """Return holiday details for the date, or None on a working day."""


class WeeklyOffHolidayOracle:
  """Treat configured weekdays as holidays and defer other dates to a calendar."""

  def __init__(self, *, weekly_off_days: Iterable[int] = (6,), calendar: HolidayOracle | None = None) -> None:
    self._weekly_off_days = frozenset(weekly_off_days)
    self._calendar = calendar

  async def holiday_info(self, school_code: str, on_date: datetime.date, class_id: str | None = None) -> HolidayInfo | None:
    weekday = on_date.weekday()
    if weekday in self._weekly_off_days:
      name = weekday_name(weekday)
      return HolidayInfo(title=name, description=f"{name} is a weekly off day. No timetable can be scheduled.")
    if self._calendar is None:
      return None
    return await self._calendar.holiday_info(school_code, on_date, class_id)

  async def is_holiday(self, school_code: str, on_date: datetime.date, class_id: str | None = None) -> bool:
    return await self.holiday_info(school_code, on_date, class_id) is not None
