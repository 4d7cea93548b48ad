"""Wire configuration, logging and storage into a schedule controller."""

from __future__ import annotations

from timetable.config import Settings, get_settings
from timetable.core.logging import _initialize_logging
from timetable.services.holidays import HolidayOracle, WeeklyOffHolidayOracle
from timetable.services.schedule import ScheduleController
from timetable.storage.postgres_timetable_repo import PostgresTimetableRepository
from timetable.storage.timetable_repo import TimetableRepository


def _get_repo(settings: Settings) -> TimetableRepository:
  """Return the Postgres-backed slot store."""
  return PostgresTimetableRepository(max_attempts=settings.db_retry_attempts)


def build_schedule_controller(settings: Settings | None = None, *, calendar: HolidayOracle | None = None, repo: TimetableRepository | None = None, configure_logging: bool = True) -> ScheduleController:
  """Build a controller from settings, with the weekly-off wrapper around `calendar`."""
  settings = settings or get_settings()
  if configure_logging:
    _initialize_logging(settings)
  holidays = WeeklyOffHolidayOracle(weekly_off_days=settings.weekly_off_days, calendar=calendar)
  return ScheduleController(repo or _get_repo(settings), holidays=holidays, enforce_single_day=settings.enforce_single_day)
