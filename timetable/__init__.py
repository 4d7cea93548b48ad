"""Timetable slot scheduling engine."""

from .core.exceptions import HolidayBlockedError, ScheduleConflictError, ScheduleValidationError, SlotNotFoundError, TimetableError, TimetableStoreError
from .schema.requests import BreakSpec, GenerationRequest, NewSlot, SlotPatch
from .services.schedule import DayView, EditOutcome, ScheduleController, ToggleOutcome

__all__ = [
  "BreakSpec",
  "DayView",
  "EditOutcome",
  "GenerationRequest",
  "HolidayBlockedError",
  "NewSlot",
  "ScheduleConflictError",
  "ScheduleController",
  "ScheduleValidationError",
  "SlotNotFoundError",
  "SlotPatch",
  "TimetableError",
  "TimetableStoreError",
  "ToggleOutcome",
]
