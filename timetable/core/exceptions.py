"""Error taxonomy raised by the timetable engine."""

from __future__ import annotations

from typing import Any

from pydantic import ValidationError


class TimetableError(Exception):
  """Base class for all timetable engine failures."""

  def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
    super().__init__(message)
    self.message = message
    self.details = dict(details or {})


class ScheduleValidationError(TimetableError):
  """Input was rejected before any write happened."""


class ScheduleConflictError(TimetableError):
  """The write conflicts with existing state for the day."""


class HolidayBlockedError(ScheduleConflictError):
  """Creation was requested on a holiday without forcing it."""


class SlotNotFoundError(TimetableError):
  """The referenced timetable slot no longer exists."""

  def __init__(self, slot_id: str) -> None:
    super().__init__(f"Timetable slot {slot_id} not found.", details={"slot_id": slot_id})
    self.slot_id = slot_id


class TimetableStoreError(TimetableError):
  """The slot store failed for a reason other than a conflict or a missing row."""

  def __init__(self, message: str, *, category: str = "unknown_error", details: dict[str, Any] | None = None) -> None:
    super().__init__(message, details=details)
    self.category = category


def _sanitize_validation_errors(errors: list[dict[str, Any]]) -> list[dict[str, Any]]:
  """Return pydantic errors without raw input payloads."""
  sanitized: list[dict[str, Any]] = []
  for error in errors:
    scrubbed = {key: value for key, value in error.items() if key not in {"input", "url", "ctx"}}
    scrubbed["loc"] = [str(part) for part in scrubbed.get("loc", ())]
    sanitized.append(scrubbed)
  return sanitized


def validation_error_from_pydantic(exc: ValidationError, *, message: str) -> ScheduleValidationError:
  """Convert a pydantic ValidationError into the engine's validation error."""
  return ScheduleValidationError(message, details={"errors": _sanitize_validation_errors(exc.errors())})
