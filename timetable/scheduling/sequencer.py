"""Bulk generation of a day's slot skeleton and display period numbering."""

from __future__ import annotations

import datetime
import logging
from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import ValidationError

from timetable.core.exceptions import ScheduleValidationError, validation_error_from_pydantic
from timetable.scheduling.clock import add_minutes, minutes_until_midnight
from timetable.schema.requests import GenerationRequest
from timetable.schema.timetable import SlotKind
from timetable.storage.timetable_repo import SlotRecord

logger = logging.getLogger(__name__)

DEFAULT_BREAK_NAME = "Break"


def coerce_generation_request(raw: GenerationRequest | Mapping[str, Any]) -> GenerationRequest:
  """Validate a raw payload into a GenerationRequest."""
  if isinstance(raw, GenerationRequest):
    return raw
  try:
    return GenerationRequest.model_validate(dict(raw))
  except ValidationError as exc:
    raise validation_error_from_pydantic(exc, message="Invalid generation request.") from exc
  except TypeError as exc:
    raise ScheduleValidationError("Generation request must be a mapping of fields.") from exc


def check_fits_in_day(request: GenerationRequest) -> None:
  """Reject plans whose last slot would end at or after midnight."""
  available = minutes_until_midnight(request.start_time)
  total = request.total_minutes()
  if total >= available:
    raise ScheduleValidationError(
      "Generated day does not fit before midnight.",
      details={"total_minutes": total, "available_minutes": available},
    )


def build_slot_plan(
  request: GenerationRequest | Mapping[str, Any], *, school_code: str, class_id: str, slot_date: datetime.date, created_by: str | None = None, enforce_single_day: bool = True
) -> list[SlotRecord]:
  """Turn a generation request into ordered slot payloads for one batch insert.

  Periods get subject and teacher left unset; the plan only establishes the time
  skeleton. Sequence numbers follow emission order regardless of slot kind, so a
  break never competes with a period for the same storage number. Validation
  happens before anything is emitted, so no partial plan is ever returned.
  """
  request = coerce_generation_request(request)
  if enforce_single_day:
    check_fits_in_day(request)

  clock = request.start_time
  seq = 1
  plan: list[SlotRecord] = []

  for period_index in range(1, request.num_periods + 1):
    end = add_minutes(clock, request.period_duration_minutes)
    plan.append(SlotRecord(slot_id=None, school_code=school_code, class_id=class_id, slot_date=slot_date, sequence_number=seq, kind=SlotKind.PERIOD, start_time=clock, end_time=end, created_by=created_by))
    seq += 1
    clock = end

    spec = request.break_after(period_index)
    if spec is not None and spec.duration_minutes > 0:
      break_end = add_minutes(clock, spec.duration_minutes)
      plan.append(
        SlotRecord(
          slot_id=None,
          school_code=school_code,
          class_id=class_id,
          slot_date=slot_date,
          sequence_number=seq,
          kind=SlotKind.BREAK,
          start_time=clock,
          end_time=break_end,
          name=spec.name or DEFAULT_BREAK_NAME,
          created_by=created_by,
        )
      )
      seq += 1
      clock = break_end

  logger.debug("Planned %d slots (%d periods) for class_id=%s date=%s", len(plan), request.num_periods, class_id, slot_date)
  return plan


def sort_by_start(slots: Iterable[SlotRecord]) -> list[SlotRecord]:
  """Order slots by start time; the sequence number breaks ties deterministically."""
  return sorted(slots, key=lambda slot: (slot.start_time, slot.sequence_number))


def number_periods(slots: Iterable[SlotRecord]) -> list[tuple[SlotRecord, int | None]]:
  """Pair each slot, in time order, with its display period number.

  The k-th period gets k; breaks get None. Computed on every read so edits,
  insertions and deletions can never leave a stale number behind.
  """
  numbered: list[tuple[SlotRecord, int | None]] = []
  counter = 0
  for slot in sort_by_start(slots):
    if slot.is_period:
      counter += 1
      numbered.append((slot, counter))
    else:
      numbered.append((slot, None))
  return numbered


def display_period_numbers(slots: Iterable[SlotRecord]) -> dict[str, int]:
  """Map each stored period's id to its display period number."""
  return {slot.slot_id: number for slot, number in number_periods(slots) if number is not None and slot.slot_id is not None}


def next_sequence_number(slots: Iterable[SlotRecord]) -> int:
  """Return a storage sequence number that does not collide with existing slots."""
  return max((slot.sequence_number for slot in slots), default=0) + 1


def suggest_next_slot(slots: Iterable[SlotRecord], duration_minutes: int, *, default_start: datetime.time = datetime.time(9, 0)) -> tuple[datetime.time, datetime.time]:
  """Propose start and end times for a slot appended after the day's last slot."""
  ordered = sort_by_start(slots)
  start = ordered[-1].end_time if ordered else default_start
  return start, add_minutes(start, duration_minutes)
