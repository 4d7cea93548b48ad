"""Schedule controller: the entry point for one class's day of timetable slots.

Every operation takes the school code, class and date explicitly; the
controller holds no session state. Callers are expected to serialize writes
for the same (class, date), since neighbor adjustment reads a snapshot of the
day and writes based on it.
"""

from __future__ import annotations

import datetime
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Literal

from pydantic import ValidationError

from timetable.core.exceptions import HolidayBlockedError, ScheduleConflictError, ScheduleValidationError, SlotNotFoundError, TimetableError, validation_error_from_pydantic
from timetable.scheduling.clock import before, format_time
from timetable.scheduling.contiguity import NeighborUpdate, adjust_neighbors, find_gaps
from timetable.scheduling.sequencer import DEFAULT_BREAK_NAME, build_slot_plan, coerce_generation_request, next_sequence_number, number_periods, sort_by_start
from timetable.schema.requests import GenerationRequest, NewSlot, SlotPatch
from timetable.schema.timetable import SlotKind
from timetable.services.holidays import HolidayInfo, HolidayOracle
from timetable.services.progress import TaughtProgressLedger, TaughtSummary, summarize_taught
from timetable.storage.timetable_repo import SlotRecord, SyllabusRef, TaughtProgressRecord, TimetableRepository

logger = logging.getLogger(__name__)

_PERIOD_ONLY_FIELDS = ("subject_id", "teacher_id", "syllabus_chapter_id", "syllabus_topic_id", "plan_text")


@dataclass(frozen=True)
class SlotView:
  """A stored slot annotated for display."""

  slot: SlotRecord
  display_number: int | None
  is_taught: bool


@dataclass(frozen=True)
class DayView:
  """Everything needed to show one class's day."""

  school_code: str
  class_id: str
  slot_date: datetime.date
  slots: list[SlotView]
  summary: TaughtSummary
  holiday: HolidayInfo | None = None
  gaps: list[tuple[str, str]] = field(default_factory=list)

  @property
  def can_modify(self) -> bool:
    """Whether generation and slot creation should be offered."""
    return self.holiday is None


@dataclass(frozen=True)
class NeighborFailure:
  """A neighbor write that failed after the primary edit was committed."""

  update: NeighborUpdate
  error: TimetableError


@dataclass(frozen=True)
class EditOutcome:
  """Result of an edit: the committed slot plus what happened to its neighbors."""

  slot: SlotRecord
  neighbor_updates: list[NeighborUpdate] = field(default_factory=list)
  failed_updates: list[NeighborFailure] = field(default_factory=list)
  taught_cleared: bool = False

  @property
  def status(self) -> Literal["ok", "partial"]:
    return "partial" if self.failed_updates else "ok"


@dataclass(frozen=True)
class ToggleOutcome:
  """Taught state of a slot after a toggle."""

  slot_id: str
  taught: bool
  record: TaughtProgressRecord | None = None


def _coerce_model(model: type[Any], raw: Any, *, message: str) -> Any:
  if isinstance(raw, model):
    return raw
  if not isinstance(raw, Mapping):
    raise ScheduleValidationError(message, details={"errors": [{"msg": f"Expected a mapping, got {type(raw).__name__}."}]})
  try:
    return model.model_validate(dict(raw))
  except ValidationError as exc:
    raise validation_error_from_pydantic(exc, message=message) from exc


def _normalize_slot_fields(values: dict[str, Any]) -> dict[str, Any]:
  """Validate a slot's full field set as it would be committed.

  Breaks need a name and carry no teaching fields; periods carry no name,
  have subject and teacher both set or both unset, and reference a chapter or
  a topic but never both.
  """
  normalized = dict(values)
  missing = [key for key in ("kind", "start_time", "end_time") if normalized.get(key) is None]
  if missing:
    raise ScheduleValidationError("Slot kind, start time and end time are required.", details={"missing": missing})
  start = normalized["start_time"]
  end = normalized["end_time"]
  if not before(start, end):
    raise ScheduleValidationError("End time must be after start time on the same day.", details={"start_time": format_time(start), "end_time": format_time(end)})

  if normalized["kind"] == SlotKind.BREAK:
    name = (normalized.get("name") or "").strip()
    normalized["name"] = name or DEFAULT_BREAK_NAME
    for key in _PERIOD_ONLY_FIELDS:
      normalized[key] = None
    return normalized

  normalized["name"] = None
  if bool(normalized.get("subject_id")) != bool(normalized.get("teacher_id")):
    raise ScheduleValidationError("A period needs both a subject and a teacher, or neither.", details={"subject_id": normalized.get("subject_id"), "teacher_id": normalized.get("teacher_id")})
  if normalized.get("syllabus_chapter_id") and normalized.get("syllabus_topic_id"):
    raise ScheduleValidationError("A period references a syllabus chapter or a topic, not both.")
  return normalized


def _first_overlap(start: datetime.time, end: datetime.time, slots: list[SlotRecord]) -> SlotRecord | None:
  return next((slot for slot in slots if before(start, slot.end_time) and before(slot.start_time, end)), None)


def _slot_fields(slot: SlotRecord) -> dict[str, Any]:
  return {
    "kind": slot.kind,
    "name": slot.name,
    "start_time": slot.start_time,
    "end_time": slot.end_time,
    "subject_id": slot.subject_id,
    "teacher_id": slot.teacher_id,
    "syllabus_chapter_id": slot.syllabus_chapter_id,
    "syllabus_topic_id": slot.syllabus_topic_id,
    "plan_text": slot.plan_text,
  }


class ScheduleController:
  """Load, generate, edit, delete and toggle-taught for one (class, date) at a time."""

  def __init__(self, repo: TimetableRepository, *, holidays: HolidayOracle | None = None, enforce_single_day: bool = True) -> None:
    self._repo = repo
    self._holidays = holidays
    self._enforce_single_day = enforce_single_day
    self.ledger = TaughtProgressLedger(repo)

  async def load(self, school_code: str, class_id: str, slot_date: datetime.date) -> DayView:
    """Fetch the day's slots with display numbers, taught flags and holiday info."""
    slots = await self._repo.list_by_day(school_code, class_id, slot_date)
    taught = await self.ledger.get_taught_set(school_code, class_id, slot_date)
    holiday = await self._holiday_info(school_code, class_id, slot_date)

    views = [SlotView(slot=slot, display_number=number, is_taught=slot.slot_id in taught) for slot, number in number_periods(slots)]
    gaps = [(left.slot_id, right.slot_id) for left, right in find_gaps(slots) if left.slot_id and right.slot_id]
    return DayView(school_code=school_code, class_id=class_id, slot_date=slot_date, slots=views, summary=summarize_taught(slots, taught), holiday=holiday, gaps=gaps)

  async def generate(self, school_code: str, class_id: str, slot_date: datetime.date, request: GenerationRequest | Mapping[str, Any], *, created_by: str | None = None, force: bool = False) -> list[SlotRecord]:
    """Generate and store a full day's skeleton; the day must be empty."""
    request = coerce_generation_request(request)
    plan = build_slot_plan(request, school_code=school_code, class_id=class_id, slot_date=slot_date, created_by=created_by, enforce_single_day=self._enforce_single_day)
    await self._ensure_working_day(school_code, class_id, slot_date, force=force)

    existing = await self._repo.list_by_day(school_code, class_id, slot_date)
    if existing:
      raise ScheduleConflictError("Slots already exist for this day; clear it before generating.", details={"class_id": class_id, "date": slot_date.isoformat(), "existing_slots": len(existing)})

    created = await self._repo.insert_batch(plan)
    logger.info("Generated %d slots (%d periods) class_id=%s date=%s", len(created), request.num_periods, class_id, slot_date)
    return created

  async def add_slot(self, school_code: str, class_id: str, slot_date: datetime.date, new_slot: NewSlot | Mapping[str, Any], *, created_by: str | None = None, force: bool = False) -> SlotRecord:
    """Add one period or break to a day without overlapping existing slots."""
    new_slot = _coerce_model(NewSlot, new_slot, message="Invalid slot.")
    fields = _normalize_slot_fields(new_slot.model_dump())
    await self._ensure_working_day(school_code, class_id, slot_date, force=force)

    existing = await self._repo.list_by_day(school_code, class_id, slot_date)
    clash = _first_overlap(fields["start_time"], fields["end_time"], existing)
    if clash is not None:
      raise ScheduleConflictError("New slot overlaps an existing slot.", details={"slot_id": clash.slot_id, "start_time": format_time(clash.start_time), "end_time": format_time(clash.end_time)})

    record = SlotRecord(slot_id=None, school_code=school_code, class_id=class_id, slot_date=slot_date, sequence_number=next_sequence_number(existing), created_by=created_by, **fields)
    (created,) = await self._repo.insert_batch([record])
    logger.info("Added %s slot slot_id=%s class_id=%s date=%s", created.kind.value, created.slot_id, class_id, slot_date)
    return created

  async def copy_day(
    self,
    school_code: str,
    class_id: str,
    source_date: datetime.date,
    target_date: datetime.date,
    *,
    include_breaks: bool = True,
    include_lessons: bool = True,
    replace: bool = True,
    created_by: str | None = None,
    force: bool = False,
  ) -> list[SlotRecord]:
    """Copy another day's slots onto `target_date`.

    Times, teaching fields and syllabus references are carried over; taught
    state is not. In replace mode the target day is cleared first, otherwise the
    copied slots must fit around the slots already there. Copies are numbered
    after the target's highest sequence number and written as one batch.
    """
    if source_date == target_date:
      raise ScheduleValidationError("Source and target dates must differ.", details={"date": target_date.isoformat()})
    await self._ensure_working_day(school_code, class_id, target_date, force=force)

    source = await self._repo.list_by_day(school_code, class_id, source_date)
    picked = [slot for slot in sort_by_start(source) if (include_lessons if slot.is_period else include_breaks)]
    if not picked:
      logger.info("Nothing to copy class_id=%s source=%s target=%s", class_id, source_date, target_date)
      return []

    existing = [] if replace else await self._repo.list_by_day(school_code, class_id, target_date)
    for slot in picked:
      clash = _first_overlap(slot.start_time, slot.end_time, existing)
      if clash is not None:
        raise ScheduleConflictError(
          "Copied slot overlaps an existing slot.",
          details={"slot_id": clash.slot_id, "start_time": format_time(slot.start_time), "end_time": format_time(slot.end_time)},
        )

    first_seq = next_sequence_number(existing)
    plan = [
      SlotRecord(slot_id=None, school_code=school_code, class_id=class_id, slot_date=target_date, sequence_number=first_seq + offset, created_by=created_by or slot.created_by, **_slot_fields(slot))
      for offset, slot in enumerate(picked)
    ]

    if replace:
      removed = await self._repo.delete_day(school_code, class_id, target_date)
      logger.info("Cleared %d slots before copy class_id=%s date=%s", removed, class_id, target_date)
    created = await self._repo.insert_batch(plan)
    logger.info("Copied %d slots class_id=%s source=%s target=%s replace=%s", len(created), class_id, source_date, target_date, replace)
    return created

  async def edit_slot(self, school_code: str, class_id: str, slot_date: datetime.date, slot_id: str, patch: SlotPatch | Mapping[str, Any]) -> EditOutcome:
    """Apply field changes to a slot and keep its time neighbors flush.

    Neighbor writes are best effort: a failed one is reported in the outcome
    and the primary edit is kept.
    """
    patch = _coerce_model(SlotPatch, patch, message="Invalid slot changes.")
    slots = await self._repo.list_by_day(school_code, class_id, slot_date)
    current = next((slot for slot in slots if slot.slot_id == slot_id), None)
    if current is None:
      raise SlotNotFoundError(slot_id)

    original = _slot_fields(current)
    merged = _normalize_slot_fields({**original, **patch.changes()})
    changed = {key: value for key, value in merged.items() if value != original[key]}
    if not changed:
      return EditOutcome(slot=current)

    # Neighbors are computed from the pre-edit snapshot, before anything is written.
    updates: list[NeighborUpdate] = []
    if "start_time" in changed or "end_time" in changed:
      updates = adjust_neighbors(slots, slot_id, merged["start_time"], merged["end_time"])

    updated = await self._repo.update(school_code, slot_id, changed)
    # A slot that stops being a period cannot stay in the taught ledger.
    taught_cleared = False
    if changed.get("kind") == SlotKind.BREAK:
      taught_cleared = await self.ledger.unmark_taught(school_code, slot_id)

    failed: list[NeighborFailure] = []
    for update in updates:
      try:
        await self._repo.update(school_code, update.slot_id, {update.field: update.value})
      except TimetableError as exc:
        logger.warning("Neighbor adjustment failed slot_id=%s neighbor_id=%s field=%s error=%s", slot_id, update.slot_id, update.field, exc.message)
        failed.append(NeighborFailure(update=update, error=exc))

    logger.info("Edited slot slot_id=%s fields=%s neighbor_updates=%d failed=%d", slot_id, sorted(changed), len(updates), len(failed))
    return EditOutcome(slot=updated, neighbor_updates=updates, failed_updates=failed, taught_cleared=taught_cleared)

  async def retry_neighbor_update(self, school_code: str, update: NeighborUpdate) -> SlotRecord:
    """Re-apply a single neighbor write reported as failed by `edit_slot`."""
    return await self._repo.update(school_code, update.slot_id, {update.field: update.value})

  async def delete_slot(self, school_code: str, slot_id: str) -> None:
    """Remove a slot. The gap it leaves is not healed."""
    await self._repo.delete(school_code, slot_id)
    logger.info("Deleted slot slot_id=%s", slot_id)

  async def clear_day(self, school_code: str, class_id: str, slot_date: datetime.date) -> int:
    """Remove every slot of the day so it can be generated again."""
    removed = await self._repo.delete_day(school_code, class_id, slot_date)
    logger.info("Cleared %d slots class_id=%s date=%s", removed, class_id, slot_date)
    return removed

  async def toggle_taught(self, school_code: str, slot_id: str, *, syllabus: SyllabusRef | None = None, created_by: str | None = None) -> ToggleOutcome:
    """Flip a slot between taught and not taught."""
    slot = await self._repo.get_slot(school_code, slot_id)
    if slot is None:
      raise SlotNotFoundError(slot_id)

    if await self.ledger.is_taught(school_code, slot_id):
      await self.ledger.unmark_taught(school_code, slot_id)
      return ToggleOutcome(slot_id=slot_id, taught=False)

    record = await self.ledger.mark_taught(school_code, slot, syllabus, created_by=created_by)
    return ToggleOutcome(slot_id=slot_id, taught=True, record=record)

  async def _holiday_info(self, school_code: str, class_id: str, slot_date: datetime.date) -> HolidayInfo | None:
    if self._holidays is None:
      return None
    return await self._holidays.holiday_info(school_code, slot_date, class_id)

  async def _ensure_working_day(self, school_code: str, class_id: str, slot_date: datetime.date, *, force: bool) -> None:
    if force:
      return
    holiday = await self._holiday_info(school_code, class_id, slot_date)
    if holiday is not None:
      logger.warning("Refusing schedule change on holiday class_id=%s date=%s title=%s", class_id, slot_date, holiday.title)
      raise HolidayBlockedError(f"{slot_date.isoformat()} is a holiday ({holiday.title}).", details={"title": holiday.title, "date": slot_date.isoformat()})
