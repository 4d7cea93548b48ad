"""Idempotent ledger of which timetable slots were actually taught."""

from __future__ import annotations

import datetime
import logging
from collections.abc import Iterable
from dataclasses import dataclass

from timetable.core.exceptions import ScheduleConflictError, ScheduleValidationError
from timetable.storage.timetable_repo import SlotRecord, SyllabusRef, TaughtProgressRecord, TimetableRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TaughtSummary:
  """Count of taught periods against all periods of a day."""

  taught: int
  total: int

  @property
  def label(self) -> str:
    return f"{self.taught}/{self.total} periods taught"

  @property
  def ratio(self) -> float:
    if self.total == 0:
      return 0.0
    return self.taught / self.total


def summarize_taught(slots: Iterable[SlotRecord], taught_ids: Iterable[str]) -> TaughtSummary:
  """Count period slots in the taught set; breaks never count."""
  taught_set = set(taught_ids)
  periods = [slot for slot in slots if slot.is_period]
  taught = sum(1 for slot in periods if slot.slot_id in taught_set)
  return TaughtSummary(taught=taught, total=len(periods))


class TaughtProgressLedger:
  """Mark and unmark slots as taught.

  Each slot is either NotTaught or Taught and both transitions are defined in
  both states, so every call is safe to repeat or retry.
  """

  def __init__(self, repo: TimetableRepository) -> None:
    self._repo = repo

  async def mark_taught(self, school_code: str, slot: SlotRecord, syllabus: SyllabusRef | None = None, *, created_by: str | None = None) -> TaughtProgressRecord:
    """Record that a period was taught, returning the existing record when already marked."""
    if slot.slot_id is None:
      raise ValueError("Only stored slots can be marked as taught.")
    if not slot.is_period:
      raise ScheduleValidationError("Only period slots can be marked as taught.", details={"slot_id": slot.slot_id})

    existing = await self._repo.get_taught(school_code, slot.slot_id)
    if existing is not None:
      return existing

    # Denormalize the slot as it is right now so reporting survives later edits.
    ref = syllabus if syllabus is not None else slot.syllabus_ref
    record = TaughtProgressRecord(
      progress_id=None,
      school_code=school_code,
      slot_id=slot.slot_id,
      class_id=slot.class_id,
      slot_date=slot.slot_date,
      subject_id=slot.subject_id,
      teacher_id=slot.teacher_id,
      syllabus_chapter_id=ref.chapter_id,
      syllabus_topic_id=ref.topic_id,
      created_by=created_by,
    )

    try:
      created = await self._repo.insert_taught(record)
    except ScheduleConflictError:
      # A concurrent mark won the race; its record is the one we report.
      existing = await self._repo.get_taught(school_code, slot.slot_id)
      if existing is None:
        raise
      return existing

    logger.info("Marked slot taught slot_id=%s class_id=%s date=%s", slot.slot_id, slot.class_id, slot.slot_date)
    return created

  async def unmark_taught(self, school_code: str, slot_id: str) -> bool:
    """Remove the taught record for a slot; returns False when there was none."""
    removed = await self._repo.delete_taught(school_code, slot_id)
    if removed:
      logger.info("Unmarked slot taught slot_id=%s", slot_id)
    return removed

  async def is_taught(self, school_code: str, slot_id: str) -> bool:
    return await self._repo.get_taught(school_code, slot_id) is not None

  async def get_taught_set(self, school_code: str, class_id: str, slot_date: datetime.date) -> frozenset[str]:
    """Return the ids of slots with an active taught record for the day."""
    records = await self._repo.list_taught(school_code, class_id, slot_date)
    return frozenset(record.slot_id for record in records)
