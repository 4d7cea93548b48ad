"""Storage interfaces and records for timetable slot persistence."""

from __future__ import annotations

import datetime
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Protocol

from timetable.schema.timetable import SlotKind

# Fields an edit may change on an existing slot. Partition keys and the
# storage sequence number are fixed once a slot is written.
UPDATABLE_SLOT_FIELDS = frozenset({"kind", "name", "start_time", "end_time", "subject_id", "teacher_id", "syllabus_chapter_id", "syllabus_topic_id", "plan_text"})


@dataclass(frozen=True)
class SyllabusRef:
  """Reference to a syllabus chapter or to a single topic, never both."""

  chapter_id: str | None = None
  topic_id: str | None = None

  def __post_init__(self) -> None:
    if self.chapter_id and self.topic_id:
      raise ValueError("A syllabus reference points to a chapter or a topic, not both.")

  @property
  def is_empty(self) -> bool:
    return not self.chapter_id and not self.topic_id


@dataclass(frozen=True)
class SlotRecord:
  """Record stored in the timetable_slots table."""

  slot_id: str | None
  school_code: str
  class_id: str
  slot_date: datetime.date
  sequence_number: int
  kind: SlotKind
  start_time: datetime.time
  end_time: datetime.time
  name: str | None = None
  subject_id: str | None = None
  teacher_id: str | None = None
  syllabus_chapter_id: str | None = None
  syllabus_topic_id: str | None = None
  plan_text: str | None = None
  created_by: str | None = None

  @property
  def is_period(self) -> bool:
    return self.kind == SlotKind.PERIOD

  @property
  def syllabus_ref(self) -> SyllabusRef:
    return SyllabusRef(chapter_id=self.syllabus_chapter_id, topic_id=self.syllabus_topic_id)


@dataclass(frozen=True)
class TaughtProgressRecord:
  """Record stored in the syllabus_progress table.

  Slot attributes are copied at marking time so reporting never re-joins the
  slot table after the slot changes.
  """

  progress_id: str | None
  school_code: str
  slot_id: str
  class_id: str
  slot_date: datetime.date
  subject_id: str | None
  teacher_id: str | None
  syllabus_chapter_id: str | None = None
  syllabus_topic_id: str | None = None
  created_by: str | None = None


class TimetableRepository(Protocol):
  """Repository contract for the slot store and its progress sub-store.

  Every call is scoped by the caller-resolved school code.
  """

  async def list_by_day(self, school_code: str, class_id: str, slot_date: datetime.date) -> list[SlotRecord]:
    """List the slots of one class and day, ordered by start time."""

  async def get_slot(self, school_code: str, slot_id: str) -> SlotRecord | None:
    """Fetch a single slot by identifier."""

  async def insert_batch(self, records: list[SlotRecord]) -> list[SlotRecord]:
    """Persist all records atomically and return them with assigned ids."""

  async def update(self, school_code: str, slot_id: str, fields: Mapping[str, Any]) -> SlotRecord:
    """Apply field changes to one slot; raises SlotNotFoundError when it is gone."""

  async def delete(self, school_code: str, slot_id: str) -> None:
    """Delete one slot; raises SlotNotFoundError when it is gone."""

  async def delete_day(self, school_code: str, class_id: str, slot_date: datetime.date) -> int:
    """Delete every slot of one class and day, returning the number removed."""

  async def list_taught(self, school_code: str, class_id: str, slot_date: datetime.date) -> list[TaughtProgressRecord]:
    """List progress records for one class and day."""

  async def get_taught(self, school_code: str, slot_id: str) -> TaughtProgressRecord | None:
    """Fetch the progress record for a slot, if any."""

  async def insert_taught(self, record: TaughtProgressRecord) -> TaughtProgressRecord:
    """Persist a progress record; raises ScheduleConflictError if the slot already has one."""

  async def delete_taught(self, school_code: str, slot_id: str) -> bool:
    """Delete the progress record for a slot, returning whether one existed."""
