"""Subject, teacher and syllabus names for rendering a loaded day."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Literal, Protocol

from timetable.scheduling.clock import format_time
from timetable.scheduling.sequencer import DEFAULT_BREAK_NAME
from timetable.services.schedule import DayView, SlotView

UNKNOWN_NAME = "unknown"
UNSET_NAME = "—"


@dataclass(frozen=True)
class SyllabusUnit:
  """A chapter ("3") or a topic within a chapter ("3.2")."""

  unit_no: str
  title: str
  kind: Literal["chapter", "topic"] = "chapter"

  @property
  def label(self) -> str:
    return f"Ch.{self.unit_no} {self.title}"


@dataclass(frozen=True)
class DirectorySnapshot:
  """Names known for a school and class at the time of rendering."""

  subjects: Mapping[str, str] = field(default_factory=dict)
  teachers: Mapping[str, str] = field(default_factory=dict)
  syllabus_units: Mapping[str, SyllabusUnit] = field(default_factory=dict)


class DirectoryLookup(Protocol):
  """Contract for the subject/teacher/syllabus directory."""

  async def snapshot(self, school_code: str, class_id: str) -> DirectorySnapshot:
    """Return the names needed to render one class's timetable."""


@dataclass(frozen=True)
class RenderedSlot:
  slot_id: str | None
  label: str
  time_range: str
  subject_name: str | None
  teacher_name: str | None
  syllabus_label: str
  is_taught: bool


def _name(names: Mapping[str, str], key: str | None) -> str:
  # Ids are opaque here: a dangling id renders as unknown rather than failing.
  if not key:
    return UNSET_NAME
  return names.get(key, UNKNOWN_NAME)


def syllabus_label(view: SlotView, directory: DirectorySnapshot) -> str:
  """Describe the syllabus unit a period covers, preferring the topic."""
  slot = view.slot
  for unit_id in (slot.syllabus_topic_id, slot.syllabus_chapter_id):
    if unit_id and unit_id in directory.syllabus_units:
      return directory.syllabus_units[unit_id].label
  return ""


def render_slot(view: SlotView, directory: DirectorySnapshot) -> RenderedSlot:
  slot = view.slot
  time_range = f"{format_time(slot.start_time)[:5]}–{format_time(slot.end_time)[:5]}"
  if not slot.is_period:
    return RenderedSlot(slot_id=slot.slot_id, label=slot.name or DEFAULT_BREAK_NAME, time_range=time_range, subject_name=None, teacher_name=None, syllabus_label="", is_taught=view.is_taught)

  return RenderedSlot(
    slot_id=slot.slot_id,
    label=f"Period {view.display_number}",
    time_range=time_range,
    subject_name=_name(directory.subjects, slot.subject_id),
    teacher_name=_name(directory.teachers, slot.teacher_id),
    syllabus_label=syllabus_label(view, directory),
    is_taught=view.is_taught,
  )


async def render_day(day: DayView, lookup: DirectoryLookup) -> list[RenderedSlot]:
  """Resolve names for every slot of a loaded day."""
  directory = await lookup.snapshot(day.school_code, day.class_id)
  return [render_slot(view, directory) for view in day.slots]
