from __future__ import annotations

import datetime
from enum import Enum as PyEnum

from sqlalchemy import CheckConstraint, Date, DateTime, ForeignKey, Index, Integer, String, Text, Time, UniqueConstraint, func
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column

from timetable.core.database import Base


class SlotKind(str, PyEnum):
  PERIOD = "period"
  BREAK = "break"


def _slot_kind_values(enum_cls: type[PyEnum]) -> list[str]:
  """Persist enum values (e.g. `period`) instead of enum names (e.g. `PERIOD`)."""
  return [str(member.value) for member in enum_cls]


class TimetableSlot(Base):
  __tablename__ = "timetable_slots"
  __table_args__ = (
    # period_number is the storage sequence counter, not the displayed period.
    UniqueConstraint("school_code", "class_instance_id", "class_date", "period_number", name="ux_timetable_slots_day_period_number"),
    CheckConstraint("end_time > start_time", name="ck_timetable_slots_time_order"),
    CheckConstraint("syllabus_chapter_id IS NULL OR syllabus_topic_id IS NULL", name="ck_timetable_slots_single_syllabus_ref"),
    Index("ix_timetable_slots_day", "school_code", "class_instance_id", "class_date"),
  )

  id: Mapped[str] = mapped_column(String, primary_key=True)
  school_code: Mapped[str] = mapped_column(String, nullable=False)
  class_instance_id: Mapped[str] = mapped_column(String, nullable=False)
  class_date: Mapped[datetime.date] = mapped_column(Date, nullable=False)
  period_number: Mapped[int] = mapped_column(Integer, nullable=False)
  slot_type: Mapped[SlotKind] = mapped_column(SAEnum(SlotKind, name="timetable_slot_type", values_callable=_slot_kind_values), nullable=False)
  name: Mapped[str | None] = mapped_column(String, nullable=True)
  start_time: Mapped[datetime.time] = mapped_column(Time, nullable=False)
  end_time: Mapped[datetime.time] = mapped_column(Time, nullable=False)
  subject_id: Mapped[str | None] = mapped_column(String, nullable=True)
  teacher_id: Mapped[str | None] = mapped_column(String, nullable=True)
  syllabus_chapter_id: Mapped[str | None] = mapped_column(String, nullable=True)
  syllabus_topic_id: Mapped[str | None] = mapped_column(String, nullable=True)
  plan_text: Mapped[str | None] = mapped_column(Text, nullable=True)
  created_by: Mapped[str | None] = mapped_column(String, nullable=True)
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class SyllabusProgress(Base):
  __tablename__ = "syllabus_progress"
  __table_args__ = (
    UniqueConstraint("school_code", "timetable_slot_id", name="ux_syllabus_progress_slot"),
    Index("ix_syllabus_progress_day", "school_code", "class_instance_id", "date"),
  )

  id: Mapped[str] = mapped_column(String, primary_key=True)
  school_code: Mapped[str] = mapped_column(String, nullable=False)
  timetable_slot_id: Mapped[str] = mapped_column(ForeignKey("timetable_slots.id", ondelete="CASCADE"), nullable=False)
  class_instance_id: Mapped[str] = mapped_column(String, nullable=False)
  date: Mapped[datetime.date] = mapped_column(Date, nullable=False)
  subject_id: Mapped[str | None] = mapped_column(String, nullable=True)
  teacher_id: Mapped[str | None] = mapped_column(String, nullable=True)
  syllabus_chapter_id: Mapped[str | None] = mapped_column(String, nullable=True)
  syllabus_topic_id: Mapped[str | None] = mapped_column(String, nullable=True)
  created_by: Mapped[str | None] = mapped_column(String, nullable=True)
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
