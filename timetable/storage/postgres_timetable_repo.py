"""Postgres-backed slot store using SQLAlchemy."""

from __future__ import annotations

import datetime
import logging
from collections.abc import Mapping
from typing import Any

from sqlalchemy import delete, select

from timetable.core.database import get_session_factory
from timetable.core.exceptions import SlotNotFoundError
from timetable.schema.timetable import SyllabusProgress, TimetableSlot
from timetable.storage.timetable_repo import UPDATABLE_SLOT_FIELDS, SlotRecord, TaughtProgressRecord, TimetableRepository
from timetable.utils.db_retry import execute_with_retry
from timetable.utils.ids import generate_progress_id, generate_slot_id

logger = logging.getLogger(__name__)

# Record field name -> ORM column attribute where they differ.
_SLOT_COLUMNS = {"kind": "slot_type"}


class PostgresTimetableRepository(TimetableRepository):
  """Persist timetable slots and taught progress to Postgres using SQLAlchemy."""

  def __init__(self, *, max_attempts: int = 2) -> None:
    self._session_factory = get_session_factory()
    if self._session_factory is None:
      raise RuntimeError("Database not initialized")
    self._max_attempts = max_attempts

  async def list_by_day(self, school_code: str, class_id: str, slot_date: datetime.date) -> list[SlotRecord]:
    """List the slots of one class and day, ordered by start time."""

    async def _query() -> list[SlotRecord]:
      async with self._session_factory() as session:
        stmt = (
          select(TimetableSlot)
          .where(TimetableSlot.school_code == school_code, TimetableSlot.class_instance_id == class_id, TimetableSlot.class_date == slot_date)
          .order_by(TimetableSlot.start_time, TimetableSlot.period_number)
        )
        result = await session.execute(stmt)
        return [self._slot_to_record(row) for row in result.scalars().all()]

    return await execute_with_retry(operation_name="list_slots_by_day", func=_query, max_attempts=self._max_attempts)

  async def get_slot(self, school_code: str, slot_id: str) -> SlotRecord | None:
    """Fetch a single slot by identifier."""

    async def _query() -> SlotRecord | None:
      async with self._session_factory() as session:
        row = await session.get(TimetableSlot, slot_id)
        if row is None or row.school_code != school_code:
          return None
        return self._slot_to_record(row)

    return await execute_with_retry(operation_name="get_slot", func=_query, max_attempts=self._max_attempts)

  async def insert_batch(self, records: list[SlotRecord]) -> list[SlotRecord]:
    """Persist all records in one transaction."""
    if not records:
      return []

    async def _insert() -> list[SlotRecord]:
      async with self._session_factory() as session:
        rows: list[TimetableSlot] = []
        for r in records:
          row = TimetableSlot(
            id=r.slot_id or generate_slot_id(),
            school_code=r.school_code,
            class_instance_id=r.class_id,
            class_date=r.slot_date,
            period_number=r.sequence_number,
            slot_type=r.kind,
            name=r.name,
            start_time=r.start_time,
            end_time=r.end_time,
            subject_id=r.subject_id,
            teacher_id=r.teacher_id,
            syllabus_chapter_id=r.syllabus_chapter_id,
            syllabus_topic_id=r.syllabus_topic_id,
            plan_text=r.plan_text,
            created_by=r.created_by,
          )
          session.add(row)
          rows.append(row)
        await session.commit()
        return [self._slot_to_record(row) for row in rows]

    return await execute_with_retry(operation_name="insert_slot_batch", func=_insert, max_attempts=self._max_attempts)

  async def update(self, school_code: str, slot_id: str, fields: Mapping[str, Any]) -> SlotRecord:
    """Apply field changes to one slot."""
    unknown = set(fields) - UPDATABLE_SLOT_FIELDS
    if unknown:
      raise ValueError(f"Unsupported slot fields for update: {sorted(unknown)}")

    async def _update() -> SlotRecord:
      async with self._session_factory() as session:
        row = await session.get(TimetableSlot, slot_id)
        if row is None or row.school_code != school_code:
          raise SlotNotFoundError(slot_id)
        for key, value in fields.items():
          setattr(row, _SLOT_COLUMNS.get(key, key), value)
        session.add(row)
        await session.commit()
        return self._slot_to_record(row)

    return await execute_with_retry(operation_name="update_slot", func=_update, max_attempts=self._max_attempts)

  async def delete(self, school_code: str, slot_id: str) -> None:
    """Delete one slot; its progress row goes with it through the FK cascade."""

    async def _delete() -> None:
      async with self._session_factory() as session:
        stmt = delete(TimetableSlot).where(TimetableSlot.id == slot_id, TimetableSlot.school_code == school_code)
        result = await session.execute(stmt)
        if not result.rowcount:
          await session.rollback()
          raise SlotNotFoundError(slot_id)
        await session.commit()

    await execute_with_retry(operation_name="delete_slot", func=_delete, max_attempts=self._max_attempts)

  async def delete_day(self, school_code: str, class_id: str, slot_date: datetime.date) -> int:
    """Delete every slot of one class and day."""

    async def _delete() -> int:
      async with self._session_factory() as session:
        stmt = delete(TimetableSlot).where(TimetableSlot.school_code == school_code, TimetableSlot.class_instance_id == class_id, TimetableSlot.class_date == slot_date)
        result = await session.execute(stmt)
        await session.commit()
        return int(result.rowcount or 0)

    return await execute_with_retry(operation_name="delete_slot_day", func=_delete, max_attempts=self._max_attempts)

  async def list_taught(self, school_code: str, class_id: str, slot_date: datetime.date) -> list[TaughtProgressRecord]:
    """List progress records for one class and day."""

    async def _query() -> list[TaughtProgressRecord]:
      async with self._session_factory() as session:
        stmt = select(SyllabusProgress).where(SyllabusProgress.school_code == school_code, SyllabusProgress.class_instance_id == class_id, SyllabusProgress.date == slot_date)
        result = await session.execute(stmt)
        return [self._progress_to_record(row) for row in result.scalars().all()]

    return await execute_with_retry(operation_name="list_taught", func=_query, max_attempts=self._max_attempts)

  async def get_taught(self, school_code: str, slot_id: str) -> TaughtProgressRecord | None:
    """Fetch the progress record for a slot."""

    async def _query() -> TaughtProgressRecord | None:
      async with self._session_factory() as session:
        stmt = select(SyllabusProgress).where(SyllabusProgress.school_code == school_code, SyllabusProgress.timetable_slot_id == slot_id)
        result = await session.execute(stmt)
        row = result.scalar_one_or_none()
        return self._progress_to_record(row) if row is not None else None

    return await execute_with_retry(operation_name="get_taught", func=_query, max_attempts=self._max_attempts)

  async def insert_taught(self, record: TaughtProgressRecord) -> TaughtProgressRecord:
    """Persist a progress record; the unique key turns a duplicate into a conflict."""

    async def _insert() -> TaughtProgressRecord:
      async with self._session_factory() as session:
        row = SyllabusProgress(
          id=record.progress_id or generate_progress_id(),
          school_code=record.school_code,
          timetable_slot_id=record.slot_id,
          class_instance_id=record.class_id,
          date=record.slot_date,
          subject_id=record.subject_id,
          teacher_id=record.teacher_id,
          syllabus_chapter_id=record.syllabus_chapter_id,
          syllabus_topic_id=record.syllabus_topic_id,
          created_by=record.created_by,
        )
        session.add(row)
        await session.commit()
        return self._progress_to_record(row)

    return await execute_with_retry(operation_name="insert_taught", func=_insert, max_attempts=self._max_attempts)

  async def delete_taught(self, school_code: str, slot_id: str) -> bool:
    """Delete the progress record for a slot."""

    async def _delete() -> bool:
      async with self._session_factory() as session:
        stmt = delete(SyllabusProgress).where(SyllabusProgress.school_code == school_code, SyllabusProgress.timetable_slot_id == slot_id)
        result = await session.execute(stmt)
        await session.commit()
        return bool(result.rowcount)

    return await execute_with_retry(operation_name="delete_taught", func=_delete, max_attempts=self._max_attempts)

  def _slot_to_record(self, row: TimetableSlot) -> SlotRecord:
    """Convert a SQLAlchemy model to a domain record."""
    return SlotRecord(
      slot_id=row.id,
      school_code=row.school_code,
      class_id=row.class_instance_id,
      slot_date=row.class_date,
      sequence_number=row.period_number,
      kind=row.slot_type,
      start_time=row.start_time,
      end_time=row.end_time,
      name=row.name,
      subject_id=row.subject_id,
      teacher_id=row.teacher_id,
      syllabus_chapter_id=row.syllabus_chapter_id,
      syllabus_topic_id=row.syllabus_topic_id,
      plan_text=row.plan_text,
      created_by=row.created_by,
    )

  def _progress_to_record(self, row: SyllabusProgress) -> TaughtProgressRecord:
    """Convert a SQLAlchemy model to a domain record."""
    return TaughtProgressRecord(
      progress_id=row.id,
      school_code=row.school_code,
      slot_id=row.timetable_slot_id,
      class_id=row.class_instance_id,
      slot_date=row.date,
      subject_id=row.subject_id,
      teacher_id=row.teacher_id,
      syllabus_chapter_id=row.syllabus_chapter_id,
      syllabus_topic_id=row.syllabus_topic_id,
      created_by=row.created_by,
    )
