"""Shared fixtures and in-memory doubles for timetable tests."""

from __future__ import annotations

import datetime
from collections.abc import Mapping
from dataclasses import replace
from typing import Any

import pytest

from timetable.core.exceptions import ScheduleConflictError, SlotNotFoundError, TimetableStoreError
from timetable.services.holidays import HolidayInfo
from timetable.storage.timetable_repo import SlotRecord, TaughtProgressRecord


class InMemoryTimetableRepo:
  """Minimal in-memory slot store mirroring the Postgres repository contract."""

  def __init__(self) -> None:
    self.slots: dict[str, SlotRecord] = {}
    self.progress: dict[str, TaughtProgressRecord] = {}
    self.failing_slot_ids: set[str] = set()
    self.update_calls: list[tuple[str, dict[str, Any]]] = []
    self._next_id = 0

  def _new_id(self, prefix: str) -> str:
    self._next_id += 1
    return f"{prefix}-{self._next_id}"

  async def list_by_day(self, school_code: str, class_id: str, slot_date: datetime.date) -> list[SlotRecord]:
    rows = [slot for slot in self.slots.values() if (slot.school_code, slot.class_id, slot.slot_date) == (school_code, class_id, slot_date)]
    return sorted(rows, key=lambda slot: (slot.start_time, slot.sequence_number))

  async def get_slot(self, school_code: str, slot_id: str) -> SlotRecord | None:
    slot = self.slots.get(slot_id)
    if slot is None or slot.school_code != school_code:
      return None
    return slot

  async def insert_batch(self, records: list[SlotRecord]) -> list[SlotRecord]:
    # Mimic the unique key on (school, class, date, sequence number) and the all-or-nothing batch.
    taken = {(s.school_code, s.class_id, s.slot_date, s.sequence_number) for s in self.slots.values()}
    for record in records:
      key = (record.school_code, record.class_id, record.slot_date, record.sequence_number)
      if key in taken:
        raise ScheduleConflictError("insert_slot_batch conflicts with an existing row.", details={"category": "unique_violation"})
      taken.add(key)

    created = [replace(record, slot_id=record.slot_id or self._new_id("slot")) for record in records]
    for record in created:
      self.slots[record.slot_id] = record
    return created

  async def update(self, school_code: str, slot_id: str, fields: Mapping[str, Any]) -> SlotRecord:
    self.update_calls.append((slot_id, dict(fields)))
    if slot_id in self.failing_slot_ids:
      raise TimetableStoreError("update_slot failed: Transient connection/network error", category="connectivity_error")
    slot = await self.get_slot(school_code, slot_id)
    if slot is None:
      raise SlotNotFoundError(slot_id)
    updated = replace(slot, **fields)
    self.slots[slot_id] = updated
    return updated

  async def delete(self, school_code: str, slot_id: str) -> None:
    if await self.get_slot(school_code, slot_id) is None:
      raise SlotNotFoundError(slot_id)
    del self.slots[slot_id]
    self.progress.pop(slot_id, None)

  async def delete_day(self, school_code: str, class_id: str, slot_date: datetime.date) -> int:
    doomed = [slot.slot_id for slot in await self.list_by_day(school_code, class_id, slot_date)]
    for slot_id in doomed:
      del self.slots[slot_id]
      self.progress.pop(slot_id, None)
    return len(doomed)

  async def list_taught(self, school_code: str, class_id: str, slot_date: datetime.date) -> list[TaughtProgressRecord]:
    return [r for r in self.progress.values() if (r.school_code, r.class_id, r.slot_date) == (school_code, class_id, slot_date)]

  async def get_taught(self, school_code: str, slot_id: str) -> TaughtProgressRecord | None:
    record = self.progress.get(slot_id)
    if record is None or record.school_code != school_code:
      return None
    return record

  async def insert_taught(self, record: TaughtProgressRecord) -> TaughtProgressRecord:
    if record.slot_id in self.progress:
      raise ScheduleConflictError("insert_taught conflicts with an existing row.", details={"category": "unique_violation"})
    created = replace(record, progress_id=record.progress_id or self._new_id("progress"))
    self.progress[record.slot_id] = created
    return created

  async def delete_taught(self, school_code: str, slot_id: str) -> bool:
    record = await self.get_taught(school_code, slot_id)
    if record is None:
      return False
    del self.progress[slot_id]
    return True


class StaticHolidayCalendar:
  """Holiday calendar backed by a fixed date mapping."""

  def __init__(self, holidays: Mapping[datetime.date, HolidayInfo] | None = None) -> None:
    self._holidays = dict(holidays or {})
    self.calls: list[datetime.date] = []

  async def holiday_info(self, school_code: str, on_date: datetime.date, class_id: str | None = None) -> HolidayInfo | None:
    self.calls.append(on_date)
    return self._holidays.get(on_date)


@pytest.fixture
def anyio_backend():
  return "asyncio"


@pytest.fixture
def repo() -> InMemoryTimetableRepo:
  return InMemoryTimetableRepo()


@pytest.fixture
def make_calendar():
  return StaticHolidayCalendar
