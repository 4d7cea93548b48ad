from __future__ import annotations

import datetime

import pytest

from timetable.core.exceptions import ScheduleValidationError
from timetable.scheduling.sequencer import build_slot_plan
from timetable.services.progress import TaughtProgressLedger, TaughtSummary, summarize_taught
from timetable.storage.timetable_repo import SyllabusRef

SCHOOL = "SCH001"
DAY = datetime.date(2026, 3, 2)


async def _seed(repo):
  plan = build_slot_plan(
    {"numPeriods": 2, "periodDurationMinutes": 40, "startTime": "09:00", "breaks": [{"afterPeriod": 1, "durationMinutes": 10}]},
    school_code=SCHOOL,
    class_id="class-7a",
    slot_date=DAY,
  )
  return await repo.insert_batch(plan)


@pytest.mark.anyio
async def test_mark_taught_twice_keeps_one_record(repo) -> None:
  period, _, _ = await _seed(repo)
  ledger = TaughtProgressLedger(repo)

  first = await ledger.mark_taught(SCHOOL, period, SyllabusRef(chapter_id="chapter-y"))
  second = await ledger.mark_taught(SCHOOL, period, SyllabusRef(chapter_id="chapter-y"))

  assert first == second
  assert len(repo.progress) == 1
  assert repo.progress[period.slot_id].syllabus_chapter_id == "chapter-y"
  assert await ledger.get_taught_set(SCHOOL, "class-7a", DAY) == frozenset({period.slot_id})


@pytest.mark.anyio
async def test_mark_taught_denormalizes_the_slot(repo) -> None:
  period, _, _ = await _seed(repo)
  period = await repo.update(SCHOOL, period.slot_id, {"subject_id": "math", "teacher_id": "t-1", "syllabus_topic_id": "topic-3"})

  record = await TaughtProgressLedger(repo).mark_taught(SCHOOL, period, created_by="user-1")

  assert (record.subject_id, record.teacher_id, record.syllabus_topic_id, record.syllabus_chapter_id) == ("math", "t-1", "topic-3", None)
  assert (record.class_id, record.slot_date, record.created_by) == ("class-7a", DAY, "user-1")


@pytest.mark.anyio
async def test_unmark_is_a_no_op_when_not_taught(repo) -> None:
  period, _, _ = await _seed(repo)
  ledger = TaughtProgressLedger(repo)

  assert await ledger.unmark_taught(SCHOOL, period.slot_id) is False
  await ledger.mark_taught(SCHOOL, period)
  assert await ledger.unmark_taught(SCHOOL, period.slot_id) is True
  assert await ledger.unmark_taught(SCHOOL, period.slot_id) is False
  assert not await ledger.is_taught(SCHOOL, period.slot_id)


@pytest.mark.anyio
async def test_breaks_cannot_be_marked_taught(repo) -> None:
  _, break_slot, _ = await _seed(repo)
  with pytest.raises(ScheduleValidationError):
    await TaughtProgressLedger(repo).mark_taught(SCHOOL, break_slot)
  assert repo.progress == {}


@pytest.mark.anyio
async def test_concurrent_mark_returns_the_winning_record(repo) -> None:
  period, _, _ = await _seed(repo)
  ledger = TaughtProgressLedger(repo)
  winner = await ledger.mark_taught(SCHOOL, period, SyllabusRef(chapter_id="chapter-y"))

  # Simulate losing the race: the pre-check sees nothing, the insert conflicts.
  original_get = repo.get_taught
  calls = {"n": 0}

  async def stale_then_fresh(school_code, slot_id):
    calls["n"] += 1
    if calls["n"] == 1:
      return None
    return await original_get(school_code, slot_id)

  repo.get_taught = stale_then_fresh
  loser = await ledger.mark_taught(SCHOOL, period, SyllabusRef(chapter_id="chapter-z"))

  assert loser == winner
  assert len(repo.progress) == 1


def test_syllabus_ref_rejects_chapter_and_topic() -> None:
  with pytest.raises(ValueError):
    SyllabusRef(chapter_id="c", topic_id="t")


@pytest.mark.anyio
async def test_summary_counts_periods_only(repo) -> None:
  slots = await _seed(repo)
  summary = summarize_taught(slots, {slots[0].slot_id, slots[1].slot_id})

  assert summary == TaughtSummary(taught=1, total=2)
  assert summary.label == "1/2 periods taught"
  assert summary.ratio == 0.5
  assert TaughtSummary(taught=0, total=0).ratio == 0.0
