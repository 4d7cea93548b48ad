from __future__ import annotations

from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError, ProgrammingError

from timetable.core.exceptions import ScheduleConflictError, SlotNotFoundError, TimetableStoreError
from timetable.utils.db_retry import classify_db_failure, execute_with_retry


class FakeDriverError(Exception):
  def __init__(self, message: str, sqlstate: str | None = None) -> None:
    super().__init__(message)
    self.sqlstate = sqlstate


def _operational(message: str, sqlstate: str | None = None) -> OperationalError:
  return OperationalError("UPDATE timetable_slots", {}, FakeDriverError(message, sqlstate))


@pytest.mark.parametrize(
  ("exc", "retryable", "category"),
  [
    (_operational("could not serialize access", "40001"), True, "serialization_conflict"),
    (_operational("deadlock detected", "40P01"), True, "deadlock"),
    (_operational("canceling statement due to statement timeout", "57014"), False, "query_timeout"),
    (IntegrityError("INSERT", {}, FakeDriverError("duplicate key", "23505")), False, "unique_violation"),
    (IntegrityError("INSERT", {}, FakeDriverError("violates check constraint", "23514")), False, "integrity_error"),
    (ProgrammingError("SELECT", {}, FakeDriverError("relation does not exist", "42P01")), False, "schema_error"),
    (IntegrityError("INSERT", {}, FakeDriverError("constraint failed")), False, "integrity_error"),
    (_operational("connection reset by peer"), True, "connectivity_error"),
    (_operational("disk full"), False, "operational_error_unknown"),
  ],
)
def test_classify_db_failure(exc, retryable: bool, category: str) -> None:
  classification = classify_db_failure(exc)
  assert classification.retryable is retryable
  assert classification.category == category


@pytest.mark.anyio
async def test_transient_failure_is_retried() -> None:
  func = AsyncMock(side_effect=[_operational("lost connection to server"), "ok"])

  result = await execute_with_retry(operation_name="list_slots_by_day", func=func, max_attempts=2, initial_backoff_ms=0, jitter=False)

  assert result == "ok"
  assert func.await_count == 2


@pytest.mark.anyio
async def test_transient_failure_gives_up_after_max_attempts() -> None:
  func = AsyncMock(side_effect=_operational("deadlock detected", "40P01"))

  with pytest.raises(TimetableStoreError) as exc_info:
    await execute_with_retry(operation_name="update_slot", func=func, max_attempts=3, initial_backoff_ms=0, jitter=False)

  assert func.await_count == 3
  assert exc_info.value.category == "deadlock"
  assert exc_info.value.details["operation"] == "update_slot"


@pytest.mark.anyio
async def test_unique_violation_becomes_conflict_without_retry() -> None:
  func = AsyncMock(side_effect=IntegrityError("INSERT", {}, FakeDriverError("duplicate key", "23505")))

  with pytest.raises(ScheduleConflictError) as exc_info:
    await execute_with_retry(operation_name="insert_slot_batch", func=func, max_attempts=3, initial_backoff_ms=0)

  assert func.await_count == 1
  assert exc_info.value.details["sqlstate"] == "23505"


@pytest.mark.anyio
async def test_domain_errors_pass_through() -> None:
  func = AsyncMock(side_effect=SlotNotFoundError("slot-1"))

  with pytest.raises(SlotNotFoundError):
    await execute_with_retry(operation_name="update_slot", func=func, max_attempts=3)
  assert func.await_count == 1
