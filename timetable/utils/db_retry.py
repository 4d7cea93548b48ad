"""Database failure classification and retry for slot store operations."""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError, SQLAlchemyError

from timetable.core.exceptions import ScheduleConflictError, TimetableStoreError

logger = logging.getLogger(__name__)

T = TypeVar("T")

_INTEGRITY_VIOLATIONS = {
  "23000": "integrity constraint violation",
  "23502": "not null violation",
  "23503": "foreign key violation",
  "23505": "unique violation",
  "23514": "check constraint violation",
}


@dataclass(frozen=True)
class DBFailureClassification:
  """Classification result for a database failure."""

  retryable: bool
  reason: str
  sqlstate: str | None
  category: str


def _extract_sqlstate(exc: Exception) -> str | None:
  """Extract the Postgres SQLSTATE from a SQLAlchemy exception."""
  if isinstance(exc, DBAPIError) and exc.orig is not None:
    # asyncpg exposes sqlstate, psycopg exposes pgcode
    for attr in ("sqlstate", "pgcode"):
      value = getattr(exc.orig, attr, None)
      if value:
        return str(value)
  return None


def classify_db_failure(exc: Exception) -> DBFailureClassification:
  """
  Classify a database failure as retryable or not.

  Retryable (transient): serialization failure 40001, deadlock 40P01, dropped connections.
  Everything else fails fast, integrity violations (23xxx) in particular.
  """
  sqlstate = _extract_sqlstate(exc)

  if sqlstate == "40001":
    return DBFailureClassification(retryable=True, reason="Serialization failure - transaction conflict", sqlstate=sqlstate, category="serialization_conflict")

  if sqlstate == "40P01":
    return DBFailureClassification(retryable=True, reason="Deadlock detected", sqlstate=sqlstate, category="deadlock")

  if sqlstate == "57014":
    return DBFailureClassification(retryable=False, reason="Query canceled (timeout)", sqlstate=sqlstate, category="query_timeout")

  if sqlstate and sqlstate.startswith("23"):
    specific = _INTEGRITY_VIOLATIONS.get(sqlstate, "integrity constraint violation")
    category = "unique_violation" if sqlstate == "23505" else "integrity_error"
    return DBFailureClassification(retryable=False, reason=f"Integrity violation: {specific}", sqlstate=sqlstate, category=category)

  if sqlstate and sqlstate.startswith("42"):
    return DBFailureClassification(retryable=False, reason="Schema/SQL error (undefined table/column, syntax error)", sqlstate=sqlstate, category="schema_error")

  if isinstance(exc, IntegrityError):
    return DBFailureClassification(retryable=False, reason="Integrity constraint violation (detected by exception type)", sqlstate=sqlstate, category="integrity_error")

  if isinstance(exc, OperationalError):
    error_msg = str(exc).lower()
    if any(pattern in error_msg for pattern in ["connection", "timeout", "reset", "network", "broken pipe", "lost connection"]):
      return DBFailureClassification(retryable=True, reason="Transient connection/network error", sqlstate=sqlstate, category="connectivity_error")
    return DBFailureClassification(retryable=False, reason="Operational error (unknown cause)", sqlstate=sqlstate, category="operational_error_unknown")

  return DBFailureClassification(retryable=False, reason=f"Unknown error type: {type(exc).__name__}", sqlstate=sqlstate, category="unknown_error")


def _to_domain_error(operation_name: str, exc: SQLAlchemyError, classification: DBFailureClassification) -> Exception:
  details = {"operation": operation_name, "sqlstate": classification.sqlstate, "category": classification.category}
  if classification.category == "unique_violation":
    return ScheduleConflictError(f"{operation_name} conflicts with an existing row.", details=details)
  return TimetableStoreError(f"{operation_name} failed: {classification.reason}", category=classification.category, details=details)


async def execute_with_retry(*, operation_name: str, func: Callable[[], Awaitable[T]], max_attempts: int = 2, initial_backoff_ms: int = 100, max_backoff_ms: int = 2000, jitter: bool = True) -> T:
  """
  Execute a store operation, retrying transient database failures.

  Args:
    operation_name: Human-readable name for logging (e.g., "insert_slot_batch")
    func: Async callable to execute; must be safe to run again after a rollback
    max_attempts: Maximum number of attempts (initial + retries)
    initial_backoff_ms: Starting backoff delay in milliseconds
    max_backoff_ms: Maximum backoff delay in milliseconds
    jitter: Add randomness to backoff to avoid thundering herd

  Raises:
    ScheduleConflictError for unique violations, TimetableStoreError for any
    other SQLAlchemy failure. Domain errors raised by func pass through untouched.
  """
  attempt = 0

  while True:
    attempt += 1

    try:
      result = await func()
      if attempt > 1:
        logger.info("DB operation succeeded after retry: operation=%s, attempt=%d/%d", operation_name, attempt, max_attempts)
      return result

    except SQLAlchemyError as exc:
      classification = classify_db_failure(exc)

      logger.warning(
        "DB operation failed: operation=%s, attempt=%d/%d, category=%s, sqlstate=%s, retryable=%s, reason=%s",
        operation_name,
        attempt,
        max_attempts,
        classification.category,
        classification.sqlstate or "none",
        classification.retryable,
        classification.reason,
      )

      if not classification.retryable:
        if classification.category != "unique_violation":
          logger.error("DB operation failed with non-retryable error: operation=%s, category=%s", operation_name, classification.category, exc_info=True)
        raise _to_domain_error(operation_name, exc, classification) from exc

      if attempt >= max_attempts:
        logger.error("DB operation failed after %d attempts: operation=%s, category=%s - giving up", max_attempts, operation_name, classification.category)
        raise _to_domain_error(operation_name, exc, classification) from exc

      # Exponential backoff with optional +-25% jitter
      backoff_ms = min(initial_backoff_ms * (2 ** (attempt - 1)), max_backoff_ms)
      if jitter:
        jitter_range = backoff_ms * 0.25
        backoff_ms += random.uniform(-jitter_range, jitter_range)

      logger.info("Retrying DB operation after backoff: operation=%s, attempt=%d/%d, backoff_ms=%.1f", operation_name, attempt, max_attempts, backoff_ms)
      await asyncio.sleep(backoff_ms / 1000.0)
