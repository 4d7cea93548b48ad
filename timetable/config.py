"""Library configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from timetable.utils.env import default_env_path, load_env_file

load_env_file(default_env_path(), override=False)

_WEEKDAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")


@dataclass(frozen=True)
class Settings:
  """Typed settings for the timetable engine."""

  environment: str
  debug: bool
  pg_dsn: str | None
  pg_connect_timeout: int
  log_level: str
  log_dir: str
  log_max_bytes: int
  log_backup_count: int
  weekly_off_days: frozenset[int]
  db_retry_attempts: int
  enforce_single_day: bool


@dataclass(frozen=True)
class DatabaseSettings:
  """Typed settings for database connectivity."""

  debug: bool
  pg_dsn: str | None
  pg_connect_timeout: int


def _parse_bool(raw: str | None, *, default: bool = False) -> bool:
  """Parse a boolean-ish string from environment variables."""

  if raw is None or raw.strip() == "":
    return default

  normalized = raw.strip().lower()
  return normalized in {"1", "true", "yes", "on"}


def _optional_str(raw: str | None) -> str | None:
  if raw is None:
    return None
  value = raw.strip()
  if value == "":
    return None
  return value


def _parse_int_set(raw: str | None, *, name: str, default: frozenset[int]) -> frozenset[int]:
  """Parse a comma-separated list of weekday numbers (Monday=0 .. Sunday=6)."""

  if raw is None:
    return default

  values: set[int] = set()
  for chunk in raw.split(","):
    chunk = chunk.strip()
    if not chunk:
      continue
    try:
      value = int(chunk)
    except ValueError as exc:
      raise ValueError(f"{name} must contain integers between 0 and 6.") from exc
    if value < 0 or value > 6:
      raise ValueError(f"{name} must contain integers between 0 and 6.")
    values.add(value)

  return frozenset(values)


def _pg_dsn() -> str | None:
  # Support fallback to DATABASE_URL for hosted environments.
  return _optional_str(os.getenv("TIMETABLE_PG_DSN")) or _optional_str(os.getenv("DATABASE_URL"))


def _pg_connect_timeout() -> int:
  pg_connect_timeout = int(os.getenv("TIMETABLE_PG_CONNECT_TIMEOUT", "5"))
  if pg_connect_timeout <= 0:
    raise ValueError("TIMETABLE_PG_CONNECT_TIMEOUT must be a positive integer.")
  return pg_connect_timeout


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  """Load settings once per process."""

  environment = os.getenv("TIMETABLE_ENV", "development").strip().lower()
  debug = _parse_bool(os.getenv("TIMETABLE_DEBUG"))

  log_level = (os.getenv("TIMETABLE_LOG_LEVEL") or "INFO").strip().upper()
  if log_level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
    raise ValueError("TIMETABLE_LOG_LEVEL must be one of DEBUG, INFO, WARNING, ERROR, CRITICAL.")

  log_max_bytes = int(os.getenv("TIMETABLE_LOG_MAX_BYTES", "5242880"))  # 5MB default
  if log_max_bytes <= 0:
    raise ValueError("TIMETABLE_LOG_MAX_BYTES must be a positive integer.")

  log_backup_count = int(os.getenv("TIMETABLE_LOG_BACKUP_COUNT", "10"))
  if log_backup_count < 0:
    raise ValueError("TIMETABLE_LOG_BACKUP_COUNT must be zero or a positive integer.")

  db_retry_attempts = int(os.getenv("TIMETABLE_DB_RETRY_ATTEMPTS", "2"))
  if db_retry_attempts < 1:
    raise ValueError("TIMETABLE_DB_RETRY_ATTEMPTS must be at least 1.")

  return Settings(
    environment=environment,
    debug=debug,
    pg_dsn=_pg_dsn(),
    pg_connect_timeout=_pg_connect_timeout(),
    log_level=log_level,
    log_dir=(os.getenv("TIMETABLE_LOG_DIR") or "./logs").strip(),
    log_max_bytes=log_max_bytes,
    log_backup_count=log_backup_count,
    weekly_off_days=_parse_int_set(os.getenv("TIMETABLE_WEEKLY_OFF_DAYS"), name="TIMETABLE_WEEKLY_OFF_DAYS", default=frozenset({6})),
    db_retry_attempts=db_retry_attempts,
    enforce_single_day=_parse_bool(os.getenv("TIMETABLE_ENFORCE_SINGLE_DAY"), default=True),
  )


@lru_cache(maxsize=1)
def get_database_settings() -> DatabaseSettings:
  """Load database settings without requiring the rest of the configuration."""
  # Keep database configuration isolated so migrations don't require unrelated env vars.
  return DatabaseSettings(debug=_parse_bool(os.getenv("TIMETABLE_DEBUG")), pg_dsn=_pg_dsn(), pg_connect_timeout=_pg_connect_timeout())


def weekday_name(weekday: int) -> str:
  """Return the English name for a `date.weekday()` value."""
  return _WEEKDAY_NAMES[weekday]
