from __future__ import annotations

import pytest

from timetable.config import get_database_settings, get_settings, weekday_name
from timetable.utils.env import load_env_file, parse_env_lines

_VARS = (
  "TIMETABLE_ENV",
  "TIMETABLE_DEBUG",
  "TIMETABLE_PG_DSN",
  "DATABASE_URL",
  "TIMETABLE_PG_CONNECT_TIMEOUT",
  "TIMETABLE_LOG_LEVEL",
  "TIMETABLE_LOG_DIR",
  "TIMETABLE_LOG_MAX_BYTES",
  "TIMETABLE_LOG_BACKUP_COUNT",
  "TIMETABLE_WEEKLY_OFF_DAYS",
  "TIMETABLE_DB_RETRY_ATTEMPTS",
  "TIMETABLE_ENFORCE_SINGLE_DAY",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
  for name in _VARS:
    monkeypatch.delenv(name, raising=False)
  get_settings.cache_clear()
  get_database_settings.cache_clear()
  yield
  get_settings.cache_clear()
  get_database_settings.cache_clear()


def test_defaults() -> None:
  settings = get_settings()

  assert settings.environment == "development"
  assert settings.debug is False
  assert settings.pg_dsn is None
  assert settings.log_level == "INFO"
  assert settings.weekly_off_days == frozenset({6})
  assert settings.db_retry_attempts == 2
  assert settings.enforce_single_day is True


def test_overrides(monkeypatch) -> None:
  monkeypatch.setenv("TIMETABLE_ENV", " Production ")
  monkeypatch.setenv("TIMETABLE_DEBUG", "yes")
  monkeypatch.setenv("DATABASE_URL", "postgresql://db/timetable")
  monkeypatch.setenv("TIMETABLE_LOG_LEVEL", "debug")
  monkeypatch.setenv("TIMETABLE_WEEKLY_OFF_DAYS", "5, 6,")
  monkeypatch.setenv("TIMETABLE_ENFORCE_SINGLE_DAY", "off")

  settings = get_settings()

  assert settings.environment == "production"
  assert settings.debug is True
  assert settings.pg_dsn == "postgresql://db/timetable"
  assert settings.log_level == "DEBUG"
  assert settings.weekly_off_days == frozenset({5, 6})
  assert settings.enforce_single_day is False


def test_empty_weekly_off_days_disables_them(monkeypatch) -> None:
  monkeypatch.setenv("TIMETABLE_WEEKLY_OFF_DAYS", "")
  assert get_settings().weekly_off_days == frozenset()


def test_primary_dsn_wins_over_database_url(monkeypatch) -> None:
  monkeypatch.setenv("TIMETABLE_PG_DSN", "postgresql://primary/db")
  monkeypatch.setenv("DATABASE_URL", "postgresql://fallback/db")
  assert get_database_settings().pg_dsn == "postgresql://primary/db"


@pytest.mark.parametrize(
  ("name", "value"),
  [
    ("TIMETABLE_LOG_LEVEL", "LOUD"),
    ("TIMETABLE_LOG_MAX_BYTES", "0"),
    ("TIMETABLE_LOG_BACKUP_COUNT", "-1"),
    ("TIMETABLE_DB_RETRY_ATTEMPTS", "0"),
    ("TIMETABLE_PG_CONNECT_TIMEOUT", "0"),
    ("TIMETABLE_WEEKLY_OFF_DAYS", "7"),
    ("TIMETABLE_WEEKLY_OFF_DAYS", "sunday"),
  ],
)
def test_invalid_values_raise(monkeypatch, name: str, value: str) -> None:
  monkeypatch.setenv(name, value)
  with pytest.raises(ValueError, match=name):
    get_settings()


def test_weekday_name() -> None:
  assert weekday_name(0) == "Monday"
  assert weekday_name(6) == "Sunday"


def test_load_env_file_respects_existing_values(tmp_path, monkeypatch) -> None:
  env_file = tmp_path / ".env"
  env_file.write_text("# local\nexport TIMETABLE_ENV='staging'\nTIMETABLE_LOG_LEVEL=\"WARNING\"\nnot a pair\n", encoding="utf-8")
  monkeypatch.setenv("TIMETABLE_LOG_LEVEL", "ERROR")
  # Register TIMETABLE_ENV with monkeypatch so the value loaded from the file is undone.
  monkeypatch.setenv("TIMETABLE_ENV", "unset")
  monkeypatch.delenv("TIMETABLE_ENV")

  load_env_file(env_file)

  settings = get_settings()
  assert settings.environment == "staging"
  assert settings.log_level == "ERROR"


def test_parse_env_lines_handles_quotes_comments_and_export() -> None:
  lines = ["", "# comment", "export A=1", "B = 'two words'", 'C="x # y"', "D=plain # trailing", "=orphan", "no_equals"]

  assert parse_env_lines(lines) == {"A": "1", "B": "two words", "C": "x # y", "D": "plain"}


def test_load_env_file_reports_applied_keys(tmp_path, monkeypatch) -> None:
  env_file = tmp_path / ".env"
  env_file.write_text("TIMETABLE_DB_RETRY_ATTEMPTS=4\nTIMETABLE_LOG_LEVEL=DEBUG\n", encoding="utf-8")
  monkeypatch.setenv("TIMETABLE_LOG_LEVEL", "ERROR")
  monkeypatch.setenv("TIMETABLE_DB_RETRY_ATTEMPTS", "1")
  monkeypatch.delenv("TIMETABLE_DB_RETRY_ATTEMPTS")

  assert load_env_file(env_file) == ["TIMETABLE_DB_RETRY_ATTEMPTS"]
  assert load_env_file(tmp_path / "missing.env") == []
  assert get_settings().db_retry_attempts == 4
