"""Read KEY=VALUE pairs from a local .env file into the process environment."""

from __future__ import annotations

import os
from collections.abc import Iterable
from pathlib import Path

_QUOTES = {'"', "'"}


def default_env_path() -> Path:
  """Return the .env path next to the package root."""
  return Path(__file__).resolve().parents[2] / ".env"


def _parse_value(raw: str) -> str:
  value = raw.strip()
  if len(value) >= 2 and value[0] in _QUOTES and value[-1] == value[0]:
    return value[1:-1]
  # Unquoted values may carry a trailing " # comment".
  return value.split(" #", 1)[0].rstrip()


def parse_env_lines(lines: Iterable[str]) -> dict[str, str]:
  """Parse .env lines, skipping blanks, comments and lines without a key."""
  pairs: dict[str, str] = {}
  for raw_line in lines:
    line = raw_line.strip()
    if line.startswith("export "):
      line = line.removeprefix("export ").lstrip()
    if not line or line.startswith("#") or "=" not in line:
      continue
    key, raw_value = line.split("=", 1)
    key = key.strip()
    if key:
      pairs[key] = _parse_value(raw_value)
  return pairs


def load_env_file(path: Path, *, override: bool = False) -> list[str]:
  """Apply a .env file to os.environ and return the keys that were set.

  Variables already present in the environment win unless `override` is set.
  A missing file is not an error.
  """
  if not path.is_file():
    return []

  applied: list[str] = []
  for key, value in parse_env_lines(path.read_text(encoding="utf-8").splitlines()).items():
    if not override and key in os.environ:
      continue
    os.environ[key] = value
    applied.append(key)
  return applied
