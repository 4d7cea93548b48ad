"""Identifier utilities."""

from __future__ import annotations

import uuid


def generate_slot_id() -> str:
  """Return a new timetable slot identifier."""
  return str(uuid.uuid4())


def generate_progress_id() -> str:
  """Return a new syllabus progress identifier."""
  return str(uuid.uuid4())
