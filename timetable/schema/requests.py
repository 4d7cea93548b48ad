from __future__ import annotations

import datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, StrictInt, StrictStr, field_validator, model_validator

from timetable.scheduling.clock import parse_time
from timetable.schema.timetable import SlotKind


def _coerce_time(value: Any) -> Any:
  # Accept "HH:MM" / "HH:MM:SS" strings as well as time objects.
  if value is None:
    return value
  if isinstance(value, str | datetime.time):
    return parse_time(value)
  raise ValueError("Time must be a string in HH:MM or HH:MM:SS format.")


def _blank_to_none(value: Any) -> Any:
  if isinstance(value, str) and value.strip() == "":
    return None
  return value


class BreakSpec(BaseModel):
  """A break inserted after a given period during bulk generation."""

  after_period: StrictInt = Field(ge=1, validation_alias=AliasChoices("after_period", "afterPeriod"), description="1-based period index after which the break is inserted.")
  duration_minutes: StrictInt = Field(ge=1, validation_alias=AliasChoices("duration_minutes", "durationMinutes", "duration"), description="Break length in minutes.")
  name: StrictStr | None = Field(default=None, description="Break label; defaults to 'Break'.")
  model_config = ConfigDict(extra="forbid", frozen=True)

  @field_validator("name", mode="before")
  @classmethod
  def normalize_name(cls, value: Any) -> Any:
    value = _blank_to_none(value)
    return value.strip() if isinstance(value, str) else value


class GenerationRequest(BaseModel):
  """Parameters for generating a full day's slot skeleton."""

  num_periods: StrictInt = Field(ge=1, validation_alias=AliasChoices("num_periods", "numPeriods"), description="Number of teaching periods.")
  period_duration_minutes: StrictInt = Field(ge=1, validation_alias=AliasChoices("period_duration_minutes", "periodDurationMinutes", "periodDuration"), description="Length of each period in minutes.")
  start_time: datetime.time = Field(validation_alias=AliasChoices("start_time", "startTime"), description="Start of the first period.")
  breaks: tuple[BreakSpec, ...] = Field(default=(), validation_alias=AliasChoices("breaks", "breakConfigurations"), description="Breaks to insert, in order.")
  model_config = ConfigDict(extra="forbid", frozen=True)

  @field_validator("start_time", mode="before")
  @classmethod
  def parse_start_time(cls, value: Any) -> Any:
    if value is None:
      raise ValueError("Start time is required.")
    return _coerce_time(value)

  @field_validator("breaks", mode="before")
  @classmethod
  def default_breaks(cls, value: Any) -> Any:
    return () if value is None else value

  @model_validator(mode="after")
  def check_break_positions(self) -> GenerationRequest:
    seen: set[int] = set()
    for spec in self.breaks:
      if spec.after_period > self.num_periods:
        raise ValueError(f"Break after period {spec.after_period} exceeds the number of periods ({self.num_periods}).")
      if spec.after_period in seen:
        raise ValueError(f"More than one break is configured after period {spec.after_period}.")
      seen.add(spec.after_period)
    return self

  def break_after(self, period_index: int) -> BreakSpec | None:
    """Return the break configured after the given period, if any."""
    for spec in self.breaks:
      if spec.after_period == period_index:
        return spec
    return None

  def total_minutes(self) -> int:
    """Return the length of the generated day in minutes."""
    return self.num_periods * self.period_duration_minutes + sum(spec.duration_minutes for spec in self.breaks)


class SlotPatch(BaseModel):
  """Partial update of an existing slot; only fields that were set are applied."""

  kind: SlotKind | None = Field(default=None, validation_alias=AliasChoices("kind", "slot_type"))
  name: StrictStr | None = None
  start_time: datetime.time | None = None
  end_time: datetime.time | None = None
  subject_id: StrictStr | None = None
  teacher_id: StrictStr | None = None
  syllabus_chapter_id: StrictStr | None = None
  syllabus_topic_id: StrictStr | None = None
  plan_text: StrictStr | None = None
  model_config = ConfigDict(extra="forbid", frozen=True)

  @field_validator("start_time", "end_time", mode="before")
  @classmethod
  def parse_times(cls, value: Any) -> Any:
    return _coerce_time(value)

  @field_validator("name", "subject_id", "teacher_id", "syllabus_chapter_id", "syllabus_topic_id", "plan_text", mode="before")
  @classmethod
  def blank_strings(cls, value: Any) -> Any:
    return _blank_to_none(value)

  def changes(self) -> dict[str, Any]:
    """Return only the fields the caller provided."""
    return {key: getattr(self, key) for key in self.model_fields_set}


class NewSlot(BaseModel):
  """A single hand-added period or break."""

  kind: SlotKind = Field(validation_alias=AliasChoices("kind", "slot_type"))
  start_time: datetime.time
  end_time: datetime.time
  name: StrictStr | None = None
  subject_id: StrictStr | None = None
  teacher_id: StrictStr | None = None
  syllabus_chapter_id: StrictStr | None = None
  syllabus_topic_id: StrictStr | None = None
  plan_text: StrictStr | None = None
  model_config = ConfigDict(extra="forbid", frozen=True)

  @field_validator("start_time", "end_time", mode="before")
  @classmethod
  def parse_times(cls, value: Any) -> Any:
    if value is None:
      raise ValueError("Start and end times are required.")
    return _coerce_time(value)

  @field_validator("name", "subject_id", "teacher_id", "syllabus_chapter_id", "syllabus_topic_id", "plan_text", mode="before")
  @classmethod
  def blank_strings(cls, value: Any) -> Any:
    return _blank_to_none(value)
