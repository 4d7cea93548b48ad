"""Keep a day's slots flush with each other when one slot's boundary moves."""

from __future__ import annotations

import datetime
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Literal

from timetable.core.exceptions import ScheduleValidationError, SlotNotFoundError
from timetable.scheduling.clock import after_or_equal, equal
from timetable.scheduling.sequencer import sort_by_start
from timetable.storage.timetable_repo import SlotRecord

BoundaryField = Literal["start_time", "end_time"]


@dataclass(frozen=True)
class NeighborUpdate:
  """A single boundary write on a neighbor of the edited slot."""

  slot_id: str
  field: BoundaryField
  value: datetime.time


def adjust_neighbors(slots: Sequence[SlotRecord], edited_slot_id: str, new_start: datetime.time, new_end: datetime.time) -> list[NeighborUpdate]:
  """Compute the neighbor writes that keep the edited slot flush with its neighbors.

  Neighbors are found by time order using the edited slot's pre-edit times,
  not by sequence number. Only the immediate neighbors are touched, so a
  single edit writes at most three rows. The returned list holds the next
  slot's update (if the end moved) before the previous slot's (if the start
  moved).

  Raises SlotNotFoundError when the edited slot is not part of `slots`, and
  ScheduleValidationError when a neighbor would end up empty or inverted.
  """
  ordered = sort_by_start(slots)
  index = next((i for i, slot in enumerate(ordered) if slot.slot_id == edited_slot_id), None)
  if index is None:
    raise SlotNotFoundError(edited_slot_id)

  original = ordered[index]
  updates: list[NeighborUpdate] = []

  if not equal(new_end, original.end_time) and index + 1 < len(ordered):
    following = ordered[index + 1]
    if after_or_equal(new_end, following.end_time):
      raise ScheduleValidationError(
        "New end time would leave no room for the following slot.",
        details={"slot_id": following.slot_id, "new_start": new_end.isoformat(), "end_time": following.end_time.isoformat()},
      )
    updates.append(NeighborUpdate(slot_id=_require_id(following), field="start_time", value=new_end))

  if not equal(new_start, original.start_time) and index > 0:
    preceding = ordered[index - 1]
    if after_or_equal(preceding.start_time, new_start):
      raise ScheduleValidationError(
        "New start time would leave no room for the preceding slot.",
        details={"slot_id": preceding.slot_id, "start_time": preceding.start_time.isoformat(), "new_end": new_start.isoformat()},
      )
    updates.append(NeighborUpdate(slot_id=_require_id(preceding), field="end_time", value=new_start))

  return updates


def _require_id(slot: SlotRecord) -> str:
  if slot.slot_id is None:
    raise ValueError("Neighbor adjustment needs stored slots with ids.")
  return slot.slot_id


def find_gaps(slots: Iterable[SlotRecord]) -> list[tuple[SlotRecord, SlotRecord]]:
  """Return adjacent pairs (in time order) whose boundaries do not touch."""
  ordered = sort_by_start(slots)
  return [(left, right) for left, right in zip(ordered, ordered[1:], strict=False) if not equal(left.end_time, right.start_time)]
