"""Schema package exports."""

from .timetable import SlotKind, SyllabusProgress, TimetableSlot

__all__ = ["SlotKind", "SyllabusProgress", "TimetableSlot"]
