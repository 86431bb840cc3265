"""Streaks and 7-day cycles, derived from the full day history."""

from dataclasses import dataclass
from datetime import date
from typing import Iterable

from mizan.db.models import CycleRecord, DayRecord
from mizan.utils.constants import CYCLE_LENGTH


def qualifies(record: DayRecord | None) -> bool:
    return record is not None and record.submitted and record.completed


def compute_streak(history: Iterable[DayRecord], upto: date) -> int:
    """Count qualifying records backward from the latest day <= upto.

    The walk is over existing records, not calendar days: a gap in the
    calendar doesn't break the streak, but any stored day that isn't
    submitted and completed does.
    """
    records = sorted((r for r in history if r.day <= upto), key=lambda r: r.day)
    streak = 0
    for record in reversed(records):
        if not qualifies(record):
            break
        streak += 1
    return streak


def completed_days(history: Iterable[DayRecord]) -> list[date]:
    """Sorted, de-duplicated days that were submitted and completed."""
    return sorted({r.day for r in history if qualifies(r)})


def build_cycles(history: Iterable[DayRecord]) -> list[CycleRecord]:
    """Group completed days into cycles of seven, in order.

    Rebuilt from scratch every time; the last cycle may be partial.
    """
    cycles: list[CycleRecord] = []
    current = CycleRecord(id="cycle-1")

    for day in completed_days(history):
        if len(current.days) == CYCLE_LENGTH:
            cycles.append(current)
            current = CycleRecord(id=f"cycle-{len(cycles) + 1}")
        current.days.append(day)

    if current.days:
        cycles.append(current)

    return cycles


@dataclass
class CycleSummary:
    cycles: list[CycleRecord]
    cycles_completed: int
    current_progress: int


def summarize_cycles(cycles: list[CycleRecord]) -> CycleSummary:
    """Completed cycle count and progress through the in-progress cycle.

    A full last cycle means the next one hasn't started, so progress is 0.
    """
    cycles_completed = sum(1 for c in cycles if len(c.days) == CYCLE_LENGTH)
    current_progress = 0
    if cycles and len(cycles[-1].days) < CYCLE_LENGTH:
        current_progress = len(cycles[-1].days)
    return CycleSummary(
        cycles=cycles,
        cycles_completed=cycles_completed,
        current_progress=current_progress,
    )
