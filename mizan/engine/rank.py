"""Rank classification from cumulative stats."""

from typing import Iterable

from mizan.db.models import DayRecord
from mizan.utils.constants import RANKS, RankTier


def has_recovered_from_miss(history: Iterable[DayRecord]) -> bool:
    """True if a submitted-but-incomplete day sits right before the current run.

    Walks backward from the most recent record, skipping completed days. The
    first non-completed record decides: submitted means the user failed and
    carried on; anything else (or running out of records) means no recovery.
    """
    records = sorted(history, key=lambda r: r.day)
    for record in reversed(records):
        if record.completed:
            continue
        return record.submitted
    return False


def classify_rank(completed_days: int, cycles_completed: int, recovered: bool) -> RankTier:
    """Highest tier whose threshold is met, checked from the top down."""
    if completed_days >= 30:
        return RANKS[6]
    if cycles_completed >= 7 and recovered:
        return RANKS[5]
    if cycles_completed >= 3:
        return RANKS[4]
    if cycles_completed >= 1:
        return RANKS[3]
    if completed_days >= 1:
        return RANKS[2]
    return RANKS[1]
