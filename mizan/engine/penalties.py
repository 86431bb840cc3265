"""Debt carry-forward and the submission gate."""

from mizan.db.models import DayRecord, Penalty
from mizan.engine.completion import meets_minimum_threshold
from mizan.utils.constants import (
    PENALTY_DISCIPLINE_DEBT,
    PENALTY_EXTRA_MILE,
    PENALTY_LABEL,
)
from mizan.utils.errors import DaySealedError, NotFoundError
from mizan.utils.time_utils import previous_day


def missed(record: DayRecord | None) -> bool:
    """A day that exists but wasn't both submitted and completed."""
    return record is not None and not (record.submitted and record.completed)


def carry_forward(
    today: DayRecord, yesterday: DayRecord | None, strict: bool = False
) -> Penalty | None:
    """Attach a debt to today for a missed yesterday.

    Idempotent: a second call for the same pair of days adds nothing, whether
    the existing debt is resolved or not. Sealed days are left alone.

    Returns:
        The new penalty, or None if nothing was added
    """
    if today.submitted or not missed(yesterday):
        return None

    origin = previous_day(today.day)
    if any(p.origin == origin for p in today.penalties):
        return None

    penalty = Penalty(
        id=f"penalty-{origin.isoformat()}",
        label=PENALTY_LABEL,
        origin=origin,
        due=today.day,
        type=PENALTY_DISCIPLINE_DEBT if strict else PENALTY_EXTRA_MILE,
        resolved=False,
    )
    today.penalties.append(penalty)
    return penalty


def outstanding(record: DayRecord) -> list[Penalty]:
    return [p for p in record.penalties if not p.resolved]


def penalties_resolved(record: DayRecord) -> bool:
    return not outstanding(record)


def can_submit(record: DayRecord) -> bool:
    return (
        not record.submitted
        and meets_minimum_threshold(record.categories)
        and penalties_resolved(record)
    )


def toggle_penalty(record: DayRecord, penalty_id: str) -> Penalty:
    """Flip a penalty between resolved and unresolved."""
    if record.submitted:
        raise DaySealedError(record.day)

    for penalty in record.penalties:
        if penalty.id == penalty_id:
            penalty.resolved = not penalty.resolved
            return penalty

    raise NotFoundError(f"No debt {penalty_id} on {record.day.isoformat()}.")


def total_outstanding(records: list[DayRecord]) -> int:
    return sum(len(outstanding(r)) for r in records)

