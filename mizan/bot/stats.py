"""Status, summary and dashboard views, plus history export."""

import csv
import io
from dataclasses import dataclass, field
from datetime import date, timedelta

from mizan.db.models import DayRecord, RuleProgress
from mizan.db.repository import Repository
from mizan.engine import gamification
from mizan.engine.completion import count_completed_categories, late_count
from mizan.engine.cycles import build_cycles, compute_streak, summarize_cycles
from mizan.engine.penalties import total_outstanding
from mizan.engine.rank import classify_rank, has_recovered_from_miss
from mizan.engine.subscription import FeatureDecision, PaywallReason
from mizan.utils.constants import RankTier


@dataclass
class Status:
    rank: RankTier
    streak: int
    cycles_completed: int
    current_progress: int
    submitted_days: int
    completed_days: int
    penalties_outstanding: int
    missions: list[gamification.RuleStatus] = field(default_factory=list)
    achievements: list[gamification.RuleStatus] = field(default_factory=list)


def build_status(
    records: list[DayRecord],
    today: date,
    missions: dict[str, RuleProgress],
    achievements: dict[str, RuleProgress],
) -> Status:
    cycles = summarize_cycles(build_cycles(records))
    completed_days = sum(1 for r in records if r.completed)

    return Status(
        rank=classify_rank(
            completed_days, cycles.cycles_completed, has_recovered_from_miss(records)
        ),
        streak=compute_streak(records, today),
        cycles_completed=cycles.cycles_completed,
        current_progress=cycles.current_progress,
        submitted_days=sum(1 for r in records if r.submitted),
        completed_days=completed_days,
        penalties_outstanding=total_outstanding(records),
        missions=gamification.list_rules(gamification.MISSION_RULES, missions),
        achievements=gamification.list_rules(gamification.ACHIEVEMENT_RULES, achievements),
    )


async def get_status(
    repo: Repository,
    user_id: int,
    today: date,
    records: list[DayRecord] | None = None,
) -> Status:
    """Rank, streak, cycles and rule progress.

    Args:
        records: cached day records to use instead of reading the database
    """
    if records is None:
        records = await repo.list_day_records(user_id)

    return build_status(
        records,
        today,
        await repo.get_progress(user_id, gamification.MISSIONS),
        await repo.get_progress(user_id, gamification.ACHIEVEMENTS),
    )


@dataclass
class DayScore:
    day: date
    points: float
    completed: bool


@dataclass
class Summary:
    range_days: int
    total_score: float
    average_score: float
    per_day: list[DayScore] = field(default_factory=list)
    paywall_reason: PaywallReason | None = None


def build_summary(
    records: list[DayRecord],
    range_days: int,
    today: date,
    decision: FeatureDecision,
    free_days: int = 7,
) -> Summary:
    """Points over the last ``range_days`` days, today included.

    Free users asking for more than ``free_days`` get a ``free_days`` preview
    and the analytics paywall reason.
    """
    reason = None
    if range_days > free_days:
        reason = decision.reason_for("analytics")
        if reason:
            range_days = free_days

    try:
        start = today - timedelta(days=range_days - 1)
    except OverflowError:
        # Reaches past the first representable day: the whole history
        start = date.min

    per_day = [
        DayScore(day=r.day, points=r.points_awarded or 0.0, completed=r.completed)
        for r in sorted(records, key=lambda r: r.day)
        if r.submitted and start <= r.day <= today
    ]
    total = sum(d.points for d in per_day)

    return Summary(
        range_days=range_days,
        total_score=total,
        average_score=total / len(per_day) if per_day else 0.0,
        per_day=per_day,
        paywall_reason=reason,
    )


async def get_summary(
    repo: Repository,
    user_id: int,
    range_days: int,
    today: date,
    decision: FeatureDecision,
    free_days: int = 7,
) -> Summary:
    records = await repo.list_day_records(user_id)
    return build_summary(records, range_days, today, decision, free_days)


@dataclass
class Dashboard:
    today: date
    today_status: str
    today_hint: str
    categories_done: int
    streak: int
    completed_days: int
    submitted_days: int
    penalties_outstanding: int
    cycles_completed: int
    current_progress: int
    last_completed: date | None
    focus_phrase: str
    points: float = 0.0
    last_points: float | None = None


def build_dashboard(
    records: list[DayRecord],
    today: date,
    focus_phrase: str,
    points: float = 0.0,
    last_points: float | None = None,
) -> Dashboard:
    by_day = {r.day: r for r in records}
    today_record = by_day.get(today)
    categories_done = count_completed_categories(today_record.categories) if today_record else 0

    if today_record and today_record.completed:
        status, hint = "Completed", "Today is balanced. See /status or /cycles."
    elif today_record and today_record.submitted:
        status, hint = "Logged", "Submitted but not balanced. Clear any debts if needed."
    elif categories_done > 0:
        status, hint = "In progress", "You have activity saved. Finish and /submit when ready."
    else:
        status, hint = "Not started", "Begin your daily check-in with /today."

    completed = [r.day for r in records if r.completed]
    cycles = summarize_cycles(build_cycles(records))

    return Dashboard(
        today=today,
        today_status=status,
        today_hint=hint,
        categories_done=categories_done,
        streak=compute_streak(records, today),
        completed_days=len(completed),
        submitted_days=sum(1 for r in records if r.submitted),
        penalties_outstanding=total_outstanding(records),
        cycles_completed=cycles.cycles_completed,
        current_progress=cycles.current_progress,
        last_completed=max(completed) if completed else None,
        focus_phrase=focus_phrase,
        points=points,
        last_points=last_points,
    )


EXPORT_HEADER = ["date", "submitted", "completed", "points", "latePrayers", "completedCategories"]


def export_history_csv(
    records: list[DayRecord],
    today: date,
    decision: FeatureDecision,
    free_days: int = 30,
) -> str:
    """History as CSV. Free users get the last ``free_days`` days only."""
    rows = sorted(records, key=lambda r: r.day)
    if decision.reason_for("export_full_history"):
        cutoff = today - timedelta(days=free_days)
        rows = [r for r in rows if r.day >= cutoff]

    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(EXPORT_HEADER)
    for r in rows:
        writer.writerow(
            [
                r.day.isoformat(),
                "yes" if r.submitted else "no",
                "yes" if r.completed else "no",
                "" if r.points_awarded is None else r.points_awarded,
                late_count(r.categories.salah),
                count_completed_categories(r.categories),
            ]
        )
    return buffer.getvalue()
