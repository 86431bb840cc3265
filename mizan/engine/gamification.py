"""Missions and achievements: declarative one-time bonuses."""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Callable

from mizan.db.models import DayRecord, RuleProgress

MISSIONS = "missions"
ACHIEVEMENTS = "achievements"


@dataclass
class RuleContext:
    """What a rule can look at.

    Missions only read the day fields; achievements also read the cumulative ones.
    """

    day: DayRecord
    day_key: date
    late_count: int
    completed_count: int
    all_completed: bool
    total_completed_days: int = 0
    streak: int = 0
    perfect_days: int = 0


@dataclass(frozen=True)
class Rule:
    id: str
    title: str
    description: str
    points: int
    check: Callable[[RuleContext], bool]


MISSION_RULES = [
    Rule(
        "five-of-seven",
        "Meet the standard",
        "Complete at least 5 of 7 obligations.",
        1,
        lambda ctx: ctx.completed_count >= 5,
    ),
    Rule(
        "no-late-prayers",
        "On time",
        "Finish the day with zero late prayers.",
        1,
        lambda ctx: ctx.late_count == 0 and ctx.completed_count >= 5,
    ),
    Rule(
        "perfect-day",
        "Full balance",
        "Complete all 7 obligations in one day.",
        2,
        lambda ctx: ctx.all_completed,
    ),
]

ACHIEVEMENT_RULES = [
    Rule(
        "first-day",
        "First step",
        "Complete your first balanced day.",
        2,
        lambda ctx: ctx.total_completed_days >= 1,
    ),
    Rule(
        "streak-seven",
        "Week strong",
        "Reach a 7-day completion streak.",
        5,
        lambda ctx: ctx.streak >= 7,
    ),
    Rule(
        "perfect-three",
        "Triple perfect",
        "Log three perfect days (all 7 obligations).",
        5,
        lambda ctx: ctx.perfect_days >= 3,
    ),
]


@dataclass
class Evaluation:
    earned: list[Rule] = field(default_factory=list)
    progress: dict[str, RuleProgress] = field(default_factory=dict)

    @property
    def bonus(self) -> int:
        return sum(rule.points for rule in self.earned)

    def breakdown(self) -> list[str]:
        return [f"{rule.title}: +{rule.points}" for rule in self.earned]


def evaluate(
    rules: list[Rule],
    ctx: RuleContext,
    progress: dict[str, RuleProgress],
    now: datetime | None = None,
) -> Evaluation:
    """Award every not-yet-completed rule whose check passes.

    The input progress map is not modified; the returned one is a copy with
    the newly earned rules marked. Completed rules are skipped, so running
    this twice awards nothing the second time.
    """
    updated = dict(progress)
    earned = []

    for rule in rules:
        entry = updated.get(rule.id)
        if entry and entry.completed:
            continue
        if rule.check(ctx):
            updated[rule.id] = RuleProgress(
                completed=True, completed_at=now, points_awarded=rule.points
            )
            earned.append(rule)

    return Evaluation(earned=earned, progress=updated)


@dataclass
class RuleStatus:
    id: str
    title: str
    description: str
    points: int
    completed: bool


def list_rules(rules: list[Rule], progress: dict[str, RuleProgress]) -> list[RuleStatus]:
    return [
        RuleStatus(
            id=rule.id,
            title=rule.title,
            description=rule.description,
            points=rule.points,
            completed=bool(progress.get(rule.id) and progress[rule.id].completed),
        )
        for rule in rules
    ]
