"""Daily check-in lifecycle: open, edit, resolve debts, submit.

A day is created empty on first access, edited freely until submitted, and
sealed for good once submitted.
"""

import logging
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import Callable

from mizan.db.models import (
    ActivityState,
    BuildState,
    CategoryState,
    DayRecord,
    Penalty,
    PointsLogEntry,
)
from mizan.db.repository import Repository
from mizan.engine import gamification
from mizan.engine.completion import (
    count_completed_categories,
    is_perfect_day,
    meets_minimum_threshold,
)
from mizan.engine.cycles import compute_streak, qualifies
from mizan.engine.penalties import carry_forward, outstanding, toggle_penalty
from mizan.engine.scoring import compute_score, streak_bonus
from mizan.utils.constants import (
    BUILD_OPTIONS,
    MINIMUM_COMPLETED_CATEGORIES,
    OPTIONAL_TASKS,
    PHYSICAL_OPTIONS,
    PRAYERS,
    QURAN_OPTIONS,
    SALAH_STATUSES,
    TOTAL_CATEGORIES,
)
from mizan.utils.errors import DaySealedError, OutstandingDebtError, ValidationError
from mizan.utils.time_utils import previous_day, utcnow

logger = logging.getLogger(__name__)

ACTIVITY_OPTIONS = {
    "quran": QURAN_OPTIONS,
    "physical": PHYSICAL_OPTIONS,
    "build": BUILD_OPTIONS,
}


# Category edits (pure, validated)


def validate_categories(categories: CategoryState) -> None:
    """Reject a malformed category payload before anything is stored."""
    for prayer, status in categories.salah.items():
        if prayer not in PRAYERS:
            raise ValidationError("salah", f"unknown prayer '{prayer}'")
        if status is not None and status not in SALAH_STATUSES:
            raise ValidationError(f"salah.{prayer}", f"unknown status '{status}'")

    for name, options in ACTIVITY_OPTIONS.items():
        state = getattr(categories, name)
        for option in state.selected:
            if option not in options:
                raise ValidationError(f"{name}.selected", f"unknown option '{option}'")

    for name in ("quran", "physical"):
        duration = getattr(categories, name).duration
        if not isinstance(duration, int) or duration < 0:
            raise ValidationError(f"{name}.duration", "must be a whole number of minutes >= 0")

    if not isinstance(categories.build.description, str):
        raise ValidationError("build.description", "must be text")


def set_prayer(categories: CategoryState, prayer: str, status: str | None) -> None:
    if prayer not in PRAYERS:
        raise ValidationError("salah", f"unknown prayer '{prayer}'")
    if status is not None and status not in SALAH_STATUSES:
        raise ValidationError(f"salah.{prayer}", f"unknown status '{status}'")
    categories.salah[prayer] = status


def toggle_option(categories: CategoryState, category: str, option: str) -> bool:
    """Select or unselect an activity option.

    Returns:
        True if the option is now selected
    """
    options = ACTIVITY_OPTIONS.get(category)
    if options is None:
        raise ValidationError("category", f"'{category}' has no options")
    if option not in options:
        raise ValidationError(f"{category}.selected", f"unknown option '{option}'")

    state: ActivityState | BuildState = getattr(categories, category)
    if option in state.selected:
        state.selected.remove(option)
        return False
    state.selected.append(option)
    return True


def set_duration(categories: CategoryState, category: str, minutes: int) -> None:
    if category not in ("quran", "physical"):
        raise ValidationError("category", f"'{category}' has no duration")
    if minutes < 0:
        raise ValidationError(f"{category}.duration", "cannot be negative")
    getattr(categories, category).duration = minutes


def set_build_description(categories: CategoryState, text: str) -> None:
    categories.build.description = text


def toggle_optional(categories: CategoryState, task: str) -> bool:
    if task not in OPTIONAL_TASKS:
        raise ValidationError("task", f"unknown task '{task}'")
    state = getattr(categories, task)
    state.completed = not state.completed
    return state.completed


# Day lifecycle


async def open_day(
    repo: Repository, user_id: int, day: date, strict: bool | None = None
) -> DayRecord:
    """Load a day, creating it on first access and carrying forward any debt.

    Args:
        strict: strict mode override; read from the user's flags when None
    """
    record = await repo.get_day_record(user_id, day)
    is_new = record is None
    if record is None:
        record = DayRecord(day=day)

    if record.submitted:
        return record

    if strict is None:
        settings = await repo.get_settings(user_id)
        strict = bool(settings.feature_flags.get("mizanStrictMode", False))

    yesterday = await repo.get_day_record(user_id, previous_day(day))
    penalty = carry_forward(record, yesterday, strict=strict)

    if is_new or penalty:
        await repo.put_day_record(user_id, record)
    if penalty:
        logger.info(f"User {user_id}: debt carried from {penalty.origin} to {day}")

    return record


async def update_categories(
    repo: Repository,
    user_id: int,
    day: date,
    edit: Callable[[CategoryState], object],
) -> DayRecord:
    """Apply an edit to a day's categories and store it."""
    record = await open_day(repo, user_id, day)
    if record.submitted:
        raise DaySealedError(day)

    edit(record.categories)
    await repo.put_day_record(user_id, record)
    return record


async def resolve_penalty(
    repo: Repository, user_id: int, day: date, penalty_id: str
) -> Penalty:
    """Toggle a debt's resolved flag."""
    record = await open_day(repo, user_id, day)
    penalty = toggle_penalty(record, penalty_id)
    await repo.put_day_record(user_id, record)
    return penalty


@dataclass
class SubmitResult:
    day: date
    points_awarded: float
    breakdown: list[str]
    completed: bool
    streak: int
    earned: list[gamification.Rule] = field(default_factory=list)
    sealed: bool = True


async def submit_day(
    repo: Repository,
    user_id: int,
    day: date,
    categories: CategoryState | None = None,
    now: datetime | None = None,
) -> SubmitResult:
    """Score and seal a day.

    Pipeline:
    1. Validate the payload and the gate (not sealed, no open debt, 5 of 7)
    2. Score the categories
    3. Add the streak bonus if the streak including today is a multiple of 7
    4. Award missions and achievements not yet earned
    5. Persist the sealed day, progress, leaderboard and points log

    Raises:
        ValidationError: malformed payload or fewer than 5 obligations done
        ConflictError: day already sealed, or unresolved debt
    """
    if now is None:
        now = utcnow()

    if categories is not None:
        validate_categories(categories)

    record = await open_day(repo, user_id, day)
    if record.submitted:
        raise DaySealedError(day)

    if categories is not None:
        record.categories = categories

    debts = outstanding(record)
    if debts:
        raise OutstandingDebtError(len(debts))

    if not meets_minimum_threshold(record.categories):
        done = count_completed_categories(record.categories)
        raise ValidationError(
            "categories",
            f"complete at least {MINIMUM_COMPLETED_CATEGORIES} of {TOTAL_CATEGORIES} "
            f"obligations ({done}/{TOTAL_CATEGORIES} done)",
        )

    score = compute_score(record.categories)
    sealed = replace(
        record,
        submitted=True,
        completed=meets_minimum_threshold(record.categories),
        submitted_at=now,
    )

    history = [r for r in await repo.list_day_records(user_id) if r.day != day]
    history.append(sealed)

    breakdown = list(score.breakdown)
    streak = compute_streak(history, day)
    bonus, bonus_line = streak_bonus(streak)
    if bonus_line:
        breakdown.append(bonus_line)

    ctx = gamification.RuleContext(
        day=sealed,
        day_key=day,
        late_count=score.late_count,
        completed_count=score.completed_count,
        all_completed=is_perfect_day(record.categories),
        total_completed_days=sum(1 for r in history if qualifies(r)),
        streak=streak,
        perfect_days=sum(
            1 for r in history if qualifies(r) and is_perfect_day(r.categories)
        ),
    )
    missions = gamification.evaluate(
        gamification.MISSION_RULES,
        ctx,
        await repo.get_progress(user_id, gamification.MISSIONS),
        now,
    )
    achievements = gamification.evaluate(
        gamification.ACHIEVEMENT_RULES,
        ctx,
        await repo.get_progress(user_id, gamification.ACHIEVEMENTS),
        now,
    )
    breakdown.extend(missions.breakdown())
    breakdown.extend(achievements.breakdown())

    total = score.points + bonus + missions.bonus + achievements.bonus
    sealed.points_awarded = total
    sealed.score_breakdown = breakdown

    await repo.seal_day(
        user_id,
        sealed,
        {
            gamification.MISSIONS: missions.progress,
            gamification.ACHIEVEMENTS: achievements.progress,
        },
        PointsLogEntry(day=day, points=total, breakdown=breakdown),
    )

    logger.info(f"User {user_id} sealed {day}: {total} points, streak {streak}")

    return SubmitResult(
        day=day,
        points_awarded=total,
        breakdown=breakdown,
        completed=sealed.completed,
        streak=streak,
        earned=missions.earned + achievements.earned,
    )
