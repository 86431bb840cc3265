"""Daily point computation with a user-visible breakdown trail."""

from dataclasses import dataclass, field

from mizan.db.models import CategoryState
from mizan.engine.completion import category_completion, late_count
from mizan.utils.constants import (
    LATE_PRAYER_DEDUCTION,
    PERFECT_DAY_BONUS,
    STREAK_BONUS,
    STREAK_BONUS_EVERY,
    TOTAL_CATEGORIES,
)


@dataclass
class ScoreResult:
    points: float
    breakdown: list[str] = field(default_factory=list)
    late_count: int = 0
    completed_count: int = 0


def compute_score(categories: CategoryState) -> ScoreResult:
    """Score a day's categories.

    Order of the breakdown matters, it is shown to the user as-is:
    1. +1 per completed category (Salah, Qur'an, Physical, Build, Study, Journal, Rest)
    2. -0.5 per late prayer, never taking more than the points earned so far
    3. +2 when all 7 are complete
    """
    breakdown: list[str] = []
    points = 0.0
    completed_count = 0

    for name, done in category_completion(categories):
        if done:
            completed_count += 1
            points += 1
            breakdown.append(f"{name} completed: +1")

    late = late_count(categories.salah)
    if late > 0:
        deduction = min(points, late * LATE_PRAYER_DEDUCTION)
        points -= deduction
        breakdown.append(f"Late prayers ({late}): -{deduction:.1f}")

    if completed_count == TOTAL_CATEGORIES:
        points += PERFECT_DAY_BONUS
        breakdown.append(f"All tasks completed: +{PERFECT_DAY_BONUS} bonus")

    return ScoreResult(
        points=points,
        breakdown=breakdown,
        late_count=late,
        completed_count=completed_count,
    )


def streak_bonus(streak: int) -> tuple[int, str | None]:
    """Bonus for a streak (including today) landing on a multiple of 7."""
    if streak > 0 and streak % STREAK_BONUS_EVERY == 0:
        return STREAK_BONUS, f"{STREAK_BONUS_EVERY}-day streak: +{STREAK_BONUS} bonus"
    return 0, None
