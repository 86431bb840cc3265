"""Category completion rules.

Pure predicates over a CategoryState. None of these raise: an untouched
category simply isn't complete.
"""

from mizan.db.models import ActivityState, BuildState, CategoryState
from mizan.utils.constants import (
    MINIMUM_COMPLETED_CATEGORIES,
    PHYSICAL_MIN_MINUTES,
    PRAYERS,
    QURAN_MIN_MINUTES,
    TOTAL_CATEGORIES,
)


def is_salah_complete(salah: dict) -> bool:
    """All five prayers logged, on time or late."""
    return all(salah.get(prayer) in ("ontime", "late") for prayer in PRAYERS)


def late_count(salah: dict) -> int:
    return sum(1 for prayer in PRAYERS if salah.get(prayer) == "late")


def _activity_complete(activity: ActivityState, min_minutes: int) -> bool:
    return len(activity.selected) > 0 and (activity.duration or 0) >= min_minutes


def is_quran_complete(quran: ActivityState) -> bool:
    return _activity_complete(quran, QURAN_MIN_MINUTES)


def is_physical_complete(physical: ActivityState) -> bool:
    return _activity_complete(physical, PHYSICAL_MIN_MINUTES)


def is_build_complete(build: BuildState) -> bool:
    return len(build.selected) > 0 and bool((build.description or "").strip())


def category_completion(categories: CategoryState) -> list[tuple[str, bool]]:
    """Completion of each category, in display and scoring order."""
    return [
        ("Salah", is_salah_complete(categories.salah)),
        ("Qur'an", is_quran_complete(categories.quran)),
        ("Physical", is_physical_complete(categories.physical)),
        ("Build", is_build_complete(categories.build)),
        ("Study", categories.study.completed),
        ("Journal", categories.journal.completed),
        ("Rest", categories.rest.completed),
    ]


def count_completed_categories(categories: CategoryState) -> int:
    return sum(1 for _, done in category_completion(categories) if done)


def meets_minimum_threshold(categories: CategoryState) -> bool:
    """The day counts as completed: any 5 of the 7 obligations."""
    return count_completed_categories(categories) >= MINIMUM_COMPLETED_CATEGORIES


def is_perfect_day(categories: CategoryState) -> bool:
    """All 7 obligations done. Earns the perfect-day bonus."""
    return count_completed_categories(categories) == TOTAL_CATEGORIES
