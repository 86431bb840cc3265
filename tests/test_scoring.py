"""Tests for completion rules and daily scoring."""

import copy

from mizan.db.models import ActivityState, BuildState, CategoryState
from mizan.engine.completion import (
    category_completion,
    count_completed_categories,
    is_build_complete,
    is_perfect_day,
    is_quran_complete,
    is_salah_complete,
    meets_minimum_threshold,
)
from mizan.engine.scoring import compute_score, streak_bonus


def test_empty_day_completes_nothing():
    """Test that a fresh CategoryState has nothing complete."""
    categories = CategoryState()

    assert count_completed_categories(categories) == 0
    assert not meets_minimum_threshold(categories)
    assert compute_score(categories).points == 0
    assert compute_score(categories).breakdown == []


def test_salah_needs_all_five():
    """Test salah completion with a missing prayer."""
    categories = CategoryState()
    for prayer in ("fajr", "dhuhr", "asr", "maghrib"):
        categories.salah[prayer] = "late"

    assert not is_salah_complete(categories.salah)

    categories.salah["isha"] = "ontime"
    assert is_salah_complete(categories.salah)


def test_quran_minimum_minutes():
    """Test that Qur'an needs an option and at least 10 minutes."""
    assert not is_quran_complete(ActivityState(["reading"], 9))
    assert not is_quran_complete(ActivityState([], 30))
    assert is_quran_complete(ActivityState(["reading"], 10))


def test_build_needs_description():
    """Test that whitespace doesn't count as a build description."""
    assert not is_build_complete(BuildState(["work"], "   "))
    assert is_build_complete(BuildState(["work"], "wrote tests"))


def test_category_order(make_categories):
    """Test the fixed display and scoring order."""
    names = [name for name, _ in category_completion(make_categories())]

    assert names == ["Salah", "Qur'an", "Physical", "Build", "Study", "Journal", "Rest"]


def test_six_of_seven(make_categories):
    """Test six complete categories, rest missing."""
    result = compute_score(make_categories(rest=False))

    assert result.completed_count == 6
    assert result.points == 6
    assert len([line for line in result.breakdown if line.endswith(": +1")]) == 6
    assert not any("bonus" in line for line in result.breakdown)


def test_perfect_day_bonus(make_categories):
    """Test that all seven categories earn the +2 bonus."""
    categories = make_categories(rest=True)
    result = compute_score(categories)

    assert is_perfect_day(categories)
    assert result.points == 9
    assert result.breakdown[-1] == "All tasks completed: +2 bonus"


def test_late_prayers_deduction(make_categories):
    """Test two late prayers taking 1.0 off six points."""
    result = compute_score(make_categories(late=2))

    assert result.late_count == 2
    assert result.points == 5.0
    assert "Late prayers (2): -1.0" in result.breakdown


def test_late_deduction_never_goes_negative():
    """Test that the deduction is capped at the points earned."""
    categories = CategoryState()
    for prayer in categories.salah:
        categories.salah[prayer] = "late"

    result = compute_score(categories)

    # Salah itself is complete: +1, then 5 late would be -2.5
    assert result.points == 0
    assert "Late prayers (5): -1.0" in result.breakdown


def test_breakdown_order(make_categories):
    """Test +1 lines, then the late line, then the bonus."""
    result = compute_score(make_categories(late=1, rest=True))

    assert result.breakdown[:7] == [
        "Salah completed: +1",
        "Qur'an completed: +1",
        "Physical completed: +1",
        "Build completed: +1",
        "Study completed: +1",
        "Journal completed: +1",
        "Rest completed: +1",
    ]
    assert result.breakdown[7] == "Late prayers (1): -0.5"
    assert result.breakdown[8] == "All tasks completed: +2 bonus"
    assert result.points == 8.5


def test_streak_bonus():
    """Test the streak bonus on multiples of seven only."""
    assert streak_bonus(0) == (0, None)
    assert streak_bonus(6) == (0, None)
    assert streak_bonus(7) == (20, "7-day streak: +20 bonus")
    assert streak_bonus(8)[0] == 0
    assert streak_bonus(14)[0] == 20


def test_completed_count_never_drops_as_work_is_added():
    """Test that finishing more obligations never lowers the count."""
    categories = CategoryState()

    def all_salah(c):
        for prayer in c.salah:
            c.salah[prayer] = "late"

    steps = [
        all_salah,
        lambda c: c.quran.selected.append("reading"),
        lambda c: setattr(c.quran, "duration", 10),
        lambda c: c.physical.selected.append("walk"),
        lambda c: setattr(c.physical, "duration", 20),
        lambda c: c.build.selected.append("work"),
        lambda c: setattr(c.build, "description", "wrote tests"),
        lambda c: setattr(c.study, "completed", True),
        lambda c: setattr(c.journal, "completed", True),
        lambda c: setattr(c.rest, "completed", True),
    ]

    counts = [count_completed_categories(categories)]
    for step in steps:
        step(categories)
        counts.append(count_completed_categories(categories))

    assert counts == sorted(counts)
    assert counts[0] == 0
    assert counts[-1] == 7


def test_score_is_repeatable(make_categories):
    """Test that the same categories always score the same, without being changed."""
    categories = make_categories(late=2, rest=True)
    before = copy.deepcopy(categories)

    first = compute_score(categories)
    second = compute_score(copy.deepcopy(categories))

    assert first == second
    assert categories == before
