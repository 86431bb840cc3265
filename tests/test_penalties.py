"""Tests for debt carry-forward and the submission gate."""

from datetime import date

import pytest

from mizan.db.models import DayRecord
from mizan.engine.penalties import (
    can_submit,
    carry_forward,
    missed,
    outstanding,
    toggle_penalty,
    total_outstanding,
)
from mizan.utils.errors import DaySealedError, NotFoundError

DAY_N = date(2026, 3, 14)
DAY_N1 = date(2026, 3, 15)


def test_missed():
    """Test which days count as missed."""
    assert not missed(None)
    assert missed(DayRecord(day=DAY_N))
    assert missed(DayRecord(day=DAY_N, submitted=True, completed=False))
    assert not missed(DayRecord(day=DAY_N, submitted=True, completed=True))


def test_missed_day_blocks_next_submission(make_categories):
    """Test that a missed day puts one debt on the next day and blocks submit."""
    yesterday = DayRecord(day=DAY_N, submitted=True, completed=False)
    today = DayRecord(day=DAY_N1, categories=make_categories())

    penalty = carry_forward(today, yesterday)

    assert penalty is not None
    assert penalty.origin == DAY_N
    assert penalty.due == DAY_N1
    assert penalty.type == "extra-mile"
    assert not penalty.resolved
    assert len(today.penalties) == 1

    # 6/7 done but the debt is open
    assert not can_submit(today)

    toggle_penalty(today, penalty.id)
    assert can_submit(today)


def test_carry_forward_is_idempotent():
    """Test that loading the day twice doesn't add a second debt."""
    yesterday = DayRecord(day=DAY_N)
    today = DayRecord(day=DAY_N1)

    carry_forward(today, yesterday)
    toggle_penalty(today, today.penalties[0].id)

    assert carry_forward(today, yesterday) is None
    assert len(today.penalties) == 1
    assert today.penalties[0].resolved


def test_no_debt_after_good_day_or_gap():
    """Test no debt for a completed yesterday or a missing record."""
    good = DayRecord(day=DAY_N, submitted=True, completed=True)
    today = DayRecord(day=DAY_N1)

    assert carry_forward(today, good) is None
    assert carry_forward(today, None) is None
    assert today.penalties == []


def test_sealed_day_gets_no_debt():
    """Test that a sealed day is never modified."""
    today = DayRecord(day=DAY_N1, submitted=True, completed=True)

    assert carry_forward(today, DayRecord(day=DAY_N)) is None
    assert today.penalties == []


def test_strict_mode_debt_type():
    """Test strict mode marking debts as discipline debt."""
    today = DayRecord(day=DAY_N1)
    penalty = carry_forward(today, DayRecord(day=DAY_N), strict=True)

    assert penalty.type == "discipline-debt"


def test_toggle_penalty_errors():
    """Test toggling an unknown debt or a debt on a sealed day."""
    today = DayRecord(day=DAY_N1)
    carry_forward(today, DayRecord(day=DAY_N))

    with pytest.raises(NotFoundError):
        toggle_penalty(today, "penalty-1999-01-01")

    today.submitted = True
    with pytest.raises(DaySealedError):
        toggle_penalty(today, today.penalties[0].id)


def test_total_outstanding():
    """Test counting open debts across days."""
    a = DayRecord(day=DAY_N)
    b = DayRecord(day=DAY_N1)
    carry_forward(a, DayRecord(day=date(2026, 3, 13)))
    carry_forward(b, a)
    toggle_penalty(a, a.penalties[0].id)

    assert len(outstanding(a)) == 0
    assert total_outstanding([a, b]) == 1
