"""Tests for message formatting and keyboards."""

from datetime import date, datetime
from zoneinfo import ZoneInfo

from mizan.bot.formatters import (
    format_dashboard,
    format_day,
    format_focus,
    format_invalid_timezone,
    format_summary,
)
from mizan.bot.keyboards import day_keyboard
from mizan.bot.stats import build_dashboard, build_summary
from mizan.db.models import DayRecord, Settings, User
from mizan.engine.penalties import carry_forward
from mizan.engine.subscription import decide_features

TODAY = date(2026, 3, 15)
NOW = datetime(2026, 3, 15, 12, 0, tzinfo=ZoneInfo("UTC"))


def callbacks(markup) -> list[str]:
    return [button.callback_data for row in markup.inline_keyboard for button in row]


def test_day_card_ready_to_submit(make_categories):
    """Test the submit button appearing once the gate is met."""
    record = DayRecord(day=TODAY, categories=make_categories())

    assert "6/7" in format_day(record)
    assert "submit" in callbacks(day_keyboard(record))


def test_day_card_with_debt(make_categories):
    """Test an open debt hiding the submit button."""
    record = DayRecord(day=TODAY, categories=make_categories())
    penalty = carry_forward(record, DayRecord(day=date(2026, 3, 14)))

    text = format_day(record)
    data = callbacks(day_keyboard(record))

    assert "resolve your debts" in text
    assert f"debt:{penalty.id}" in data
    assert "submit" not in data


def test_dashboard_v2_only_for_premium_with_flag():
    """Test the extended dashboard gating."""
    dash = build_dashboard([], TODAY, "Stay steady")
    settings = Settings(focus_phrase="x", feature_flags={"premiumV2": True})

    free = decide_features(User(telegram_id=1, timezone="UTC"), settings, NOW)
    premium = decide_features(
        User(telegram_id=1, timezone="UTC", tier="premium"), settings, NOW
    )

    assert "Insights" not in format_dashboard(dash, free)
    assert "Insights" in format_dashboard(dash, premium)


def test_summary_mentions_paywall():
    """Test the premium hint on a clamped summary."""
    free = decide_features(User(telegram_id=1, timezone="UTC"), Settings(focus_phrase="x"), NOW)

    text = format_summary(build_summary([], 30, TODAY, free))

    assert "Last 7 days" in text
    assert "analytics" in text


def test_user_text_escaped():
    """Test focus phrases and timezone names rendered as text, not markup."""
    assert "<i>a &lt; b &amp; c</i>" in format_focus("a < b & c")
    assert "<code>Asia&lt;b&gt;</code>" in format_invalid_timezone("Asia<b>")
