"""Tests for time utilities."""

from datetime import date, datetime
from zoneinfo import ZoneInfo

from mizan.utils.time_utils import (
    format_duration,
    format_relative_time,
    from_utc,
    local_today,
    one_year_after,
    parse_timestamp,
)


def test_from_utc():
    """Test timezone conversion from UTC."""
    dt = datetime(2026, 3, 15, 19, 30, tzinfo=ZoneInfo("UTC"))
    edt_dt = from_utc(dt, "America/New_York")

    assert edt_dt.tzinfo == ZoneInfo("America/New_York")
    assert edt_dt.hour == 15  # 19:30 UTC = 15:30 EDT


def test_local_today_crosses_midnight():
    """Test that the user's calendar day follows their timezone."""
    # 21:00 UTC is already 02:00 the next day in Karachi
    now = datetime(2026, 3, 15, 21, 0, tzinfo=ZoneInfo("UTC"))

    assert local_today("UTC", now) == date(2026, 3, 15)
    assert local_today("Asia/Karachi", now) == date(2026, 3, 16)
    assert local_today("America/New_York", now) == date(2026, 3, 15)


def test_one_year_after_leap_day():
    """Test Feb 29 plus one year landing on Feb 28."""
    dt = datetime(2028, 2, 29, 10, 0, tzinfo=ZoneInfo("UTC"))

    assert one_year_after(dt) == datetime(2029, 2, 28, 10, 0, tzinfo=ZoneInfo("UTC"))


def test_parse_timestamp_naive_is_utc():
    """Test stored naive timestamps read back as UTC."""
    dt = parse_timestamp("2026-03-15 10:00:00")

    assert dt == datetime(2026, 3, 15, 10, 0, tzinfo=ZoneInfo("UTC"))
    assert parse_timestamp(None) is None


def test_format_duration():
    """Test duration formatting."""
    assert format_duration(1) == "1 minute"
    assert format_duration(15) == "15 minutes"
    assert format_duration(60) == "1 hour"
    assert format_duration(90) == "1.5 hours"
    assert format_duration(120) == "2 hours"


def test_format_relative_time():
    """Test relative expiry formatting."""
    now = datetime(2026, 3, 15, 12, 0, tzinfo=ZoneInfo("UTC"))

    assert format_relative_time(datetime(2026, 3, 15, 17, 0, tzinfo=ZoneInfo("UTC")), now) == "in 5 hours"
    assert format_relative_time(datetime(2026, 3, 16, 13, 0, tzinfo=ZoneInfo("UTC")), now) == "tomorrow"
    assert format_relative_time(datetime(2026, 4, 14, 12, 0, tzinfo=ZoneInfo("UTC")), now) == "in 30 days"
    assert format_relative_time(datetime(2026, 3, 13, 12, 0, tzinfo=ZoneInfo("UTC")), now) == "2 days ago"
