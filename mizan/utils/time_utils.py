"""Time, timezone and calendar-day utilities."""

from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

from dateutil.relativedelta import relativedelta


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(ZoneInfo("UTC"))


def from_utc(dt: datetime, tz: str) -> datetime:
    """Convert a UTC datetime to the given timezone."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=ZoneInfo("UTC"))
    return dt.astimezone(ZoneInfo(tz))


def local_today(tz: str, now: datetime | None = None) -> date:
    """The user's current calendar day in their timezone."""
    if now is None:
        now = utcnow()
    return from_utc(now, tz).date()


def previous_day(day: date) -> date:
    return day - timedelta(days=1)


def one_year_after(dt: datetime) -> datetime:
    """Same wall-clock moment one calendar year later (Feb 29 -> Feb 28)."""
    return dt + relativedelta(years=1)


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO timestamp from storage, assuming UTC when naive."""
    if not value:
        return None
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=ZoneInfo("UTC"))
    return dt


def format_duration(minutes: int) -> str:
    """Format minutes into a human-readable duration.

    Examples:
        15 -> "15 minutes"
        60 -> "1 hour"
        90 -> "1.5 hours"
    """
    if minutes < 60:
        return f"{minutes} minute{'s' if minutes != 1 else ''}"
    hours = minutes / 60
    if hours == int(hours):
        return f"{int(hours)} hour{'s' if hours != 1 else ''}"
    return f"{hours:.1f} hours"


def format_relative_time(dt: datetime, now: datetime | None = None) -> str:
    """Format an expiry moment relative to now.

    Examples:
        "in 5 hours"
        "in 30 days"
        "2 days ago"
    """
    if now is None:
        now = utcnow()

    total_seconds = (dt - now).total_seconds()

    if total_seconds < 0:
        abs_seconds = abs(total_seconds)
        if abs_seconds < 3600:
            minutes = int(abs_seconds / 60)
            return f"{minutes} minute{'s' if minutes != 1 else ''} ago"
        elif abs_seconds < 86400:
            hours = int(abs_seconds / 3600)
            return f"{hours} hour{'s' if hours != 1 else ''} ago"
        days = int(abs_seconds / 86400)
        return f"{days} day{'s' if days != 1 else ''} ago"

    if total_seconds < 3600:
        minutes = int(total_seconds / 60)
        return f"in {minutes} minute{'s' if minutes != 1 else ''}"
    elif total_seconds < 86400:
        hours = int(total_seconds / 3600)
        return f"in {hours} hour{'s' if hours != 1 else ''}"
    elif total_seconds < 172800:  # 2 days
        return "tomorrow"
    days = int(total_seconds / 86400)
    return f"in {days} days"
