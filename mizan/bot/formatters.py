"""Message text formatters."""

from html import escape

from mizan.bot.stats import Dashboard, Status, Summary
from mizan.db.models import DayRecord, LeaderboardEntry, Settings, User
from mizan.engine.checkin import SubmitResult
from mizan.engine.completion import (
    count_completed_categories,
    is_build_complete,
    is_physical_complete,
    is_quran_complete,
    is_salah_complete,
    late_count,
)
from mizan.engine.cycles import CycleSummary
from mizan.engine.penalties import can_submit, outstanding
from mizan.engine.subscription import FeatureDecision
from mizan.utils.constants import (
    MINIMUM_COMPLETED_CATEGORIES,
    PHYSICAL_MIN_MINUTES,
    PRAYERS,
    QURAN_MIN_MINUTES,
    RANKS,
    TOTAL_CATEGORIES,
)
from mizan.utils.time_utils import format_duration, format_relative_time

SALAH_TEXT = {"ontime": "✅", "late": "⌛", None: "▫️"}


def _mark(done: bool) -> str:
    return "✅" if done else "▫️"


def format_points(points: float) -> str:
    return f"{points:g}"


def format_day(record: DayRecord) -> str:
    """Format a day's check-in card."""
    c = record.categories
    lines = [f"<b>Check-in for {record.day.strftime('%a %b %d, %Y')}</b>\n"]

    prayers = " ".join(f"{SALAH_TEXT[c.salah.get(p)]}{p.title()}" for p in PRAYERS)
    lines.append(f"{_mark(is_salah_complete(c.salah))} <b>Salah</b>: {prayers}")
    late = late_count(c.salah)
    if late:
        lines.append(f"   ⌛ {late} late (-{late * 0.5:.1f})")

    lines.append(
        f"{_mark(is_quran_complete(c.quran))} <b>Qur'an</b>: "
        f"{', '.join(c.quran.selected) or '-'} · {format_duration(c.quran.duration)}"
        f" (min {QURAN_MIN_MINUTES})"
    )
    lines.append(
        f"{_mark(is_physical_complete(c.physical))} <b>Physical</b>: "
        f"{', '.join(c.physical.selected) or '-'} · {format_duration(c.physical.duration)}"
        f" (min {PHYSICAL_MIN_MINUTES})"
    )
    build_text = escape(c.build.description.strip()) or "<i>no description</i>"
    lines.append(
        f"{_mark(is_build_complete(c.build))} <b>Build</b>: "
        f"{', '.join(c.build.selected) or '-'} · {build_text}"
    )
    lines.append(
        f"{_mark(c.study.completed)} Study   "
        f"{_mark(c.journal.completed)} Journal   "
        f"{_mark(c.rest.completed)} Rest"
    )

    done = count_completed_categories(c)
    lines.append(f"\n<b>{done}/{TOTAL_CATEGORIES}</b> obligations complete")

    if record.penalties:
        lines.append("\n<b>Debts</b>")
        for p in record.penalties:
            mark = "✅" if p.resolved else "⚠️"
            lines.append(f"{mark} {escape(p.label)} ({p.origin.isoformat()}, {p.type})")

    if record.submitted:
        lines.append("\n🔒 <b>Sealed</b>")
        if record.points_awarded is not None:
            lines.append(f"Points: <b>{format_points(record.points_awarded)}</b>")
        for line in record.score_breakdown or []:
            lines.append(f"  • {escape(line)}")
    elif can_submit(record):
        lines.append("\nReady to submit.")
    else:
        missing = []
        if done < MINIMUM_COMPLETED_CATEGORIES:
            missing.append(f"{MINIMUM_COMPLETED_CATEGORIES - done} more obligation(s)")
        if outstanding(record):
            missing.append("resolve your debts")
        lines.append(f"\nTo submit: {' and '.join(missing)}.")

    return "\n".join(lines)


def format_submit_result(result: SubmitResult) -> str:
    lines = [
        f"🔒 <b>{result.day.strftime('%b %d')} sealed</b>\n",
        f"Points awarded: <b>{format_points(result.points_awarded)}</b>",
    ]
    for line in result.breakdown:
        lines.append(f"  • {escape(line)}")
    lines.append(f"\n🔥 Streak: {result.streak} day{'s' if result.streak != 1 else ''}")
    if result.earned:
        lines.append("\n🏅 Earned: " + ", ".join(escape(r.title) for r in result.earned))
    return "\n".join(lines)


def format_status(status: Status) -> str:
    lines = [
        f"<b>🏷 Rank {status.rank.tier}/{len(RANKS)}: {status.rank.title}</b>",
        f"<i>{status.rank.meaning}</i>\n",
        f"🔥 Current streak: {status.streak}",
        f"✓ Days completed: {status.completed_days} (submitted {status.submitted_days})",
        f"🔁 Cycles completed: {status.cycles_completed}",
        f"📈 Current cycle: {status.current_progress}/7",
    ]
    if status.penalties_outstanding:
        lines.append(f"⚠️ Outstanding debts: {status.penalties_outstanding}")

    lines.append("\n<b>Missions</b>")
    for m in status.missions:
        lines.append(f"{_mark(m.completed)} {m.title} (+{m.points}) - {m.description}")

    lines.append("\n<b>Achievements</b>")
    for a in status.achievements:
        lines.append(f"{_mark(a.completed)} {a.title} (+{a.points}) - {a.description}")

    return "\n".join(lines)


def format_summary(summary: Summary) -> str:
    lines = [f"<b>📊 Last {summary.range_days} days</b>\n"]
    if not summary.per_day:
        lines.append("No submitted days in this range yet.")
    for d in summary.per_day:
        mark = "✅" if d.completed else "▫️"
        lines.append(f"{mark} {d.day.strftime('%a %b %d')}: {format_points(d.points)}")

    lines.append(f"\nTotal: <b>{format_points(summary.total_score)}</b>")
    lines.append(f"Average: <b>{summary.average_score:.1f}</b> per submitted day")

    if summary.paywall_reason:
        lines.append(
            "\n🔒 Longer ranges are a premium feature "
            f"(<code>{summary.paywall_reason.feature}</code>). See /premium."
        )
    return "\n".join(lines)


def format_dashboard(dash: Dashboard, decision: FeatureDecision) -> str:
    lines = [
        f"<b>Mizan · {dash.today.strftime('%A %b %d')}</b>",
        f"<i>{escape(dash.focus_phrase)}</i>\n",
        f"<b>Today:</b> {dash.today_status} ({dash.categories_done}/{TOTAL_CATEGORIES})",
        dash.today_hint,
        "",
        f"🔥 Streak: {dash.streak}",
        f"🔁 Cycle: {dash.current_progress}/7 · {dash.cycles_completed} completed",
        f"⭐ Points: {format_points(dash.points)}",
    ]
    if dash.penalties_outstanding:
        lines.append(f"⚠️ Debts outstanding: {dash.penalties_outstanding}")

    if decision.show_v2_dashboard:
        lines.append("\n<b>👑 Insights</b>")
        lines.append(f"Days completed: {dash.completed_days} of {dash.submitted_days} submitted")
        if dash.last_completed:
            lines.append(f"Last balanced day: {dash.last_completed.strftime('%b %d')}")
        if dash.last_points is not None:
            lines.append(f"Last submission: {format_points(dash.last_points)} points")

    return "\n".join(lines)


def format_cycles(summary: CycleSummary) -> str:
    lines = [f"<b>🔁 Cycles</b> ({summary.cycles_completed} completed)\n"]
    if not summary.cycles:
        lines.append("No completed days yet. Seven balanced days make a cycle.")
    for cycle in summary.cycles:
        filled = "●" * len(cycle.days) + "○" * (7 - len(cycle.days))
        span = ""
        if cycle.days:
            span = f" {cycle.days[0].strftime('%b %d')} → {cycle.days[-1].strftime('%b %d')}"
        lines.append(f"{cycle.id}: {filled}{span}")
    return "\n".join(lines)


def format_leaderboard(entries: list[LeaderboardEntry], user_id: int) -> str:
    if not entries:
        return "The leaderboard is empty. Submit a day to get on it."

    lines = ["<b>🏆 Leaderboard</b>\n"]
    for i, entry in enumerate(entries, start=1):
        name = escape(entry.username or f"user {entry.user_id}")
        you = " ← you" if entry.user_id == user_id else ""
        lines.append(f"{i}. {name}: {format_points(entry.points)}{you}")
    return "\n".join(lines)


def format_premium(user: User, decision: FeatureDecision, payment_link: str = "") -> str:
    if decision.is_premium:
        until = "no end date"
        if decision.premium_until:
            until = (
                f"{decision.premium_until.strftime('%b %d, %Y')} "
                f"({format_relative_time(decision.premium_until)})"
            )
        return f"👑 <b>Premium active</b>\n\nRenews or ends: {until}"

    lines = [
        "<b>Mizan Premium</b>\n",
        "• Longer summaries (/summary 30)",
        "• Full history export",
        "• Extended dashboard\n",
    ]
    if payment_link:
        lines.append(f"Get premium: {payment_link}\n")
    lines.append("Already have an activation token? <code>/redeem &lt;token&gt;</code>")
    return "\n".join(lines)


def format_settings(user: User, settings: Settings, decision: FeatureDecision) -> str:
    flags = "\n".join(
        f"• <code>{escape(name)}</code>: {'on' if value else 'off'}"
        for name, value in sorted(decision.flags.items())
    )
    return (
        f"<b>Your Settings</b>\n\n"
        f"🌍 Timezone: <code>{user.timezone}</code>\n"
        f"🎯 Focus: <i>{escape(settings.focus_phrase)}</i>\n"
        f"👑 Plan: {'premium' if decision.is_premium else 'free'}\n\n"
        f"<b>Feature flags</b>\n{flags}\n\n"
        "<b>Commands to change:</b>\n"
        "• /timezone <code>Asia/Karachi</code>\n"
        "• /focus <code>your phrase</code>\n"
        "• /flag <code>mizanStrictMode on</code>"
    )


def format_focus(phrase: str) -> str:
    return (
        f"<b>Focus:</b> <i>{escape(phrase)}</i>\n\n"
        "To change: <code>/focus your phrase</code>"
    )


def format_invalid_timezone(name: str) -> str:
    return (
        f"Invalid timezone: <code>{escape(name)}</code>\n\n"
        "Use IANA names like <code>Asia/Karachi</code>"
    )


def format_welcome_message() -> str:
    """Format the welcome message for /start."""
    return """
<b>Welcome to Mizan</b> ⚖️

Keep the balance of your day: five prayers, Qur'an, movement, building something, and study, journal, rest.

<b>Quick Start:</b>
• /today - Open today's check-in
• /submit - Seal the day once 5 of 7 are done
• /status - Rank, streak and cycles
• /help - Full command list

Miss a day and the debt carries forward. Let's begin.
""".strip()


def format_help_message() -> str:
    """Format the help message."""
    return """
<b>Mizan Commands ⚖️</b>

<b>Daily check-in:</b>
/today - Today's card with buttons
/quran &lt;minutes&gt; [options] - e.g. <code>/quran 15 reading</code>
/physical &lt;minutes&gt; [options] - e.g. <code>/physical 25 cardio</code>
/build - Log what you built
/study, /journal, /rest - Toggle optional tasks
/debts - Debts carried from missed days
/submit - Seal today (5 of 7, no open debts)

<b>Progress:</b>
/dashboard - Overview
/status - Rank, missions, achievements
/cycles - Your 7-day cycles
/summary [days] - Points over a range
/leaderboard - Top points
/export - Download your history (CSV)

<b>Premium:</b>
/premium - Plan and upgrade
/redeem &lt;token&gt; - Activate premium

<b>Settings:</b>
/settings - View settings
/timezone &lt;tz&gt; - Set timezone
/focus &lt;phrase&gt; - Set focus phrase
/flag &lt;name&gt; on|off - Toggle a feature flag
/reset - Wipe all your logged data
""".strip()
