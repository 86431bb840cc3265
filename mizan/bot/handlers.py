"""Command handlers."""

import io
import logging
from functools import partial
from zoneinfo import ZoneInfo

from telegram import LinkPreviewOptions, Update
from telegram.ext import ContextTypes

from mizan.bot.formatters import (
    format_cycles,
    format_dashboard,
    format_day,
    format_focus,
    format_help_message,
    format_invalid_timezone,
    format_leaderboard,
    format_premium,
    format_settings,
    format_status,
    format_submit_result,
    format_summary,
    format_welcome_message,
)
from mizan.bot.keyboards import (
    confirm_cancel_keyboard,
    day_keyboard,
    options_keyboard,
    salah_keyboard,
)
from mizan.bot.stats import build_dashboard, export_history_csv, get_status, get_summary
from mizan.config import Config
from mizan.db.cache import Cache
from mizan.db.models import DayRecord, User
from mizan.db.repository import Repository
from mizan.engine.checkin import (
    ACTIVITY_OPTIONS,
    open_day,
    set_duration,
    submit_day,
    toggle_optional,
    toggle_option,
    update_categories,
)
from mizan.engine.cycles import summarize_cycles
from mizan.engine.penalties import outstanding
from mizan.engine.subscription import issue_token, load_session, redeem_premium_token
from mizan.engine.sync import read_snapshot, refresh_quietly
from mizan.utils.constants import DEFAULT_FEATURE_FLAGS
from mizan.utils.error_handler import user_message
from mizan.utils.errors import MizanError
from mizan.utils.time_utils import local_today

logger = logging.getLogger(__name__)

REDEEM_PREFIX = "redeem-"
NO_PREVIEW = LinkPreviewOptions(is_disabled=True)


async def get_user(update: Update, context: ContextTypes.DEFAULT_TYPE) -> User | None:
    """Look up the caller, asking them to /start if they haven't."""
    repo: Repository = context.bot_data["repo"]
    user = await repo.get_user_by_telegram_id(update.effective_user.id)

    if not user and update.effective_message:
        await update.effective_message.reply_text("Please /start the bot first.")
    return user


def schedule_refresh(context: ContextTypes.DEFAULT_TYPE, user_id: int) -> None:
    """Refresh the user's cached snapshot without blocking the reply."""
    repo: Repository = context.bot_data["repo"]
    cache: Cache = context.bot_data["cache"]
    context.application.create_task(refresh_quietly(repo, cache, user_id))


async def open_today(context: ContextTypes.DEFAULT_TYPE, user: User) -> DayRecord:
    """Open the user's current day and refresh their snapshot."""
    repo: Repository = context.bot_data["repo"]
    record = await open_day(repo, user.id, local_today(user.timezone))
    schedule_refresh(context, user.id)
    return record


async def start_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /start command.

    ``/start redeem-<token>`` comes from an activation link and redeems it.
    """
    if not update.effective_user or not update.message:
        return

    repo: Repository = context.bot_data["repo"]
    telegram_id = update.effective_user.id

    # Get or create user
    user = await repo.get_user_by_telegram_id(telegram_id)
    if user is None:
        user = await repo.create_user(
            telegram_id,
            username=update.effective_user.username,
            timezone=Config.DEFAULT_TIMEZONE,
        )
        logger.info(f"New user created: {telegram_id}")

    if context.args and context.args[0].startswith(REDEEM_PREFIX):
        await _redeem(update, context, user, context.args[0][len(REDEEM_PREFIX) :])
        return

    await update.message.reply_html(format_welcome_message())


async def help_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /help command."""
    if not update.message:
        return

    await update.message.reply_html(format_help_message())


# Daily check-in


async def today_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /today command - open today's check-in card."""
    if not update.effective_user or not update.message:
        return

    user = await get_user(update, context)
    if not user:
        return

    record = await open_today(context, user)

    await update.message.reply_html(format_day(record), reply_markup=day_keyboard(record))


async def salah_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /salah command - show the prayer buttons."""
    if not update.effective_user or not update.message:
        return

    user = await get_user(update, context)
    if not user:
        return

    record = await open_today(context, user)

    await update.message.reply_html(
        "<b>Salah</b>\n\nMark each prayer on time or late.",
        reply_markup=salah_keyboard(record.categories.salah),
    )


async def _activity_command(
    update: Update, context: ContextTypes.DEFAULT_TYPE, category: str
) -> None:
    """Shared body of /quran and /physical: ``/<category> <minutes> [options...]``."""
    if not update.effective_user or not update.message:
        return

    options = ACTIVITY_OPTIONS[category]
    if not context.args:
        await update.message.reply_html(
            f"Usage: <code>/{category} &lt;minutes&gt; [options]</code>\n\n"
            f"Options: {', '.join(options)}",
            reply_markup=options_keyboard(category, options, []),
        )
        return

    try:
        minutes = int(context.args[0])
    except ValueError:
        await update.message.reply_text("Minutes must be a whole number.")
        return

    user = await get_user(update, context)
    if not user:
        return

    def edit(categories) -> None:
        set_duration(categories, category, minutes)
        state = getattr(categories, category)
        for option in context.args[1:]:
            option = option.lower()
            if option not in state.selected:
                toggle_option(categories, category, option)

    repo: Repository = context.bot_data["repo"]
    try:
        record = await update_categories(repo, user.id, local_today(user.timezone), edit)
    except MizanError as e:
        await update.message.reply_text(user_message(e))
        return

    schedule_refresh(context, user.id)
    await update.message.reply_html(format_day(record), reply_markup=day_keyboard(record))


async def quran_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /quran <minutes> [options]."""
    await _activity_command(update, context, "quran")


async def physical_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /physical <minutes> [options]."""
    await _activity_command(update, context, "physical")


async def task_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /study, /journal and /rest - toggle the optional task."""
    if not update.effective_user or not update.message:
        return

    user = await get_user(update, context)
    if not user:
        return

    task = update.message.text.split()[0].lstrip("/").split("@")[0].lower()
    repo: Repository = context.bot_data["repo"]
    try:
        record = await update_categories(
            repo, user.id, local_today(user.timezone), partial(toggle_optional, task=task)
        )
    except MizanError as e:
        await update.message.reply_text(user_message(e))
        return

    schedule_refresh(context, user.id)
    done = getattr(record.categories, task).completed
    await update.message.reply_html(
        f"{'✅' if done else '▫️'} {task.title()} {'done' if done else 'not done'}",
        reply_markup=day_keyboard(record),
    )


async def debts_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /debts command - list today's carried-forward debts."""
    if not update.effective_user or not update.message:
        return

    user = await get_user(update, context)
    if not user:
        return

    record = await open_today(context, user)

    if not record.penalties:
        await update.message.reply_text("✓ No debts. Keep the balance.")
        return

    open_count = len(outstanding(record))
    await update.message.reply_html(
        f"<b>Debts</b>: {open_count} outstanding\n\n"
        "Make up the missed obligation, then tap the debt to mark it resolved. "
        "You can't submit today while a debt is open.",
        reply_markup=day_keyboard(record),
    )


async def submit_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /submit command - score and seal today."""
    if not update.effective_user or not update.message:
        return

    user = await get_user(update, context)
    if not user:
        return

    repo: Repository = context.bot_data["repo"]
    try:
        result = await submit_day(repo, user.id, local_today(user.timezone))
    except MizanError as e:
        logger.warning(f"User {user.id} submit rejected: {e}")
        await update.message.reply_text(user_message(e))
        return

    schedule_refresh(context, user.id)
    await update.message.reply_html(format_submit_result(result))


# Progress views


async def dashboard_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /dashboard command."""
    if not update.effective_user or not update.message:
        return

    user = await get_user(update, context)
    if not user:
        return

    repo: Repository = context.bot_data["repo"]
    cache: Cache = context.bot_data["cache"]
    snapshot = await read_snapshot(repo, cache, user.id)

    log = await repo.get_points_log(user.id)
    dash = build_dashboard(
        snapshot.records,
        local_today(user.timezone),
        snapshot.settings.focus_phrase,
        points=await repo.get_leaderboard_points(user.id),
        last_points=log[-1].points if log else None,
    )

    await update.message.reply_html(format_dashboard(dash, snapshot.session))


async def status_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /status command - rank, streak, missions and achievements."""
    if not update.effective_user or not update.message:
        return

    user = await get_user(update, context)
    if not user:
        return

    repo: Repository = context.bot_data["repo"]
    cache: Cache = context.bot_data["cache"]
    snapshot = await read_snapshot(repo, cache, user.id)

    status = await get_status(
        repo, user.id, local_today(user.timezone), records=snapshot.records
    )
    await update.message.reply_html(format_status(status))


async def cycles_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /cycles command."""
    if not update.effective_user or not update.message:
        return

    user = await get_user(update, context)
    if not user:
        return

    repo: Repository = context.bot_data["repo"]
    cache: Cache = context.bot_data["cache"]
    snapshot = await read_snapshot(repo, cache, user.id)

    await update.message.reply_html(format_cycles(summarize_cycles(snapshot.cycles)))


async def summary_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /summary [days] command."""
    if not update.effective_user or not update.message:
        return

    range_days = 7
    if context.args:
        try:
            range_days = int(context.args[0])
        except ValueError:
            await update.message.reply_text("Usage: /summary [days]")
            return
        if range_days < 1:
            await update.message.reply_text("Days must be at least 1.")
            return

    user = await get_user(update, context)
    if not user:
        return

    repo: Repository = context.bot_data["repo"]
    decision = await load_session(repo, user.id)
    summary = await get_summary(
        repo,
        user.id,
        range_days,
        local_today(user.timezone),
        decision,
        free_days=Config.FREE_SUMMARY_DAYS,
    )

    await update.message.reply_html(format_summary(summary))


async def leaderboard_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /leaderboard command."""
    if not update.effective_user or not update.message:
        return

    user = await get_user(update, context)
    if not user:
        return

    repo: Repository = context.bot_data["repo"]
    entries = await repo.get_leaderboard(limit=10)
    await update.message.reply_html(format_leaderboard(entries, user.id))


async def export_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /export command - send the history as a CSV file."""
    if not update.effective_user or not update.message:
        return

    user = await get_user(update, context)
    if not user:
        return

    repo: Repository = context.bot_data["repo"]
    today = local_today(user.timezone)
    decision = await load_session(repo, user.id)
    records = await repo.list_day_records(user.id)

    content = export_history_csv(records, today, decision, free_days=Config.FREE_EXPORT_DAYS)
    caption = "Your full history."
    if decision.reason_for("export_full_history"):
        caption = f"Last {Config.FREE_EXPORT_DAYS} days. Full history is a premium feature, see /premium."

    await update.message.reply_document(
        document=io.BytesIO(content.encode("utf-8")),
        filename=f"mizan-{today.isoformat()}.csv",
        caption=caption,
    )


# Premium


async def premium_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /premium command - plan status and upgrade link."""
    if not update.effective_user or not update.message:
        return

    user = await get_user(update, context)
    if not user:
        return

    repo: Repository = context.bot_data["repo"]
    decision = await load_session(repo, user.id)
    await update.message.reply_html(
        format_premium(user, decision, Config.PAYMENT_LINK_URL),
        link_preview_options=NO_PREVIEW,
    )


async def _redeem(
    update: Update, context: ContextTypes.DEFAULT_TYPE, user: User, token: str
) -> None:
    repo: Repository = context.bot_data["repo"]
    try:
        user = await redeem_premium_token(repo, user.id, token)
    except MizanError as e:
        logger.warning(f"User {user.id} redeem rejected: {e}")
        await update.effective_message.reply_text(user_message(e))
        return

    schedule_refresh(context, user.id)
    await update.effective_message.reply_html(
        "👑 <b>Premium activated!</b>\n\n"
        f"Active until {user.subscription_ends_at.strftime('%b %d, %Y')}."
    )


async def redeem_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /redeem <token> command."""
    if not update.effective_user or not update.message:
        return

    if not context.args or len(context.args) != 1:
        await update.message.reply_text("Usage: /redeem <token>")
        return

    user = await get_user(update, context)
    if not user:
        return

    await _redeem(update, context, user, context.args[0])


async def issue_token_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /issue_token [telegram_id] - admin only.

    Stands in for the payment provider: the admin sends the resulting link to
    the buyer once payment clears.
    """
    if not update.effective_user or not update.message:
        return

    if not Config.is_admin(update.effective_user.id):
        await update.message.reply_text("This command is for admins only.")
        return

    repo: Repository = context.bot_data["repo"]
    bound_to = None
    if context.args:
        try:
            telegram_id = int(context.args[0])
        except ValueError:
            await update.message.reply_text("Usage: /issue_token [telegram_id]")
            return
        target = await repo.get_user_by_telegram_id(telegram_id)
        if not target:
            await update.message.reply_text("That user hasn't started the bot yet.")
            return
        bound_to = target.id

    token = await issue_token(repo, created_for_user_id=bound_to, ttl_hours=Config.TOKEN_TTL_HOURS)
    link = f"https://t.me/{context.bot.username}?start={REDEEM_PREFIX}{token.token}"

    expires = token.expires_at.strftime("%b %d %H:%M UTC") if token.expires_at else "never"
    await update.message.reply_html(
        "<b>Activation link</b>\n\n"
        f"{link}\n\n"
        f"Token: <code>{token.token}</code>\n"
        f"Expires: {expires}\n"
        f"Single use{', bound to ' + context.args[0] if bound_to else ''}.",
        link_preview_options=NO_PREVIEW,
    )


# Settings


async def settings_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /settings command - show current settings."""
    if not update.effective_user or not update.message:
        return

    user = await get_user(update, context)
    if not user:
        return

    repo: Repository = context.bot_data["repo"]
    settings = await repo.get_settings(user.id)
    decision = await load_session(repo, user.id)

    await update.message.reply_html(format_settings(user, settings, decision))


async def timezone_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /timezone <timezone> command."""
    if not update.effective_user or not update.message:
        return

    user = await get_user(update, context)
    if not user:
        return

    # If no timezone provided, show current
    if not context.args:
        await update.message.reply_html(
            f"<b>Current timezone:</b> {user.timezone}\n\n"
            "To change: <code>/timezone Asia/Karachi</code>\n\n"
            "Common timezones:\n"
            "• Asia/Karachi\n"
            "• Asia/Riyadh\n"
            "• Europe/London\n"
            "• America/New_York\n"
            "• UTC"
        )
        return

    new_timezone = context.args[0]

    # Validate timezone
    try:
        ZoneInfo(new_timezone)
    except (KeyError, ValueError):
        await update.message.reply_html(format_invalid_timezone(new_timezone))
        return

    repo: Repository = context.bot_data["repo"]
    await repo.update_user_settings(user.id, timezone=new_timezone)

    await update.message.reply_html(
        f"✓ Timezone updated to <b>{new_timezone}</b>\n\n"
        "Your day now starts and ends at local midnight there."
    )


async def focus_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /focus <phrase> command."""
    if not update.effective_user or not update.message:
        return

    user = await get_user(update, context)
    if not user:
        return

    repo: Repository = context.bot_data["repo"]
    settings = await repo.get_settings(user.id)

    if not context.args:
        await update.message.reply_html(format_focus(settings.focus_phrase))
        return

    settings.focus_phrase = " ".join(context.args)[:120]
    await repo.save_settings(user.id, settings)
    schedule_refresh(context, user.id)

    await update.message.reply_text(f"✓ Focus set: {settings.focus_phrase}")


async def flag_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /flag <name> on|off command."""
    if not update.effective_user or not update.message:
        return

    if not context.args or len(context.args) != 2 or context.args[1].lower() not in ("on", "off"):
        await update.message.reply_html(
            "Usage: <code>/flag &lt;name&gt; on|off</code>\n\n"
            f"Flags: {', '.join(DEFAULT_FEATURE_FLAGS)}"
        )
        return

    name, value = context.args[0], context.args[1].lower() == "on"
    if name not in DEFAULT_FEATURE_FLAGS:
        await update.message.reply_text(
            f"Unknown flag: {name}\n\nFlags: {', '.join(DEFAULT_FEATURE_FLAGS)}"
        )
        return

    user = await get_user(update, context)
    if not user:
        return

    repo: Repository = context.bot_data["repo"]
    settings = await repo.get_settings(user.id)
    settings.feature_flags[name] = value
    await repo.save_settings(user.id, settings)
    schedule_refresh(context, user.id)

    await update.message.reply_text(f"✓ {name} is now {'on' if value else 'off'}")


async def reset_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /reset command - ask before wiping the user's data."""
    if not update.effective_user or not update.message:
        return

    user = await get_user(update, context)
    if not user:
        return

    await update.message.reply_html(
        "⚠️ <b>Wipe all your data?</b>\n\n"
        "Every logged day, point, mission and setting will be deleted. "
        "Your premium plan is kept. This can't be undone.",
        reply_markup=confirm_cancel_keyboard("reset"),
    )
