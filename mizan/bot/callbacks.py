"""Callback query handlers for inline buttons."""

import logging
from functools import partial

from telegram import Update
from telegram.constants import ParseMode
from telegram.error import BadRequest
from telegram.ext import ContextTypes

from mizan.bot.formatters import format_day, format_submit_result
from mizan.bot.handlers import open_today, schedule_refresh
from mizan.bot.keyboards import day_keyboard, options_keyboard, salah_keyboard
from mizan.db.cache import Cache
from mizan.db.models import DayRecord, User
from mizan.db.repository import Repository
from mizan.engine.checkin import (
    ACTIVITY_OPTIONS,
    open_day,
    resolve_penalty,
    set_prayer,
    submit_day,
    toggle_optional,
    toggle_option,
    update_categories,
)
from mizan.utils.error_handler import user_message
from mizan.utils.errors import MizanError
from mizan.utils.time_utils import local_today

logger = logging.getLogger(__name__)


async def _show_day(update: Update, record: DayRecord) -> None:
    """Redraw the check-in card in place."""
    try:
        await update.callback_query.message.edit_text(
            format_day(record),
            parse_mode=ParseMode.HTML,
            reply_markup=day_keyboard(record),
        )
    except BadRequest as e:
        # Same text and keyboard as before
        if "not modified" not in str(e):
            raise


async def handle_menu_callback(
    update: Update, context: ContextTypes.DEFAULT_TYPE, user: User, target: str
) -> None:
    """Switch the card between the day view and a category's buttons."""
    record = await open_today(context, user)

    if target == "salah":
        await update.callback_query.message.edit_text(
            "<b>Salah</b>\n\nMark each prayer on time or late.",
            parse_mode=ParseMode.HTML,
            reply_markup=salah_keyboard(record.categories.salah),
        )
    elif target in ACTIVITY_OPTIONS:
        hint = {
            "quran": "Log minutes with <code>/quran 15</code>.",
            "physical": "Log minutes with <code>/physical 25</code>.",
            "build": "Describe what you built with /build.",
        }[target]
        state = getattr(record.categories, target)
        await update.callback_query.message.edit_text(
            f"<b>{target.title()}</b>\n\nPick what you did. {hint}",
            parse_mode=ParseMode.HTML,
            reply_markup=options_keyboard(target, ACTIVITY_OPTIONS[target], state.selected),
        )
    else:
        await _show_day(update, record)

    await update.callback_query.answer()


async def handle_salah_callback(
    update: Update,
    context: ContextTypes.DEFAULT_TYPE,
    user: User,
    prayer: str,
    status: str,
) -> None:
    repo: Repository = context.bot_data["repo"]
    record = await update_categories(
        repo,
        user.id,
        local_today(user.timezone),
        partial(set_prayer, prayer=prayer, status=None if status == "clear" else status),
    )
    schedule_refresh(context, user.id)

    try:
        await update.callback_query.message.edit_reply_markup(
            reply_markup=salah_keyboard(record.categories.salah)
        )
    except BadRequest as e:
        if "not modified" not in str(e):
            raise
    await update.callback_query.answer(f"{prayer.title()}: {status}")


async def handle_option_callback(
    update: Update,
    context: ContextTypes.DEFAULT_TYPE,
    user: User,
    category: str,
    option: str,
) -> None:
    repo: Repository = context.bot_data["repo"]
    record = await update_categories(
        repo,
        user.id,
        local_today(user.timezone),
        partial(toggle_option, category=category, option=option),
    )
    schedule_refresh(context, user.id)

    selected = getattr(record.categories, category).selected
    await update.callback_query.message.edit_reply_markup(
        reply_markup=options_keyboard(category, ACTIVITY_OPTIONS[category], selected)
    )
    await update.callback_query.answer(
        f"{option.title()} {'selected' if option in selected else 'removed'}"
    )


async def handle_task_callback(
    update: Update, context: ContextTypes.DEFAULT_TYPE, user: User, task: str
) -> None:
    repo: Repository = context.bot_data["repo"]
    record = await update_categories(
        repo, user.id, local_today(user.timezone), partial(toggle_optional, task=task)
    )
    schedule_refresh(context, user.id)

    await _show_day(update, record)
    done = getattr(record.categories, task).completed
    await update.callback_query.answer(f"{task.title()} {'done' if done else 'not done'}")


async def handle_debt_callback(
    update: Update, context: ContextTypes.DEFAULT_TYPE, user: User, penalty_id: str
) -> None:
    repo: Repository = context.bot_data["repo"]
    today = local_today(user.timezone)
    penalty = await resolve_penalty(repo, user.id, today, penalty_id)
    schedule_refresh(context, user.id)

    await _show_day(update, await open_day(repo, user.id, today))
    await update.callback_query.answer(
        "Debt resolved" if penalty.resolved else "Debt reopened"
    )


async def handle_submit_callback(
    update: Update, context: ContextTypes.DEFAULT_TYPE, user: User
) -> None:
    repo: Repository = context.bot_data["repo"]
    today = local_today(user.timezone)
    result = await submit_day(repo, user.id, today)
    schedule_refresh(context, user.id)

    await update.callback_query.message.edit_text(
        format_submit_result(result), parse_mode=ParseMode.HTML
    )
    await update.callback_query.answer("Day sealed")


async def handle_reset_callback(
    update: Update, context: ContextTypes.DEFAULT_TYPE, user: User, confirmed: bool
) -> None:
    if not confirmed:
        await update.callback_query.message.edit_text("Nothing was deleted.")
        await update.callback_query.answer("Cancelled")
        return

    repo: Repository = context.bot_data["repo"]
    cache: Cache = context.bot_data["cache"]
    await repo.delete_user_data(user.id)
    cache.clear(user.id)

    await update.callback_query.message.edit_text(
        "🗑 All your logged data has been deleted. /today starts fresh."
    )
    await update.callback_query.answer("Data wiped")


async def callback_router(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Route callback queries to appropriate handlers.

    Callback data formats:
    - menu:<salah|quran|physical|build|day>
    - salah:<prayer>:<ontime|late|clear>
    - opt:<category>:<option>
    - task:<study|journal|rest>
    - debt:<penalty_id>
    - submit
    - confirm:reset / cancel:reset
    """
    if not update.callback_query or not update.callback_query.data:
        return
    if not update.effective_user:
        return

    data = update.callback_query.data
    if data == "noop":
        await update.callback_query.answer()
        return

    repo: Repository = context.bot_data["repo"]
    user = await repo.get_user_by_telegram_id(update.effective_user.id)
    if not user:
        await update.callback_query.answer("Please /start the bot first.")
        return

    parts = data.split(":")
    action = parts[0]

    try:
        if action == "menu" and len(parts) == 2:
            await handle_menu_callback(update, context, user, parts[1])
        elif action == "salah" and len(parts) == 3:
            await handle_salah_callback(update, context, user, parts[1], parts[2])
        elif action == "opt" and len(parts) == 3:
            await handle_option_callback(update, context, user, parts[1], parts[2])
        elif action == "task" and len(parts) == 2:
            await handle_task_callback(update, context, user, parts[1])
        elif action == "debt" and len(parts) == 2:
            await handle_debt_callback(update, context, user, parts[1])
        elif action == "submit":
            await handle_submit_callback(update, context, user)
        elif action in ("confirm", "cancel") and parts[1:] == ["reset"]:
            await handle_reset_callback(update, context, user, action == "confirm")
        else:
            logger.warning(f"Unknown callback data: {data}")
            await update.callback_query.answer("Unknown action")
    except MizanError as e:
        await update.callback_query.answer(user_message(e), show_alert=True)
