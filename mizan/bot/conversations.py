"""Conversation handlers for multi-step flows."""

import logging
from html import escape

from telegram import Update
from telegram.constants import ParseMode
from telegram.ext import (
    CommandHandler,
    ContextTypes,
    ConversationHandler,
    MessageHandler,
    filters,
)

from mizan.bot.formatters import format_day
from mizan.bot.handlers import get_user, schedule_refresh
from mizan.bot.keyboards import day_keyboard, options_keyboard
from mizan.db.repository import Repository
from mizan.engine.checkin import (
    ACTIVITY_OPTIONS,
    open_day,
    set_build_description,
    update_categories,
)
from mizan.utils.error_handler import user_message
from mizan.utils.errors import MizanError
from mizan.utils.time_utils import local_today

logger = logging.getLogger(__name__)

# Conversation states
DESCRIPTION = 0

MAX_DESCRIPTION = 500


async def build_start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
    """Start the /build conversation."""
    if not update.message or not update.effective_user:
        return ConversationHandler.END

    user = await get_user(update, context)
    if not user:
        return ConversationHandler.END

    repo: Repository = context.bot_data["repo"]
    record = await open_day(repo, user.id, local_today(user.timezone))
    if record.submitted:
        await update.message.reply_text("Today is already sealed.")
        return ConversationHandler.END

    context.user_data["user"] = user
    build = record.categories.build

    current = ""
    if build.description.strip():
        current = f"\n\n<b>Current:</b> <i>{escape(build.description)}</i>"

    await update.message.reply_text(
        "<b>Build</b>\n\nPick the kind of work below, then send a short "
        "description of what you built today."
        f"{current}\n\n"
        "Send /cancel to abort.",
        parse_mode=ParseMode.HTML,
        reply_markup=options_keyboard("build", ACTIVITY_OPTIONS["build"], build.selected),
    )

    return DESCRIPTION


async def build_description(update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
    """Receive the build description."""
    if not update.message or not update.message.text:
        return DESCRIPTION

    text = update.message.text.strip()
    if not text:
        await update.message.reply_text("Please describe what you built, or /cancel.")
        return DESCRIPTION

    if len(text) > MAX_DESCRIPTION:
        await update.message.reply_text(
            f"That's a bit long. Keep it under {MAX_DESCRIPTION} characters."
        )
        return DESCRIPTION

    user = context.user_data["user"]
    repo: Repository = context.bot_data["repo"]

    try:
        record = await update_categories(
            repo,
            user.id,
            local_today(user.timezone),
            lambda categories: set_build_description(categories, text),
        )
    except MizanError as e:
        await update.message.reply_text(user_message(e))
        return ConversationHandler.END

    schedule_refresh(context, user.id)
    context.user_data.pop("user", None)

    await update.message.reply_html(format_day(record), reply_markup=day_keyboard(record))
    return ConversationHandler.END


async def build_cancel(update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
    """Cancel the /build conversation."""
    context.user_data.pop("user", None)

    if update.message:
        await update.message.reply_text("Cancelled.")

    return ConversationHandler.END


def build_build_conversation_handler() -> ConversationHandler:
    """Build the /build conversation handler."""
    return ConversationHandler(
        entry_points=[CommandHandler("build", build_start)],
        states={
            DESCRIPTION: [MessageHandler(filters.TEXT & ~filters.COMMAND, build_description)],
        },
        fallbacks=[CommandHandler("cancel", build_cancel)],
        per_message=False,
        conversation_timeout=300,
    )
