"""Global error handler for the bot."""

import logging
import traceback

from telegram import Update
from telegram.ext import ContextTypes

from mizan.utils.errors import ConflictError, MizanError, TransientError

logger = logging.getLogger(__name__)


def user_message(error: BaseException) -> str:
    """Reply text for an error that escaped a handler."""
    if isinstance(error, TransientError):
        return "🌐 Couldn't reach your data right now.\n\nPlease try again in a moment."
    if isinstance(error, ConflictError):
        return f"⛔ {error}"
    if isinstance(error, MizanError):
        return f"❌ {error}"

    if "Unauthorized" in str(error) or "Forbidden" in str(error):
        return "❌ I don't have permission to send you messages.\n\nPlease /start the bot first."
    if "Bad Request" in str(error):
        return (
            "❌ Invalid request.\n\n"
            "Please check your command syntax and try again. Use /help for examples."
        )
    if "Timed out" in str(error) or "Timeout" in str(error):
        return "⏱️ Request timed out.\n\nPlease try again in a moment."
    if "Network" in str(error):
        return "🌐 Network error.\n\nPlease check your connection and try again."

    return (
        "😅 Oops! Something went wrong.\n\n"
        "The error has been logged. Please try again or use /help for assistance."
    )


async def error_handler(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle errors in the bot."""
    logger.error("Exception while handling an update:", exc_info=context.error)

    tb_list = traceback.format_exception(None, context.error, context.error.__traceback__)
    logger.error(f"Traceback:\n{''.join(tb_list)}")

    if isinstance(update, Update) and update.effective_message:
        try:
            await update.effective_message.reply_text(user_message(context.error))
        except Exception as e:
            logger.error(f"Failed to send error message to user: {e}")
