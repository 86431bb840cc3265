"""Main entry point for the Mizan bot."""

import logging
import sys

from telegram.ext import (
    Application,
    CallbackQueryHandler,
    CommandHandler,
    ContextTypes,
)

from mizan.bot.callbacks import callback_router
from mizan.bot.conversations import build_build_conversation_handler
from mizan.bot.handlers import (
    cycles_command,
    dashboard_command,
    debts_command,
    export_command,
    flag_command,
    focus_command,
    help_command,
    issue_token_command,
    leaderboard_command,
    physical_command,
    premium_command,
    quran_command,
    redeem_command,
    reset_command,
    salah_command,
    settings_command,
    start_command,
    status_command,
    submit_command,
    summary_command,
    task_command,
    timezone_command,
    today_command,
)
from mizan.config import Config
from mizan.db.cache import MemoryCache
from mizan.db.migrations import run_migrations
from mizan.db.repository import Repository
from mizan.engine.sync import sync_all
from mizan.utils.error_handler import error_handler

# Configure logging
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=getattr(logging, Config.LOG_LEVEL),
    stream=sys.stdout,
)
# httpx logs every getUpdates poll at INFO
logging.getLogger("httpx").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


async def sync_job(context: ContextTypes.DEFAULT_TYPE) -> None:
    """Job callback for the cache sync."""
    repo: Repository = context.bot_data["repo"]
    cache: MemoryCache = context.bot_data["cache"]
    await sync_all(repo, cache)


async def post_init(application: Application) -> None:
    """Initialize bot resources after application is created."""
    # Initialize database
    await run_migrations(Config.DATABASE_PATH)

    # Create repository and cache, store in bot_data
    repo = Repository(Config.DATABASE_PATH)
    await repo.connect()
    application.bot_data["repo"] = repo

    cache = MemoryCache()
    application.bot_data["cache"] = cache

    # Warm the cache before the first update arrives
    await sync_all(repo, cache)

    job_queue = application.job_queue
    if job_queue:
        job_queue.run_repeating(
            sync_job,
            interval=Config.SYNC_INTERVAL,
            first=Config.SYNC_INTERVAL,
            name="cache_sync",
        )
        logger.info(f"Cache sync job scheduled (interval: {Config.SYNC_INTERVAL}s)")

    logger.info("Mizan initialized successfully")


async def post_shutdown(application: Application) -> None:
    """Cleanup resources on shutdown."""
    repo: Repository = application.bot_data.get("repo")
    if repo:
        await repo.close()

    logger.info("Mizan shut down")


def main() -> None:
    """Start the bot."""
    # Validate configuration
    try:
        Config.validate()
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)

    # Create application
    application = (
        Application.builder()
        .token(Config.TELEGRAM_BOT_TOKEN)
        .post_init(post_init)
        .post_shutdown(post_shutdown)
        .build()
    )

    # Register handlers

    # Commands
    application.add_handler(CommandHandler("start", start_command))
    application.add_handler(CommandHandler("help", help_command))

    # Daily check-in
    application.add_handler(CommandHandler("today", today_command))
    application.add_handler(CommandHandler("salah", salah_command))
    application.add_handler(CommandHandler("quran", quran_command))
    application.add_handler(CommandHandler("physical", physical_command))
    application.add_handler(CommandHandler(["study", "journal", "rest"], task_command))
    application.add_handler(CommandHandler("debts", debts_command))
    application.add_handler(CommandHandler("submit", submit_command))

    # Progress
    application.add_handler(CommandHandler("dashboard", dashboard_command))
    application.add_handler(CommandHandler("status", status_command))
    application.add_handler(CommandHandler("cycles", cycles_command))
    application.add_handler(CommandHandler("summary", summary_command))
    application.add_handler(CommandHandler("leaderboard", leaderboard_command))
    application.add_handler(CommandHandler("export", export_command))

    # Premium
    application.add_handler(CommandHandler("premium", premium_command))
    application.add_handler(CommandHandler("redeem", redeem_command))
    application.add_handler(CommandHandler("issue_token", issue_token_command))

    # Settings commands
    application.add_handler(CommandHandler("settings", settings_command))
    application.add_handler(CommandHandler("timezone", timezone_command))
    application.add_handler(CommandHandler("focus", focus_command))
    application.add_handler(CommandHandler("flag", flag_command))
    application.add_handler(CommandHandler("reset", reset_command))

    # Conversation handlers
    application.add_handler(build_build_conversation_handler())

    # Callback queries (buttons)
    application.add_handler(CallbackQueryHandler(callback_router))

    # Error handler
    application.add_error_handler(error_handler)

    # Start the bot
    logger.info("Starting Mizan bot...")
    application.run_polling(allowed_updates=["message", "callback_query"])


if __name__ == "__main__":
    main()
