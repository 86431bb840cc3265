"""Configuration management from environment variables."""

import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env file if it exists
load_dotenv()


def _int_list(value: str) -> list[int]:
    return [int(part) for part in value.split(",") if part.strip()]


class Config:
    """Application configuration loaded from environment variables."""

    # Telegram
    TELEGRAM_BOT_TOKEN: str = os.getenv("TELEGRAM_BOT_TOKEN", "")
    ADMIN_TELEGRAM_IDS: list[int] = _int_list(os.getenv("ADMIN_TELEGRAM_IDS", ""))

    # Database
    DATABASE_PATH: Path = Path(os.getenv("DATABASE_PATH", "./data/mizan.db"))

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Cache sync job
    SYNC_INTERVAL: int = int(os.getenv("SYNC_INTERVAL", "300"))

    # Users
    DEFAULT_TIMEZONE: str = os.getenv("DEFAULT_TIMEZONE", "UTC")

    # Premium
    PAYMENT_LINK_URL: str = os.getenv("PAYMENT_LINK_URL", "")
    TOKEN_TTL_HOURS: int = int(os.getenv("TOKEN_TTL_HOURS", "48"))
    FREE_SUMMARY_DAYS: int = int(os.getenv("FREE_SUMMARY_DAYS", "7"))
    FREE_EXPORT_DAYS: int = int(os.getenv("FREE_EXPORT_DAYS", "30"))

    @classmethod
    def validate(cls) -> None:
        """Validate required configuration."""
        if not cls.TELEGRAM_BOT_TOKEN:
            raise ValueError("TELEGRAM_BOT_TOKEN environment variable is required")

        if cls.SYNC_INTERVAL <= 0:
            raise ValueError("SYNC_INTERVAL must be a positive number of seconds")

        # Ensure database directory exists
        cls.DATABASE_PATH.parent.mkdir(parents=True, exist_ok=True)

    @classmethod
    def is_admin(cls, telegram_id: int) -> bool:
        return telegram_id in cls.ADMIN_TELEGRAM_IDS
