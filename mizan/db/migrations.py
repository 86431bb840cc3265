"""Schema setup for the Mizan database.

``schema.sql`` holds the one current schema, written with ``IF NOT EXISTS``
throughout. Applying it to an existing database is a no-op, and the applied
version is stamped into ``PRAGMA user_version``.
"""

import logging
from pathlib import Path

import aiosqlite

logger = logging.getLogger(__name__)

SCHEMA_PATH = Path(__file__).parent / "schema.sql"
SCHEMA_VERSION = 1

TABLES = (
    "users",
    "day_records",
    "settings",
    "premium_tokens",
    "rule_progress",
    "leaderboard",
    "points_log",
)


async def schema_version(db: aiosqlite.Connection) -> int:
    async with db.execute("PRAGMA user_version") as cursor:
        row = await cursor.fetchone()
        return row[0]


async def run_migrations(db_path: Path) -> None:
    """Bring the database at ``db_path`` up to the current schema."""
    async with aiosqlite.connect(db_path) as db:
        current = await schema_version(db)
        if current > SCHEMA_VERSION:
            raise RuntimeError(
                f"Database schema v{current} is newer than this build (v{SCHEMA_VERSION})"
            )

        await db.executescript(SCHEMA_PATH.read_text())
        await db.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")
        await db.commit()

    if current < SCHEMA_VERSION:
        logger.info(f"Database at {db_path} migrated from v{current} to v{SCHEMA_VERSION}")
    else:
        logger.info(f"Database at {db_path} is at schema v{SCHEMA_VERSION}")
