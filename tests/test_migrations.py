"""Tests for database schema setup."""

import asyncio

import aiosqlite
import pytest

from mizan.db.migrations import SCHEMA_VERSION, TABLES, run_migrations, schema_version


def test_migrations_create_tables_and_stamp_version(tmp_path):
    """Test a fresh database getting every table and the schema version."""
    db_path = tmp_path / "mizan.db"

    async def scenario():
        await run_migrations(db_path)
        # A second run on the same file changes nothing
        await run_migrations(db_path)

        async with aiosqlite.connect(db_path) as db:
            async with db.execute(
                "SELECT name FROM sqlite_master WHERE type = 'table'"
            ) as cursor:
                names = {row[0] for row in await cursor.fetchall()}

            assert set(TABLES) <= names
            assert await schema_version(db) == SCHEMA_VERSION

    asyncio.run(scenario())


def test_newer_database_is_refused(tmp_path):
    """Test that a database from a later build isn't touched."""
    db_path = tmp_path / "mizan.db"

    async def scenario():
        async with aiosqlite.connect(db_path) as db:
            await db.execute(f"PRAGMA user_version = {SCHEMA_VERSION + 1}")
            await db.commit()

        with pytest.raises(RuntimeError):
            await run_migrations(db_path)

    asyncio.run(scenario())
