"""Tests for the read cache and background resync."""

import asyncio
import sqlite3
from datetime import date

import pytest

from mizan.db.cache import CacheSnapshot, MemoryCache
from mizan.engine.checkin import submit_day
from mizan.engine.sync import read_snapshot, refresh_quietly, resync_user, sync_all
from mizan.utils.errors import TransientError

DAY = date(2026, 3, 15)


def test_memory_cache_scoped_by_user():
    """Test read, write and clear per user."""
    cache = MemoryCache()
    snapshot = CacheSnapshot()

    cache.write(1, snapshot)

    assert cache.read(1) is snapshot
    assert cache.read(2) is None

    cache.clear(1)
    cache.clear(2)
    assert cache.read(1) is None
    assert cache.user_ids() == []


def test_resync_builds_snapshot(make_repo, make_categories):
    """Test a resync mirroring records, cycles, settings and session."""

    async def scenario():
        repo = await make_repo()
        try:
            cache = MemoryCache()
            user = await repo.create_user(1)
            await submit_day(repo, user.id, DAY, make_categories())

            snapshot = await resync_user(repo, cache, user.id)

            assert cache.read(user.id) is snapshot
            assert [r.day for r in snapshot.records] == [DAY]
            assert snapshot.cycles[0].days == [DAY]
            assert snapshot.settings.focus_phrase
            assert not snapshot.session.is_premium
        finally:
            await repo.close()

    asyncio.run(scenario())


def test_failed_resync_keeps_previous_cache(make_repo, monkeypatch):
    """Test that a datastore failure leaves the cached entry untouched."""

    async def scenario():
        repo = await make_repo()
        try:
            cache = MemoryCache()
            user = await repo.create_user(1)
            previous = await resync_user(repo, cache, user.id)

            async def broken(*args, **kwargs):
                raise sqlite3.OperationalError("database is locked")

            monkeypatch.setattr(repo, "get_settings", broken)

            with pytest.raises(TransientError):
                await resync_user(repo, cache, user.id)
            assert cache.read(user.id) is previous

            # The background variant only logs
            await refresh_quietly(repo, cache, user.id)
            assert cache.read(user.id) is previous

            assert await sync_all(repo, cache) == 0
            assert cache.read(user.id) is previous
        finally:
            await repo.close()

    asyncio.run(scenario())


def test_read_snapshot_prefers_cache(make_repo):
    """Test that a cached snapshot is served without a resync."""

    async def scenario():
        repo = await make_repo()
        try:
            cache = MemoryCache()
            user = await repo.create_user(1)

            fresh = await read_snapshot(repo, cache, user.id)
            assert cache.read(user.id) is fresh

            assert await read_snapshot(repo, cache, user.id) is fresh
        finally:
            await repo.close()

    asyncio.run(scenario())


def test_sync_all(make_repo):
    """Test the periodic job syncing every user."""

    async def scenario():
        repo = await make_repo()
        try:
            cache = MemoryCache()
            for telegram_id in (1, 2, 3):
                await repo.create_user(telegram_id)

            assert await sync_all(repo, cache) == 3
            assert sorted(cache.user_ids()) == sorted(await repo.list_user_ids())
        finally:
            await repo.close()

    asyncio.run(scenario())
