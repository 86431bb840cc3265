"""Cache resync - rebuilds each user's cached snapshot from the database."""

import logging
import sqlite3
from datetime import datetime

from mizan.db.cache import Cache, CacheSnapshot
from mizan.db.repository import Repository
from mizan.engine.cycles import build_cycles
from mizan.engine.subscription import load_session
from mizan.utils.errors import TransientError
from mizan.utils.time_utils import utcnow

logger = logging.getLogger(__name__)


async def resync_user(
    repo: Repository, cache: Cache, user_id: int, now: datetime | None = None
) -> CacheSnapshot:
    """Rebuild one user's snapshot and swap it in.

    The snapshot is assembled completely before it is written, so a failure
    part-way leaves the previous cache entry untouched.

    Raises:
        TransientError: the database could not be read
    """
    if now is None:
        now = utcnow()

    try:
        records = await repo.list_day_records(user_id)
        settings = await repo.get_settings(user_id)
        session = await load_session(repo, user_id, now)
    except (sqlite3.Error, OSError) as e:
        raise TransientError(f"Sync failed for user {user_id}: {e}") from e

    snapshot = CacheSnapshot(
        records=records,
        cycles=build_cycles(records),
        settings=settings,
        session=session,
        synced_at=now,
    )
    cache.write(user_id, snapshot)
    return snapshot


async def refresh_quietly(repo: Repository, cache: Cache, user_id: int) -> None:
    """Background refresh after a write. Failures wait for the next sync."""
    try:
        await resync_user(repo, cache, user_id)
    except TransientError as e:
        logger.warning(f"{e}; keeping cached data until next sync")


async def read_snapshot(repo: Repository, cache: Cache, user_id: int) -> CacheSnapshot:
    """Cached snapshot if there is one, otherwise a fresh resync."""
    snapshot = cache.read(user_id)
    if snapshot is not None:
        return snapshot
    return await resync_user(repo, cache, user_id)


async def sync_all(repo: Repository, cache: Cache) -> int:
    """Resync every user. This runs on the job queue.

    Returns:
        Number of users synced successfully
    """
    now = utcnow()
    synced = 0

    try:
        user_ids = await repo.list_user_ids()
    except (sqlite3.Error, OSError) as e:
        logger.warning(f"Sync skipped, could not list users: {e}")
        return 0

    for user_id in user_ids:
        try:
            await resync_user(repo, cache, user_id, now)
            synced += 1
        except TransientError as e:
            logger.warning(str(e))
            continue

    if synced:
        logger.info(f"Cache sync: {synced}/{len(user_ids)} users refreshed")
    return synced
