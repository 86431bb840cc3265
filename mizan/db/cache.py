"""Per-user read cache.

Mirrors day records, cycles, settings and the session's FeatureDecision so
read-only views don't hit the database. It is never the source of truth:
a full resync from the repository rebuilds it.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol

from mizan.db.models import CycleRecord, DayRecord, Settings
from mizan.engine.subscription import FeatureDecision


@dataclass
class CacheSnapshot:
    records: list[DayRecord] = field(default_factory=list)
    cycles: list[CycleRecord] = field(default_factory=list)
    settings: Settings | None = None
    session: FeatureDecision | None = None
    synced_at: datetime | None = None


class Cache(Protocol):
    def read(self, user_id: int) -> CacheSnapshot | None: ...

    def write(self, user_id: int, snapshot: CacheSnapshot) -> None: ...

    def clear(self, user_id: int) -> None: ...


class MemoryCache:
    """In-process cache keyed by user id.

    ``write`` swaps the whole snapshot in one assignment, so readers never
    see a half-updated entry.
    """

    def __init__(self) -> None:
        self._entries: dict[int, CacheSnapshot] = {}

    def read(self, user_id: int) -> CacheSnapshot | None:
        return self._entries.get(user_id)

    def write(self, user_id: int, snapshot: CacheSnapshot) -> None:
        self._entries[user_id] = snapshot

    def clear(self, user_id: int) -> None:
        self._entries.pop(user_id, None)

    def user_ids(self) -> list[int]:
        return list(self._entries)
