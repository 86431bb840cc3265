"""Shared fixtures."""

import pytest

from mizan.db.migrations import run_migrations
from mizan.db.models import (
    ActivityState,
    BuildState,
    CategoryState,
    OptionalTaskState,
)
from mizan.db.repository import Repository
from mizan.utils.constants import PRAYERS


def build_categories(
    salah: str | None = "ontime",
    late: int = 0,
    quran: bool = True,
    physical: bool = True,
    build: bool = True,
    study: bool = True,
    journal: bool = True,
    rest: bool = False,
) -> CategoryState:
    """Categories with the given obligations done. The first ``late`` prayers are late."""
    statuses = {prayer: salah for prayer in PRAYERS}
    for prayer in PRAYERS[:late]:
        statuses[prayer] = "late"

    return CategoryState(
        salah=statuses,
        quran=ActivityState(["reading"], 15) if quran else ActivityState(),
        physical=ActivityState(["cardio"], 25) if physical else ActivityState(),
        build=BuildState(["work"], "shipped feature") if build else BuildState(),
        study=OptionalTaskState(study),
        journal=OptionalTaskState(journal),
        rest=OptionalTaskState(rest),
    )


@pytest.fixture
def make_categories():
    return build_categories


@pytest.fixture
def make_repo(tmp_path):
    """Async factory for a migrated repository on a fresh database file.

    Call it inside the test's event loop and close the repository there too.
    """
    db_path = tmp_path / "mizan.db"

    async def factory() -> Repository:
        await run_migrations(db_path)
        repo = Repository(db_path)
        await repo.connect()
        return repo

    return factory
