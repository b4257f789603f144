"""Shared fixtures: migrated SQLite databases and rules."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path

import pytest

from inkwell.adapters.sqlite.migrator import SQLiteMigrator
from inkwell.adapters.sqlite_db import SQLiteUnitOfWork
from inkwell.rules.loader import load_rules
from inkwell.rules.models import Rules

PROJECT_ROOT = Path(__file__).parent.parent


class FixedClock:
    """Clock pinned to a settable instant."""

    def __init__(self, now: datetime | None = None) -> None:
        self._now = now or datetime(2024, 6, 1, 9, 0, tzinfo=UTC)

    def now_utc(self) -> datetime:
        return self._now

    def set(self, now: datetime) -> None:
        self._now = now


@pytest.fixture
def rules() -> Rules:
    """The real rules.yaml from the project root."""
    return load_rules(PROJECT_ROOT / "rules.yaml")


@pytest.fixture
def db_path(tmp_path: Path) -> str:
    """A fully migrated database."""
    path = str(tmp_path / "inkwell.db")
    SQLiteMigrator(path).run_migrations()
    return path


@pytest.fixture
def uow_factory(db_path: str) -> Callable[[], SQLiteUnitOfWork]:
    return lambda: SQLiteUnitOfWork(db_path)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()
