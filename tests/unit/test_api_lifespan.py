"""
API startup and shutdown: rules checks and the delivery poller.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Generator
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

import pytest
import yaml
from fastapi.testclient import TestClient

from inkwell.adapters.sqlite_db import SQLiteEmailJobRepo
from inkwell.api.deps import get_email, get_rules, get_settings
from inkwell.api.main import app
from inkwell.app_shell.config import DATA_DIR_ENV, RULES_PATH_ENV, SIGNING_KEY_ENV
from inkwell.domain.entities import ScheduledEmailJob

PROJECT_ROOT = Path(__file__).parent.parent.parent


def _clear_caches() -> None:
    get_settings.cache_clear()
    get_rules.cache_clear()
    get_email.cache_clear()


@pytest.fixture
def configure(
    db_path: str, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> Generator[Callable[[float], None], None, None]:
    """Point the app at the migrated test database with a given poll interval."""

    def apply(poll_interval_seconds: float) -> None:
        raw: dict[str, Any] = yaml.safe_load((PROJECT_ROOT / "rules.yaml").read_text())
        raw["ops"]["delivery"]["poll_interval_seconds"] = poll_interval_seconds
        rules_path = tmp_path / "rules.yaml"
        rules_path.write_text(yaml.dump(raw))

        monkeypatch.setenv(RULES_PATH_ENV, str(rules_path))
        monkeypatch.setenv(DATA_DIR_ENV, str(Path(db_path).parent))
        monkeypatch.setenv(SIGNING_KEY_ENV, "lifespan-key")
        _clear_caches()

    yield apply
    _clear_caches()


def test_poller_disabled_by_default(configure: Callable[[float], None]) -> None:
    configure(0)

    with TestClient(app):
        assert app.state.delivery_poller is None


def test_poller_runs_for_app_lifetime(
    configure: Callable[[float], None], db_path: str
) -> None:
    configure(0.05)
    now = datetime.now(UTC)
    jobs = SQLiteEmailJobRepo(db_path)
    jobs.insert_batch(
        [
            ScheduledEmailJob(
                to="reader@example.com",
                from_address="newsletter@example.com",
                subject="newsletter - Launch",
                html_body="<p>Hello</p>",
                text_body="Hello",
                scheduled_at=now - timedelta(minutes=1),
                created_at=now,
            )
        ]
    )

    with TestClient(app):
        poller = app.state.delivery_poller
        assert poller is not None and poller.is_running

        deadline = time.monotonic() + 5
        while jobs.count_by_status("sent") == 0 and time.monotonic() < deadline:
            time.sleep(0.05)

    assert jobs.count_by_status("sent") == 1
    assert not poller.is_running
    assert [m.recipient for m in get_email().messages] == ["reader@example.com"]
