from __future__ import annotations

from pathlib import Path

import pytest

pytest.importorskip("celery")

from factories import paged_provider, raw_item
from ingestion.connectors.ratings_feed import RatingsFeedConnector
from ingestion.tasks import sync as sync_task


@pytest.fixture()
def task_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'worker.db'}")
    pages = [[raw_item(ticker="AAPL"), raw_item(ticker="NVDA")]]
    monkeypatch.setattr(
        sync_task,
        "CONNECTOR_FACTORY",
        lambda settings: RatingsFeedConnector(provider=paged_provider(pages), settings=settings),
    )
    sync_task.reset_coordinator()
    yield
    sync_task.reset_coordinator()


def test_sync_core_returns_json_summary(task_env):
    first = sync_task.sync_core()
    second = sync_task.sync_core()

    assert first["status"] == "completed"
    assert first["new_records"] == 2
    assert isinstance(first["last_sync"], str)
    assert second["new_records"] == 0
    assert second["updated_records"] == 2


def test_sync_core_skips_when_a_run_is_active(task_env):
    coordinator = sync_task.get_coordinator()
    assert coordinator._guard.try_acquire()
    try:
        assert sync_task.sync_core() == {"status": "skipped"}
    finally:
        coordinator._guard.release()
