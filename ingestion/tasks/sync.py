"""Celery task for the periodic ratings sync."""

from __future__ import annotations

from typing import Any, Callable, Dict

from celery import shared_task

from ingestion.db.session import init_db
from ingestion.errors import SyncInProgress
from ingestion.services.sync import RatingsFeed, SyncCoordinator
from ingestion.settings import Settings, get_settings
from ingestion.utils.logging import get_logger

# Connector factory is kept pluggable for tests; it must return an object with .fetch_all(cancel).
CONNECTOR_FACTORY: Callable[[Settings], RatingsFeed] | None = None

_COORDINATOR: SyncCoordinator | None = None


def get_coordinator() -> SyncCoordinator:
    """Return the worker-process coordinator (one single-flight guard per process)."""
    global _COORDINATOR
    if _COORDINATOR is None:
        settings = get_settings()
        init_db(settings)
        connector = CONNECTOR_FACTORY(settings) if CONNECTOR_FACTORY is not None else None
        _COORDINATOR = SyncCoordinator.from_settings(settings, connector=connector)
    return _COORDINATOR


def reset_coordinator() -> None:
    global _COORDINATOR
    _COORDINATOR = None


def sync_core() -> Dict[str, Any]:
    """Run one sync and return the summary as JSON-ready data; test-friendly."""
    logger = get_logger(__name__)
    try:
        summary = get_coordinator().sync()
    except SyncInProgress:
        logger.info("sync.task_skipped", extra={"reason": "in_progress"})
        return {"status": "skipped"}
    return summary.model_dump(mode="json")


@shared_task(name="ingestion.tasks.sync.sync_stock_ratings")
def sync_stock_ratings() -> Dict[str, Any]:  # pragma: no cover - wrapper
    return sync_core()
