"""Single-flight synchronization of analyst ratings from the upstream feed."""

from __future__ import annotations

import threading
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Protocol

from analysis.scoring import calculate_recommend_score
from ingestion.connectors.base import FeedStream
from ingestion.connectors.ratings_feed import RatingsFeedConnector
from ingestion.db.session import get_sessionmaker
from ingestion.errors import ExternalFeedError, RatingNotFound, StorageError, SyncInProgress
from ingestion.models.domain import RatingRecord, SyncRunSummary
from ingestion.repositories.ratings import RatingRepository, SqlRatingRepository
from ingestion.services.identity import derive_rating_id
from ingestion.settings import Settings, get_settings
from ingestion.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_BATCH_SIZE = 100


class RatingsFeed(Protocol):
    def fetch_all(self, cancel: Optional[threading.Event] = None) -> FeedStream: ...


class BatchWritePolicy(str, Enum):
    CONTINUE = "continue"  # log the failed batch and keep syncing
    ABORT = "abort"  # stop the run and raise the StorageError


class SyncGuard:
    """In-process single-flight flag; a second caller is rejected, never queued."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._running = False

    def try_acquire(self) -> bool:
        with self._lock:
            if self._running:
                return False
            self._running = True
            return True

    def release(self) -> None:
        with self._lock:
            self._running = False

    @property
    def running(self) -> bool:
        with self._lock:
            return self._running


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _RunCounters:
    __slots__ = ("total", "new", "updated", "skipped", "failed_writes")

    def __init__(self) -> None:
        self.total = 0
        self.new = 0
        self.updated = 0
        self.skipped = 0
        self.failed_writes = 0


class SyncCoordinator:
    """Drives one end-to-end sync run: stream, identify, score, batch-upsert.

    Only one run may be active per coordinator (see :class:`SyncGuard`).
    Record-level problems (inline feed errors, failed lookups) skip the record;
    a failed batch write is handled according to ``write_policy``. The guard
    is released however the run ends.
    """

    def __init__(
        self,
        repository: RatingRepository,
        connector: RatingsFeed,
        *,
        guard: Optional[SyncGuard] = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        write_policy: BatchWritePolicy = BatchWritePolicy.CONTINUE,
        timeout_seconds: Optional[float] = None,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be positive")
        self._repository = repository
        self._connector = connector
        self._guard = guard or SyncGuard()
        self._batch_size = batch_size
        self._write_policy = BatchWritePolicy(write_policy)
        self._timeout_seconds = timeout_seconds
        self._last_sync: Optional[datetime] = None

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        *,
        repository: Optional[RatingRepository] = None,
        connector: Optional[RatingsFeed] = None,
        guard: Optional[SyncGuard] = None,
    ) -> "SyncCoordinator":
        config = settings or get_settings()
        return cls(
            repository or SqlRatingRepository(get_sessionmaker(config)),
            connector or RatingsFeedConnector(settings=config),
            guard=guard,
            batch_size=int(config.sync_batch_size),
            write_policy=BatchWritePolicy(config.sync_write_policy),
            timeout_seconds=config.sync_timeout_seconds,
        )

    @property
    def running(self) -> bool:
        return self._guard.running

    @property
    def last_sync(self) -> Optional[datetime]:
        return self._last_sync

    def sync(
        self,
        cancel: Optional[threading.Event] = None,
        *,
        timeout_seconds: Optional[float] = None,
    ) -> SyncRunSummary:
        if not self._guard.try_acquire():
            logger.info("sync.rejected_in_progress")
            raise SyncInProgress()

        trace_id = str(uuid.uuid4())
        cancel = cancel or threading.Event()
        timeout = timeout_seconds if timeout_seconds is not None else self._timeout_seconds
        timer: Optional[threading.Timer] = None
        if timeout:
            timer = threading.Timer(timeout, cancel.set)
            timer.daemon = True
            timer.start()
        try:
            logger.info("sync.start", extra={"trace_id": trace_id})
            return self._run(trace_id, cancel)
        finally:
            if timer is not None:
                timer.cancel()
            self._guard.release()

    def _run(self, trace_id: str, cancel: threading.Event) -> SyncRunSummary:
        try:
            stream = self._connector.fetch_all(cancel)
        except ExternalFeedError as exc:
            logger.error("sync.feed_unavailable", extra={"trace_id": trace_id, "error": str(exc)})
            return SyncRunSummary(status="error", last_sync=_utcnow())

        counters = _RunCounters()
        batch: dict[str, RatingRecord] = {}

        with stream:
            for item in stream:
                if item.is_error:
                    counters.skipped += 1
                    logger.warning(
                        "sync.feed_item_error",
                        extra={"trace_id": trace_id, "error": str(item.error)},
                    )
                    continue

                record = self._prepare(item.record, batch, counters, trace_id)
                if record is None:
                    continue
                batch[record.id] = record
                counters.total += 1

                if len(batch) >= self._batch_size:
                    self._flush(batch, counters, trace_id)

            if batch:
                self._flush(batch, counters, trace_id)

        finished = _utcnow()
        self._last_sync = finished
        summary = SyncRunSummary(
            status="completed",
            total_records=counters.total,
            new_records=counters.new,
            updated_records=counters.updated,
            skipped_records=counters.skipped,
            failed_writes=counters.failed_writes,
            last_sync=finished,
        )
        logger.info("sync.completed", extra={"trace_id": trace_id, **summary.model_dump(exclude={"last_sync"})})
        return summary

    def _prepare(self, raw, batch: dict[str, RatingRecord], counters: _RunCounters, trace_id: str) -> Optional[RatingRecord]:
        rating_id = derive_rating_id(raw)
        now = _utcnow()

        pending = batch.get(rating_id)
        if pending is not None:
            created_at = pending.created_at
            counters.updated += 1
        else:
            try:
                existing = self._repository.get_by_id(rating_id)
            except RatingNotFound:
                created_at = now
                counters.new += 1
            except StorageError as exc:
                counters.skipped += 1
                logger.warning(
                    "sync.record_skipped",
                    extra={"trace_id": trace_id, "rating_id": rating_id, "error": str(exc)},
                )
                return None
            else:
                created_at = existing.created_at or now
                counters.updated += 1

        return RatingRecord(
            **raw.model_dump(),
            id=rating_id,
            recommend_score=calculate_recommend_score(raw),
            created_at=created_at,
            updated_at=now,
        )

    def _flush(self, batch: dict[str, RatingRecord], counters: _RunCounters, trace_id: str) -> None:
        records = list(batch.values())
        batch.clear()
        try:
            self._repository.save_batch(records)
        except StorageError as exc:
            counters.failed_writes += len(records)
            logger.error(
                "sync.batch_failed",
                extra={"trace_id": trace_id, "size": len(records), "error": str(exc)},
            )
            if self._write_policy is BatchWritePolicy.ABORT:
                raise
            return
        logger.info("sync.batch_saved", extra={"trace_id": trace_id, "size": len(records)})
