"""Connector abstraction, errors, and the bounded feed stream."""

from __future__ import annotations

import queue
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional

from pydantic import ValidationError

from ingestion.errors import ExternalFeedError, FeedCancelled
from ingestion.models.domain import FeedItem, RawRating
from ingestion.utils.logging import get_logger

logger = get_logger(__name__)

_POLL_SECONDS = 0.05
_JOIN_TIMEOUT_SECONDS = 5.0


class ConnectorError(ExternalFeedError):
    """Base connector error."""


class TransientError(ConnectorError):
    """Retryable error (e.g., rate limit, network hiccup)."""


class PermanentError(ConnectorError):
    """Non-retryable error (e.g., 4xx semantics)."""


@dataclass
class FeedPage:
    items: List[Any] = field(default_factory=list)
    next_page: Optional[str] = None


Emit = Callable[[FeedItem], bool]


class FeedStream:
    """Iterator over feed items produced by a background thread.

    The producer and the consumer share a bounded queue, so a slow consumer
    stalls the producer. Setting ``cancel`` stops production; the consumer
    then receives a single :class:`FeedCancelled` item and the stream ends.
    """

    def __init__(
        self,
        produce: Callable[[Emit], None],
        *,
        capacity: int = 100,
        cancel: Optional[threading.Event] = None,
        name: str = "ratings-feed",
    ) -> None:
        self._queue: "queue.Queue[FeedItem]" = queue.Queue(maxsize=capacity)
        self._cancel = cancel or threading.Event()
        self._closed = threading.Event()
        self._finished = threading.Event()
        self._thread = threading.Thread(target=self._run, args=(produce,), name=name, daemon=True)
        self._thread.start()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def _stopped(self) -> bool:
        return self._cancel.is_set() or self._closed.is_set()

    def _emit(self, item: FeedItem) -> bool:
        while not self._stopped():
            try:
                self._queue.put(item, timeout=_POLL_SECONDS)
                return True
            except queue.Full:
                continue
        return False

    def _run(self, produce: Callable[[Emit], None]) -> None:
        try:
            produce(self._emit)
        except ExternalFeedError as exc:
            self._emit(FeedItem.failure(exc))
        except Exception as exc:  # producer runs on its own thread; report inline
            logger.exception("feed.producer_crashed")
            self._emit(FeedItem.failure(ExternalFeedError(f"feed producer failed: {exc}")))
        finally:
            self._finished.set()

    def __iter__(self) -> Iterator[FeedItem]:
        while True:
            if self._cancel.is_set():
                self._closed.set()
                yield FeedItem.failure(FeedCancelled())
                return
            try:
                item = self._queue.get(timeout=_POLL_SECONDS)
            except queue.Empty:
                if self._finished.is_set() and self._queue.empty():
                    return
                continue
            yield item

    def close(self) -> None:
        self._closed.set()
        self._thread.join(timeout=_JOIN_TIMEOUT_SECONDS)

    def __enter__(self) -> "FeedStream":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        self.close()


class BaseConnector(ABC):
    """Abstract paging connector with retry and normalization hooks."""

    source: str

    def __init__(self, *, max_attempts: int = 3, max_pages: int = 100, capacity: int = 100) -> None:
        self.max_attempts = max_attempts
        self.max_pages = max_pages
        self.capacity = capacity

    def fetch_all(self, cancel: Optional[threading.Event] = None) -> FeedStream:
        """Fetch the first page now and stream the rest in the background.

        Raises :class:`ConnectorError` when the first page cannot be fetched,
        i.e. when the feed could not be started at all.
        """
        first = self._fetch_page_with_retry(None)
        logger.info(
            "feed.started",
            extra={"source": self.source, "items": len(first.items), "has_next": bool(first.next_page)},
        )

        def produce(emit: Emit) -> None:
            self._produce(first, emit, cancel)

        return FeedStream(produce, capacity=self.capacity, cancel=cancel, name=f"{self.source}-feed")

    def _produce(self, first: FeedPage, emit: Emit, cancel: Optional[threading.Event]) -> None:
        page = first
        pages = 1
        while True:
            for raw in page.items:
                if not emit(self._normalize_item(raw)):
                    return
            if not page.next_page:
                return
            if pages >= self.max_pages:
                logger.warning("feed.max_pages_reached", extra={"source": self.source, "max_pages": self.max_pages})
                return
            if cancel is not None and cancel.is_set():
                return
            page = self._fetch_page_with_retry(page.next_page)
            pages += 1
            logger.debug("feed.page_fetched", extra={"source": self.source, "page": pages, "items": len(page.items)})

    def _fetch_page_with_retry(self, cursor: Optional[str]) -> FeedPage:
        attempts = 0
        while True:
            attempts += 1
            try:
                return self._parse_page(self._fetch_page(cursor))
            except TransientError as exc:  # retry
                if attempts >= self.max_attempts:
                    raise
                logger.warning(
                    "feed.page_retry",
                    extra={"source": self.source, "attempt": attempts, "error": str(exc)},
                )

    @abstractmethod
    def _fetch_page(self, cursor: Optional[str]) -> Dict[str, Any]:
        """Return the raw page payload for ``cursor`` (None for the first page)."""

    def _parse_page(self, payload: Any) -> FeedPage:
        if not isinstance(payload, dict):
            raise PermanentError("unexpected page payload", service=self.source)
        items = payload.get("items") or []
        if not isinstance(items, list):
            raise PermanentError("page items must be a list", service=self.source)
        next_page = payload.get("next_page") or None
        return FeedPage(items=items, next_page=str(next_page) if next_page else None)

    def _normalize_item(self, item: Any) -> FeedItem:
        if not isinstance(item, dict):
            return FeedItem.failure(ExternalFeedError("malformed feed item", service=self.source))
        try:
            return FeedItem.ok(RawRating.model_validate(item))
        except ValidationError as exc:
            return FeedItem.failure(ExternalFeedError(f"invalid feed item: {exc}", service=self.source))
