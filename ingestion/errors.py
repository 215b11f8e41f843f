"""Error taxonomy shared by the sync pipeline and the web API.

Every error carries a stable ``kind`` tag that the API turns into the
``{"error": kind, "message": ...}`` envelope.
"""

from __future__ import annotations


class StockRatingsError(Exception):
    """Base error with a stable kind tag and a human-readable message."""

    kind = "internal_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class RatingNotFound(StockRatingsError):
    kind = "not_found"

    def __init__(self, rating_id: str) -> None:
        super().__init__(f"stock rating not found: {rating_id}")
        self.rating_id = rating_id


class SyncInProgress(StockRatingsError):
    kind = "sync_in_progress"

    def __init__(self) -> None:
        super().__init__("sync already in progress")


class ExternalFeedError(StockRatingsError):
    """The upstream ratings feed failed (I/O, HTTP status or payload)."""

    kind = "external_feed_failure"

    def __init__(self, message: str, *, service: str = "ratings_feed", status_code: int | None = None) -> None:
        if status_code:
            text = f"external API error from {service} (status {status_code}): {message}"
        else:
            text = f"external API error from {service}: {message}"
        super().__init__(text)
        self.service = service
        self.status_code = status_code


class FeedCancelled(ExternalFeedError):
    """Feed production stopped because the caller cancelled the run."""

    def __init__(self, message: str = "feed cancelled") -> None:
        super().__init__(message)


class StorageError(StockRatingsError):
    kind = "storage_failure"

    def __init__(self, operation: str, cause: BaseException | None = None) -> None:
        super().__init__(f"storage error during {operation}: {cause}")
        self.operation = operation
        self.cause = cause


class Unauthorized(StockRatingsError):
    kind = "unauthorized"

    def __init__(self, message: str = "Invalid credentials") -> None:
        super().__init__(message)


class ValidationFailure(StockRatingsError):
    kind = "validation_failure"

    def __init__(self, field: str, message: str) -> None:
        super().__init__(f"validation error on field '{field}': {message}")
        self.field = field
