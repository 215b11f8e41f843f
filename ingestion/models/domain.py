"""Domain DTOs for the ratings sync pipeline."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

SyncStatus = Literal["completed", "error"]


def coerce_price(value: Any) -> float:
    """Coerce a price target from the feed into a float.

    The feed sends targets as numbers, numeric strings or strings such as
    ``"$4.20"``; anything unparseable becomes ``0.0`` (the "unknown" sentinel).
    """
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        result = float(value)
    elif isinstance(value, str):
        text = value.strip().replace("$", "").replace(",", "")
        if not text:
            return 0.0
        try:
            result = float(text)
        except ValueError:
            return 0.0
    else:
        return 0.0
    if math.isnan(result) or math.isinf(result):
        return 0.0
    return result


class RawRating(BaseModel):
    """One analyst rating as delivered by the upstream feed."""

    ticker: str = ""
    company: str = ""
    brokerage: str = ""
    action: str = ""
    rating_from: str = ""
    rating_to: str = ""
    target_from: float = Field(0.0, description="0 이하이면 알 수 없음")
    target_to: float = Field(0.0, description="0 이하이면 알 수 없음")

    @field_validator("ticker", "company", "brokerage", "action", "rating_from", "rating_to", mode="before")
    @classmethod
    def _to_text(cls, value: Any) -> str:
        if value is None:
            return ""
        return str(value)

    @field_validator("target_from", "target_to", mode="before")
    @classmethod
    def _to_price(cls, value: Any) -> float:
        return coerce_price(value)


class RatingRecord(RawRating):
    """Persisted rating keyed by its content fingerprint."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    recommend_score: float = 0.0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class FeedItem:
    """Either a raw rating or the error that replaced it in the stream."""

    record: Optional[RawRating] = None
    error: Optional[Exception] = None

    @classmethod
    def ok(cls, record: RawRating) -> "FeedItem":
        return cls(record=record)

    @classmethod
    def failure(cls, error: Exception) -> "FeedItem":
        return cls(error=error)

    @property
    def is_error(self) -> bool:
        return self.error is not None


class SyncRunSummary(BaseModel):
    status: SyncStatus
    total_records: int = 0
    new_records: int = 0
    updated_records: int = 0
    skipped_records: int = 0
    failed_writes: int = 0
    last_sync: datetime


SORTABLE_FIELDS = frozenset(
    {"ticker", "company", "brokerage", "recommend_score", "created_at", "updated_at"}
)
DEFAULT_SORT_FIELD = "recommend_score"
DEFAULT_SORT_ORDER = "desc"
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


class StockFilter(BaseModel):
    """Listing filter; out-of-range paging/sorting values fall back to defaults."""

    ticker: Optional[str] = None
    company: Optional[str] = None
    brokerage: Optional[str] = None
    rating: Optional[str] = None
    action: Optional[str] = None
    sort_by: str = DEFAULT_SORT_FIELD
    sort_order: str = DEFAULT_SORT_ORDER
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE

    @field_validator("ticker", "company", "brokerage", "rating", "action")
    @classmethod
    def _blank_to_none(cls, value: Optional[str]) -> Optional[str]:
        if value is None or not value.strip():
            return None
        return value.strip()

    @field_validator("sort_by", mode="before")
    @classmethod
    def _allowed_sort_field(cls, value: Any) -> str:
        field = str(value or "").strip().lower()
        return field if field in SORTABLE_FIELDS else DEFAULT_SORT_FIELD

    @field_validator("sort_order", mode="before")
    @classmethod
    def _allowed_sort_order(cls, value: Any) -> str:
        order = str(value or "").strip().lower()
        return order if order in ("asc", "desc") else DEFAULT_SORT_ORDER

    @field_validator("page", mode="before")
    @classmethod
    def _min_page(cls, value: Any) -> int:
        page = _as_int(value, 1)
        return page if page >= 1 else 1

    @field_validator("page_size", mode="before")
    @classmethod
    def _page_size_range(cls, value: Any) -> int:
        size = _as_int(value, DEFAULT_PAGE_SIZE)
        return size if 1 <= size <= MAX_PAGE_SIZE else DEFAULT_PAGE_SIZE

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


def _as_int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default
