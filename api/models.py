from __future__ import annotations

from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field

from analysis.models.domain import StockRecommendation
from ingestion.models.domain import RatingRecord, SyncRunSummary

T = TypeVar("T")


class SuccessResponse(BaseModel, Generic[T]):
    data: T
    message: str | None = None


class ErrorResponse(BaseModel):
    error: str
    message: str


class PaginatedStocks(BaseModel):
    data: list[RatingRecord] = Field(default_factory=list)
    page: int
    page_size: int
    total_items: int
    total_pages: int


class FiltersResponse(BaseModel):
    brokerages: list[str] = Field(default_factory=list)
    ratings: list[str] = Field(default_factory=list)
    actions: list[str] = Field(default_factory=list)


class SyncResponse(BaseModel):
    status: str
    total_records: int
    new_records: int
    updated_records: int
    last_sync: str

    @classmethod
    def from_summary(cls, summary: SyncRunSummary) -> "SyncResponse":
        return cls(
            status=summary.status,
            total_records=summary.total_records,
            new_records=summary.new_records,
            updated_records=summary.updated_records,
            last_sync=summary.last_sync.isoformat(),
        )


class HealthStatus(BaseModel):
    status: str
    service: str
    last_sync: str | None = None
    sync_running: bool = False


StockResponse = SuccessResponse[RatingRecord]
StockListResponse = SuccessResponse[list[RatingRecord]]
FiltersEnvelope = SuccessResponse[FiltersResponse]
RecommendationsResponse = SuccessResponse[list[StockRecommendation]]
HealthResponse = SuccessResponse[HealthStatus]
PingResponse = SuccessResponse[Any]
