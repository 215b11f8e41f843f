"""Read-side façade over the rating repository: listing, lookup, search, filters."""

from __future__ import annotations

import math
from typing import Optional

from ingestion.errors import ValidationFailure
from ingestion.models.domain import RatingRecord, StockFilter
from ingestion.repositories.ratings import RatingRepository

from .models import FiltersResponse, PaginatedStocks

KNOWN_ACTIONS: tuple[str, ...] = (
    "target raised by",
    "target lowered by",
    "upgraded by",
    "downgraded by",
    "initiated by",
)

DEFAULT_SEARCH_LIMIT = 10
MAX_SEARCH_LIMIT = 50


class StockService:
    def __init__(self, repository: RatingRepository) -> None:
        self._repository = repository

    def get_stock(self, rating_id: str) -> RatingRecord:
        return self._repository.get_by_id(rating_id)

    def get_stocks(self, filter_: StockFilter) -> PaginatedStocks:
        records, total = self._repository.get_all(filter_)
        return PaginatedStocks(
            data=records,
            page=filter_.page,
            page_size=filter_.page_size,
            total_items=total,
            total_pages=math.ceil(total / filter_.page_size),
        )

    def search_stocks(self, query: Optional[str], limit: Optional[int] = None) -> list[RatingRecord]:
        term = (query or "").strip()
        if not term:
            raise ValidationFailure("q", "search query is required")
        if limit is None or limit < 1 or limit > MAX_SEARCH_LIMIT:
            limit = DEFAULT_SEARCH_LIMIT
        return self._repository.search(term, limit)

    def get_filters(self) -> FiltersResponse:
        return FiltersResponse(
            brokerages=self._repository.get_distinct_brokerages(),
            ratings=self._repository.get_distinct_ratings(),
            actions=list(KNOWN_ACTIONS),
        )
