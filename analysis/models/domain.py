"""Domain models for ranked recommendations."""

from __future__ import annotations

from pydantic import BaseModel, Field

from ingestion.models.domain import RatingRecord


class StockRecommendation(BaseModel):
    stock: RatingRecord
    score: float = Field(..., ge=0.0, le=100.0)
    reason: str
    rank: int = Field(0, ge=0, description="1부터 시작하는 dense rank (정렬·절단 후 부여)")
