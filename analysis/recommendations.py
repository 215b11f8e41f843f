"""Top-N recommendations ranked by the read-time score."""

from __future__ import annotations

from typing import Optional

from analysis.models.domain import StockRecommendation
from analysis.scoring import score_recommendation
from ingestion.repositories.ratings import RatingRepository
from ingestion.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_LIMIT = 10
MAX_LIMIT = 100
OVERFETCH_FACTOR = 2


def normalize_limit(limit: Optional[int]) -> int:
    if limit is None or limit < 1 or limit > MAX_LIMIT:
        return DEFAULT_LIMIT
    return limit


class RecommendationService:
    def __init__(self, repository: RatingRepository) -> None:
        self._repository = repository

    def get_top_recommendations(self, limit: Optional[int] = None) -> list[StockRecommendation]:
        """Return at most ``limit`` recommendations with ranks 1..n.

        Candidates come pre-sorted by the persisted ingest-time score; we
        over-fetch because re-scoring can reorder them.
        """
        limit = normalize_limit(limit)
        candidates = self._repository.get_top_recommended(limit * OVERFETCH_FACTOR)

        recommendations = []
        for stock in candidates:
            score, reason = score_recommendation(stock)
            recommendations.append(StockRecommendation(stock=stock, score=score, reason=reason))

        recommendations.sort(key=lambda rec: (-rec.score, rec.stock.id))
        recommendations = recommendations[:limit]
        for position, rec in enumerate(recommendations, start=1):
            rec.rank = position

        logger.debug(
            "recommendations.ranked",
            extra={"limit": limit, "candidates": len(candidates), "returned": len(recommendations)},
        )
        return recommendations
