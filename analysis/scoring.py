"""Heuristic scoring for analyst ratings.

Two independent formulas live here:

* ``calculate_recommend_score`` runs at ingest time and is persisted as
  ``recommend_score`` (default sort key for listings).
* ``calculate_score`` runs whenever recommendations are read and is the only
  score used for ranking.

They intentionally use different tables and weights; callers depend on
their distinct ranges, so they are not derived from each other.
"""

from __future__ import annotations

import math
from typing import Optional

from ingestion.models.domain import RawRating

# Ingest-time deltas applied to a base of 50.
INGEST_BASE_SCORE = 50.0

INGEST_RATING_DELTAS: dict[str, float] = {
    "Buy": 30.0,
    "Outperform": 25.0,
    "Overweight": 20.0,
    "Hold": 0.0,
    "Neutral": -5.0,
    "Market Perform": -10.0,
    "Underperform": -20.0,
    "Underweight": -20.0,
    "Sell": -30.0,
    "Speculative": 10.0,
}
INGEST_RATING_DEFAULT = 0.0

INGEST_ACTION_DELTAS: dict[str, float] = {
    "target raised by": 15.0,
    "upgraded by": 20.0,
    "initiated by": 5.0,
    "target lowered by": -15.0,
    "downgraded by": -20.0,
}
INGEST_ACTION_DEFAULT = 0.0

INGEST_PRICE_CHANGE_FACTOR = 0.5

# Recommendation-time contributions, each on a 0-100 scale.
RATING_WEIGHT = 0.40
ACTION_WEIGHT = 0.35
PRICE_TARGET_WEIGHT = 0.25

RATING_SCORES: dict[str, float] = {
    "Buy": 100.0,
    "Strong Buy": 100.0,
    "Outperform": 80.0,
    "Overweight": 70.0,
    "Accumulate": 60.0,
    "Hold": 40.0,
    "Neutral": 35.0,
    "Market Perform": 30.0,
    "Equal Weight": 30.0,
    "Underperform": 15.0,
    "Underweight": 15.0,
    "Reduce": 10.0,
    "Sell": 0.0,
    "Speculative": 50.0,
}
RATING_SCORE_DEFAULT = 40.0

ACTION_SCORES: dict[str, float] = {
    "target raised by": 100.0,
    "upgraded by": 100.0,
    "initiated by": 60.0,
    "reiterated by": 50.0,
    "target lowered by": 0.0,
    "downgraded by": 0.0,
}
ACTION_SCORE_DEFAULT = 50.0

PRICE_TARGET_NEUTRAL = 50.0

# (exclusive lower bound on percent change, score), checked in order.
PRICE_TARGET_STEPS: tuple[tuple[float, float], ...] = (
    (50.0, 100.0),
    (20.0, 80.0),
    (10.0, 70.0),
    (0.0, 60.0),
    (-10.0, 40.0),
    (-20.0, 20.0),
)
PRICE_TARGET_FLOOR = 0.0

SIGNIFICANT_CHANGE_PCT = 10.0
MAX_REASONS = 3
FALLBACK_REASON = "Based on current market analysis"

_RATING_REASONS: tuple[tuple[frozenset[str], str], ...] = (
    (frozenset({"Buy", "Strong Buy"}), "Strong buy recommendation from analyst"),
    (frozenset({"Outperform", "Overweight"}), "Expected to outperform the market"),
    (frozenset({"Hold", "Neutral"}), "Stable performance expected"),
    (frozenset({"Sell", "Underperform"}), "Caution advised - underperformance expected"),
)

_ACTION_REASONS: dict[str, str] = {
    "target raised by": "Price target recently increased",
    "upgraded by": "Recently upgraded by analyst",
    "target lowered by": "Price target recently decreased",
    "downgraded by": "Recently downgraded by analyst",
}


def price_change_pct(target_from: float, target_to: float) -> Optional[float]:
    """Percent change between price targets, or None when either is unknown."""
    if target_from <= 0 or target_to <= 0:
        return None
    return (target_to - target_from) / target_from * 100


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def _round_cents(value: float) -> float:
    # half away from zero; callers pass clamped, non-negative scores
    return math.floor(value * 100 + 0.5) / 100


def calculate_recommend_score(rating: RawRating) -> float:
    """Ingest-time score persisted as ``recommend_score``."""
    score = INGEST_BASE_SCORE
    score += INGEST_RATING_DELTAS.get(rating.rating_to, INGEST_RATING_DEFAULT)
    score += INGEST_ACTION_DELTAS.get(rating.action, INGEST_ACTION_DEFAULT)

    change = price_change_pct(rating.target_from, rating.target_to)
    if change is not None:
        score += change * INGEST_PRICE_CHANGE_FACTOR

    return _round_cents(_clamp(score))


def rating_score(rating_to: str) -> float:
    return RATING_SCORES.get(rating_to, RATING_SCORE_DEFAULT)


def action_score(action: str) -> float:
    return ACTION_SCORES.get(action, ACTION_SCORE_DEFAULT)


def price_target_score(target_from: float, target_to: float) -> float:
    change = price_change_pct(target_from, target_to)
    if change is None:
        return PRICE_TARGET_NEUTRAL
    for lower_bound, score in PRICE_TARGET_STEPS:
        if change > lower_bound:
            return score
    return PRICE_TARGET_FLOOR


def calculate_score(rating: RawRating) -> float:
    """Recommendation-time score; recomputed on every read, never persisted."""
    weighted = (
        rating_score(rating.rating_to) * RATING_WEIGHT
        + action_score(rating.action) * ACTION_WEIGHT
        + price_target_score(rating.target_from, rating.target_to) * PRICE_TARGET_WEIGHT
    )
    normalized = (weighted + 100) / 2
    return _round_cents(_clamp(normalized))


def generate_reason(rating: RawRating) -> str:
    """Build a short justification from rating, action and price-target move."""
    reasons: list[str] = []

    for labels, phrase in _RATING_REASONS:
        if rating.rating_to in labels:
            reasons.append(phrase)
            break

    action_phrase = _ACTION_REASONS.get(rating.action)
    if action_phrase:
        reasons.append(action_phrase)

    change = price_change_pct(rating.target_from, rating.target_to)
    if change is not None:
        if change > SIGNIFICANT_CHANGE_PCT:
            reasons.append("Significant upside potential in price target")
        elif change < -SIGNIFICANT_CHANGE_PCT:
            reasons.append("Notable downside risk in price target")

    if not reasons:
        return FALLBACK_REASON
    return ". ".join(reasons[:MAX_REASONS])


def score_recommendation(rating: RawRating) -> tuple[float, str]:
    return calculate_score(rating), generate_reason(rating)
