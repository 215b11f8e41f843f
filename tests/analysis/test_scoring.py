from __future__ import annotations

import pytest

from factories import raw_item
from analysis.scoring import (
    FALLBACK_REASON,
    calculate_recommend_score,
    calculate_score,
    generate_reason,
    price_change_pct,
    price_target_score,
    score_recommendation,
)
from ingestion.models.domain import RawRating


def _raw(**overrides) -> RawRating:
    return RawRating.model_validate(raw_item(**overrides))


def test_price_change_pct_ignores_unknown_targets():
    assert price_change_pct(100.0, 150.0) == pytest.approx(50.0)
    assert price_change_pct(0.0, 150.0) is None
    assert price_change_pct(100.0, 0.0) is None


@pytest.mark.parametrize(
    "overrides, expected",
    [
        ({}, 100.0),
        ({"rating_to": "Sell", "action": "downgraded by", "target_to": "$80.00"}, 0.0),
        ({"rating_to": "Hold", "action": "reiterated by", "target_from": "", "target_to": ""}, 50.0),
        ({"rating_to": "Neutral", "action": "initiated by", "target_to": "$104.00"}, 52.0),
        ({"rating_to": "Peer Perform", "action": "coverage dropped", "target_from": "$200", "target_to": "$190"}, 47.5),
    ],
)
def test_calculate_recommend_score(overrides, expected):
    assert calculate_recommend_score(_raw(**overrides)) == pytest.approx(expected)


@pytest.mark.parametrize(
    "target_to, expected",
    [
        (160.0, 100.0),
        (150.0, 80.0),
        (115.0, 70.0),
        (105.0, 60.0),
        (100.0, 40.0),
        (85.0, 20.0),
        (80.0, 0.0),
        (0.0, 50.0),
    ],
)
def test_price_target_score_steps(target_to, expected):
    assert price_target_score(100.0, target_to) == expected


@pytest.mark.parametrize(
    "overrides, expected",
    [
        ({}, 97.5),
        ({"rating_to": "Sell", "action": "downgraded by", "target_to": "$80.00"}, 50.0),
        ({"rating_to": "Hold", "action": "unknown", "target_from": "", "target_to": ""}, 73.0),
    ],
)
def test_calculate_score(overrides, expected):
    assert calculate_score(_raw(**overrides)) == pytest.approx(expected)


def test_scores_stay_within_bounds():
    extremes = [
        _raw(target_from="$1", target_to="$1000"),
        _raw(rating_to="Sell", action="downgraded by", target_from="$1000", target_to="$1"),
    ]
    for raw in extremes:
        assert 0.0 <= calculate_recommend_score(raw) <= 100.0
        assert 0.0 <= calculate_score(raw) <= 100.0


def test_generate_reason_combines_up_to_three_phrases():
    assert generate_reason(_raw()) == (
        "Strong buy recommendation from analyst. "
        "Price target recently increased. "
        "Significant upside potential in price target"
    )
    assert generate_reason(_raw(rating_to="Sell", action="downgraded by", target_to="$80")) == (
        "Caution advised - underperformance expected. "
        "Recently downgraded by analyst. "
        "Notable downside risk in price target"
    )


def test_generate_reason_single_phrase_and_fallback():
    assert generate_reason(_raw(rating_to="Hold", action="initiated by", target_to="$105")) == (
        "Stable performance expected"
    )
    assert generate_reason(_raw(rating_to="Peer Perform", action="reiterated by", target_to="$100")) == (
        FALLBACK_REASON
    )


def test_score_recommendation_pairs_score_and_reason():
    score, reason = score_recommendation(_raw(rating_to="Outperform", action="upgraded by", target_to="$100"))

    assert score == calculate_score(_raw(rating_to="Outperform", action="upgraded by", target_to="$100"))
    assert reason == "Expected to outperform the market. Recently upgraded by analyst"


def test_sell_downgrade_scores_low_at_ingest():
    raw = _raw(rating_from="Hold", rating_to="Sell", action="downgraded by", target_to="$50.00")

    assert 0.0 <= calculate_recommend_score(raw) <= 30.0


def test_unknown_target_contributes_neutral_price_score():
    raw = _raw(target_from="N/A")

    assert raw.target_from == 0.0
    assert price_target_score(raw.target_from, raw.target_to) == 50.0
    assert generate_reason(raw) == "Strong buy recommendation from analyst. Price target recently increased"


@pytest.mark.parametrize(
    "target_from, target_to, expected",
    [
        (8.0, 8.02, 50.13),
        (8.0, 8.1, 50.63),
        (8.0, 8.18, 51.13),
    ],
)
def test_recommend_score_rounds_half_cents_up(target_from, target_to, expected):
    raw = RawRating(rating_to="Hold", target_from=target_from, target_to=target_to)

    assert calculate_recommend_score(raw) == expected
