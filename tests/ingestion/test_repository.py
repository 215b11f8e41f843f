from __future__ import annotations

from datetime import datetime, timezone

import pytest
from sqlalchemy.exc import OperationalError

from factories import raw_item
from ingestion.errors import RatingNotFound, StorageError
from ingestion.models.domain import RatingRecord, RawRating, StockFilter
from ingestion.repositories.ratings import SqlRatingRepository
from ingestion.services.identity import derive_rating_id


def _record(score: float = 50.0, **overrides) -> RatingRecord:
    raw = RawRating.model_validate(raw_item(**overrides))
    return RatingRecord(**raw.model_dump(), id=derive_rating_id(raw), recommend_score=score)


def test_save_and_get_by_id_roundtrip(repository: SqlRatingRepository):
    record = _record(score=72.5)

    repository.save(record)
    stored = repository.get_by_id(record.id)

    assert stored.ticker == "AAPL"
    assert stored.target_to == 150.0
    assert stored.recommend_score == 72.5
    assert stored.created_at is not None


def test_get_by_id_missing_raises_not_found(repository: SqlRatingRepository):
    with pytest.raises(RatingNotFound):
        repository.get_by_id("0" * 32)


def test_save_batch_upserts_by_id(repository: SqlRatingRepository):
    created = datetime(2025, 1, 1, tzinfo=timezone.utc)
    record = _record(score=10.0).model_copy(update={"created_at": created, "updated_at": created})
    repository.save_batch([record])

    repository.save_batch([record.model_copy(update={"recommend_score": 90.0})])

    records, total = repository.get_all(StockFilter())
    assert total == 1
    assert records[0].recommend_score == 90.0
    assert records[0].created_at.replace(tzinfo=None) == created.replace(tzinfo=None)


def test_get_all_paginates(repository: SqlRatingRepository):
    repository.save_batch([_record(score=s, ticker=t) for s, t in ((80, "AAA"), (70, "BBB"), (60, "CCC"))])

    first, total = repository.get_all(StockFilter(page=1, page_size=2))
    second, _ = repository.get_all(StockFilter(page=2, page_size=2))

    assert total == 3
    assert [r.ticker for r in first] == ["AAA", "BBB"]
    assert [r.ticker for r in second] == ["CCC"]


def test_get_all_filters_and_sorts(repository: SqlRatingRepository):
    repository.save_batch(
        [
            _record(score=40, ticker="AAPL", brokerage="Goldman Sachs"),
            _record(score=60, ticker="MSFT", company="Microsoft", brokerage="Morgan Stanley"),
            _record(score=50, ticker="AMZN", company="Amazon.com", brokerage="Goldman Sachs", rating_to="Sell"),
        ]
    )

    by_brokerage, total = repository.get_all(
        StockFilter(brokerage="Goldman Sachs", sort_by="ticker", sort_order="asc")
    )
    assert total == 2
    assert [r.ticker for r in by_brokerage] == ["AAPL", "AMZN"]

    by_ticker, _ = repository.get_all(StockFilter(ticker="ms"))
    assert [r.ticker for r in by_ticker] == ["MSFT"]

    by_rating, _ = repository.get_all(StockFilter(rating="Sell"))
    assert [r.ticker for r in by_rating] == ["AMZN"]


def test_search_matches_ticker_or_company(repository: SqlRatingRepository):
    repository.save_batch(
        [
            _record(score=40, ticker="AAPL", company="Apple Inc."),
            _record(score=60, ticker="MSFT", company="Microsoft"),
            _record(score=70, ticker="APLE", company="Apple Hospitality"),
        ]
    )

    results = repository.search("apple", 10)

    assert [r.ticker for r in results] == ["APLE", "AAPL"]
    assert repository.search("apple", 1)[0].ticker == "APLE"
    assert repository.search("100%", 10) == []


def test_top_recommended_orders_by_score(repository: SqlRatingRepository):
    repository.save_batch([_record(score=s, ticker=t) for s, t in ((30, "LOW"), (90, "TOP"), (60, "MID"))])

    assert [r.ticker for r in repository.get_top_recommended(2)] == ["TOP", "MID"]


def test_get_by_ticker_and_delete(repository: SqlRatingRepository):
    keep = _record(ticker="AAPL", brokerage="Citi")
    drop = _record(ticker="AAPL", brokerage="UBS")
    repository.save_batch([keep, drop])

    assert len(repository.get_by_ticker("AAPL")) == 2

    repository.delete(drop.id)
    assert [r.id for r in repository.get_by_ticker("AAPL")] == [keep.id]

    with pytest.raises(RatingNotFound):
        repository.delete(drop.id)


def test_distinct_values_skip_empty(repository: SqlRatingRepository):
    repository.save_batch(
        [
            _record(ticker="A", brokerage="UBS", rating_to="Buy"),
            _record(ticker="B", brokerage="Citi", rating_to=""),
            _record(ticker="C", brokerage="", rating_to="Buy"),
        ]
    )

    assert repository.get_distinct_brokerages() == ["Citi", "UBS"]
    assert repository.get_distinct_ratings() == ["Buy"]


def test_sqlalchemy_errors_become_storage_errors(repository: SqlRatingRepository, monkeypatch):
    def _boom(*_args, **_kwargs):
        raise OperationalError("SELECT 1", {}, Exception("database is locked"))

    monkeypatch.setattr("sqlalchemy.orm.Session.get", _boom)

    with pytest.raises(StorageError) as exc:
        repository.get_by_id("abc")

    assert exc.value.operation == "get_by_id"
    assert exc.value.kind == "storage_failure"


def test_long_free_text_values_are_stored_intact(repository: SqlRatingRepository):
    ticker = "BRK.B-" + "X" * 40
    action = "price target reaffirmed after quarterly review by " + "analyst " * 20
    record = _record(ticker=ticker, action=action, rating_to="Sector Outperform / Top Pick " * 5)

    repository.save_batch([record])
    stored = repository.get_by_id(record.id)

    assert stored.ticker == ticker
    assert stored.action == action
    assert stored.rating_to == record.rating_to
