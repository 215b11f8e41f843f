"""Repository for persisted stock ratings."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, Protocol, Sequence

from sqlalchemy import ColumnElement, delete, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ingestion.db.models import StockRating
from ingestion.db.session import session_scope
from ingestion.errors import RatingNotFound, StorageError
from ingestion.models.domain import RatingRecord, StockFilter


class RatingRepository(Protocol):
    def save(self, record: RatingRecord) -> None: ...
    def save_batch(self, records: Sequence[RatingRecord]) -> None: ...
    def get_by_id(self, rating_id: str) -> RatingRecord: ...
    def get_by_ticker(self, ticker: str) -> list[RatingRecord]: ...
    def get_all(self, filter_: StockFilter) -> tuple[list[RatingRecord], int]: ...
    def get_top_recommended(self, limit: int) -> list[RatingRecord]: ...
    def search(self, query: str, limit: int) -> list[RatingRecord]: ...
    def delete(self, rating_id: str) -> None: ...
    def get_distinct_brokerages(self) -> list[str]: ...
    def get_distinct_ratings(self) -> list[str]: ...


_SORT_COLUMNS = {
    "ticker": StockRating.ticker,
    "company": StockRating.company,
    "brokerage": StockRating.brokerage,
    "recommend_score": StockRating.recommend_score,
    "created_at": StockRating.created_at,
    "updated_at": StockRating.updated_at,
}


def _like_pattern(term: str) -> str:
    escaped = term.lower().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _contains(column, term: str) -> ColumnElement[bool]:
    return func.lower(column).like(_like_pattern(term), escape="\\")


def to_record(row: StockRating) -> RatingRecord:
    return RatingRecord.model_validate(row)


def to_entity(record: RatingRecord) -> StockRating:
    entity = StockRating(
        id=record.id,
        ticker=record.ticker,
        company=record.company,
        brokerage=record.brokerage,
        action=record.action,
        rating_from=record.rating_from,
        rating_to=record.rating_to,
        target_from=record.target_from,
        target_to=record.target_to,
        recommend_score=record.recommend_score,
    )
    # unset timestamps fall back to the server defaults
    if record.created_at is not None:
        entity.created_at = record.created_at
    if record.updated_at is not None:
        entity.updated_at = record.updated_at
    return entity


class SqlRatingRepository:
    """SQLAlchemy implementation of :class:`RatingRepository`.

    Every SQLAlchemy failure is re-raised as :class:`StorageError` tagged with
    the operation name; lookups that find nothing raise :class:`RatingNotFound`.
    """

    def __init__(self, factory: sessionmaker[Session]) -> None:
        self._factory = factory

    @contextmanager
    def _scope(self, operation: str) -> Iterator[Session]:
        try:
            with session_scope(factory=self._factory) as session:
                yield session
        except SQLAlchemyError as exc:
            raise StorageError(operation, exc) from exc

    def save(self, record: RatingRecord) -> None:
        with self._scope("save") as session:
            session.merge(to_entity(record))

    def save_batch(self, records: Sequence[RatingRecord]) -> None:
        if not records:
            return
        with self._scope("save_batch") as session:
            for record in records:
                session.merge(to_entity(record))

    def get_by_id(self, rating_id: str) -> RatingRecord:
        with self._scope("get_by_id") as session:
            row = session.get(StockRating, rating_id)
            if row is None:
                raise RatingNotFound(rating_id)
            return to_record(row)

    def get_by_ticker(self, ticker: str) -> list[RatingRecord]:
        with self._scope("get_by_ticker") as session:
            rows = session.scalars(
                select(StockRating).where(StockRating.ticker == ticker)
            ).all()
            return [to_record(row) for row in rows]

    def get_all(self, filter_: StockFilter) -> tuple[list[RatingRecord], int]:
        stmt = select(StockRating)
        if filter_.ticker:
            stmt = stmt.where(_contains(StockRating.ticker, filter_.ticker))
        if filter_.company:
            stmt = stmt.where(_contains(StockRating.company, filter_.company))
        if filter_.brokerage:
            stmt = stmt.where(StockRating.brokerage == filter_.brokerage)
        if filter_.rating:
            stmt = stmt.where(StockRating.rating_to == filter_.rating)
        if filter_.action:
            stmt = stmt.where(StockRating.action == filter_.action)

        column = _SORT_COLUMNS[filter_.sort_by]
        order = column.asc() if filter_.sort_order == "asc" else column.desc()

        with self._scope("get_all") as session:
            total = session.scalar(select(func.count()).select_from(stmt.subquery())) or 0
            rows = session.scalars(
                stmt.order_by(order, StockRating.id)
                .offset(filter_.offset)
                .limit(filter_.page_size)
            ).all()
            return [to_record(row) for row in rows], int(total)

    def get_top_recommended(self, limit: int) -> list[RatingRecord]:
        with self._scope("get_top_recommended") as session:
            rows = session.scalars(
                select(StockRating)
                .order_by(StockRating.recommend_score.desc(), StockRating.id)
                .limit(limit)
            ).all()
            return [to_record(row) for row in rows]

    def search(self, query: str, limit: int) -> list[RatingRecord]:
        with self._scope("search") as session:
            rows = session.scalars(
                select(StockRating)
                .where(
                    or_(
                        _contains(StockRating.ticker, query),
                        _contains(StockRating.company, query),
                    )
                )
                .order_by(StockRating.recommend_score.desc(), StockRating.id)
                .limit(limit)
            ).all()
            return [to_record(row) for row in rows]

    def delete(self, rating_id: str) -> None:
        with self._scope("delete") as session:
            result = session.execute(delete(StockRating).where(StockRating.id == rating_id))
            if result.rowcount == 0:
                raise RatingNotFound(rating_id)

    def get_distinct_brokerages(self) -> list[str]:
        return self._distinct("get_distinct_brokerages", StockRating.brokerage)

    def get_distinct_ratings(self) -> list[str]:
        return self._distinct("get_distinct_ratings", StockRating.rating_to)

    def _distinct(self, operation: str, column) -> list[str]:
        with self._scope(operation) as session:
            values = session.scalars(
                select(column).where(column != "").distinct().order_by(column)
            ).all()
            return list(values)
