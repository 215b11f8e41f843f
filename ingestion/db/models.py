"""SQLAlchemy models for ingested analyst ratings."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Float, Index, String, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for ORM models."""


class TimestampMixin:
    """Adds created_at/updated_at columns."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )


class StockRating(TimestampMixin, Base):
    """One analyst rating, keyed by its content fingerprint."""

    __tablename__ = "stock_ratings"
    __table_args__ = (
        Index("ix_stock_ratings_ticker", "ticker"),
        Index("ix_stock_ratings_recommend_score", "recommend_score"),
    )

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    ticker: Mapped[str] = mapped_column(Text, nullable=False)
    company: Mapped[str] = mapped_column(Text, nullable=False)
    brokerage: Mapped[str] = mapped_column(Text, nullable=False, default="")
    action: Mapped[str] = mapped_column(Text, nullable=False, default="")
    rating_from: Mapped[str] = mapped_column(Text, nullable=False, default="")
    rating_to: Mapped[str] = mapped_column(Text, nullable=False, default="")
    target_from: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    target_to: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    recommend_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
