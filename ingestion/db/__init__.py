"""Database utilities for the ratings service."""

from .models import Base, StockRating  # noqa: F401
from .session import get_engine, get_sessionmaker, init_db, session_scope  # noqa: F401

__all__ = [
    "Base",
    "StockRating",
    "get_engine",
    "get_sessionmaker",
    "init_db",
    "session_scope",
]
