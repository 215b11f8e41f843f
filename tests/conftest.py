from __future__ import annotations

import sys
from pathlib import Path

import pytest

TESTS_ROOT = Path(__file__).resolve().parent
ROOT = TESTS_ROOT.parent

for path in (ROOT, TESTS_ROOT):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

from ingestion.db.session import get_sessionmaker, init_db  # noqa: E402
from ingestion.repositories.ratings import SqlRatingRepository  # noqa: E402
from ingestion.settings import Settings, reset_settings_cache  # noqa: E402


@pytest.fixture(autouse=True)
def _reset_settings_cache():
    reset_settings_cache()
    yield
    reset_settings_cache()


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'ratings.db'}",
        ratings_feed_base_url="https://feed.example.com",
        ratings_feed_token="test-token",
        ratings_feed_max_retries=3,
        basic_auth_user="admin",
        basic_auth_password="s3cret",
    )


@pytest.fixture()
def repository(settings: Settings) -> SqlRatingRepository:
    init_db(settings)
    return SqlRatingRepository(get_sessionmaker(settings))
