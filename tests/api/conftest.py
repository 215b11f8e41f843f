from __future__ import annotations

import importlib

import pytest
from fastapi.testclient import TestClient

from factories import paged_provider, raw_item
from ingestion.connectors.ratings_feed import RatingsFeedConnector
from ingestion.services.sync import SyncGuard
from ingestion.settings import reset_settings_cache

FEED_PAGES = [
    [
        raw_item(ticker="AAPL", company="Apple Inc."),
        raw_item(ticker="MSFT", company="Microsoft", brokerage="Morgan Stanley", rating_to="Overweight"),
    ],
    [
        raw_item(
            ticker="F",
            company="Ford Motor",
            brokerage="UBS",
            action="downgraded by",
            rating_from="Buy",
            rating_to="Sell",
            target_from="$14.00",
            target_to="$9.00",
        )
    ],
]


@pytest.fixture()
def api_main(settings, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", settings.database_url)
    reset_settings_cache()
    return importlib.import_module("api.main")


@pytest.fixture()
def auth() -> tuple[str, str]:
    return ("admin", "s3cret")


@pytest.fixture()
def guard() -> SyncGuard:
    return SyncGuard()


@pytest.fixture()
def client(api_main, settings, repository, guard) -> TestClient:
    connector = RatingsFeedConnector(provider=paged_provider(FEED_PAGES), settings=settings)
    app = api_main.create_app(settings, repository=repository, connector=connector, guard=guard)
    return TestClient(app)


@pytest.fixture()
def synced_client(client, auth) -> TestClient:
    response = client.post("/api/v1/sync", auth=auth)
    assert response.status_code == 200
    return client
