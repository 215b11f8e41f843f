import json

import pytest

from ingestion.settings import Settings, get_settings, reset_settings_cache


def _set_env(monkeypatch, **overrides):
    defaults = {
        "DATABASE_URL": "sqlite:///./var/test.db",
        "RATINGS_FEED_BASE_URL": "https://feed.example.com/",
        "RATINGS_FEED_TOKEN": "secret-token",
    }
    defaults.update(overrides)
    for key, value in defaults.items():
        monkeypatch.setenv(key, value)


def test_get_settings_reads_environment(monkeypatch):
    _set_env(monkeypatch, SYNC_BATCH_SIZE="25", SYNC_WRITE_POLICY="ABORT")

    settings = get_settings()

    assert settings.database_url == "sqlite:///./var/test.db"
    assert settings.ratings_feed_token and settings.ratings_feed_token.get_secret_value() == "secret-token"
    assert settings.ratings_feed_url == "https://feed.example.com/swechallenge/list"
    assert settings.sync_batch_size == 25
    assert settings.sync_write_policy == "abort"


def test_defaults_cover_optional_values(monkeypatch):
    _set_env(monkeypatch)

    settings = get_settings()

    assert settings.basic_auth_user == "admin"
    assert settings.basic_auth_password.get_secret_value() == "stockviewer2024"
    assert settings.sync_interval_minutes == 0
    assert settings.sync_timeout_seconds is None
    assert settings.cors_origins == ["*"]


def test_reset_settings_cache_reloads(monkeypatch):
    _set_env(monkeypatch, RATINGS_FEED_TOKEN="first-token")
    first = get_settings()
    assert first.ratings_feed_token.get_secret_value() == "first-token"

    monkeypatch.setenv("RATINGS_FEED_TOKEN", "next-token")
    assert get_settings().ratings_feed_token.get_secret_value() == "first-token"

    reset_settings_cache()
    assert get_settings().ratings_feed_token.get_secret_value() == "next-token"


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("http://a.test, http://b.test", ["http://a.test", "http://b.test"]),
        (json.dumps(["http://a.test", " "]), ["http://a.test"]),
    ],
)
def test_cors_origins_accepts_list_formats(raw, expected):
    settings = Settings(cors_allow_origins=raw)

    assert settings.cors_origins == expected


def test_invalid_database_url_raises(monkeypatch):
    _set_env(monkeypatch, DATABASE_URL="not-a-dsn")

    with pytest.raises(RuntimeError) as exc:
        get_settings()

    assert "DATABASE_URL" in str(exc.value)


def test_retry_ceiling_is_enforced(monkeypatch):
    _set_env(monkeypatch, RATINGS_FEED_MAX_RETRIES="11")

    with pytest.raises(RuntimeError):
        get_settings()
