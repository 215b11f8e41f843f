"""Configuration models for the ingestion service."""

from __future__ import annotations

import json
from functools import lru_cache
from typing import Any, List, Literal, Optional

from pydantic import (
    Field,
    NonNegativeInt,
    PositiveInt,
    SecretStr,
    ValidationError,
    field_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

WritePolicy = Literal["continue", "abort"]


class Settings(BaseSettings):
    """Ingestion/API 공용 환경 설정."""

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )

    database_url: str = Field(
        "sqlite:///./var/storage/app.db",
        alias="DATABASE_URL",
        description="SQLAlchemy 연결 문자열.",
    )
    ratings_feed_base_url: str = Field(
        "https://api.karenai.click",
        alias="RATINGS_FEED_BASE_URL",
        description="애널리스트 레이팅 피드 베이스 URL.",
    )
    ratings_feed_path: str = Field(
        "/swechallenge/list",
        alias="RATINGS_FEED_PATH",
        description="레이팅 목록 엔드포인트 경로.",
    )
    ratings_feed_token: Optional[SecretStr] = Field(
        None, alias="RATINGS_FEED_TOKEN", description="피드 Bearer 토큰."
    )
    ratings_feed_timeout_seconds: PositiveInt = Field(
        30, alias="RATINGS_FEED_TIMEOUT_SECONDS", description="피드 HTTP 타임아웃(초)"
    )
    ratings_feed_max_retries: PositiveInt = Field(
        2, alias="RATINGS_FEED_MAX_RETRIES", description="페이지당 최대 시도 횟수"
    )
    ratings_feed_max_pages: PositiveInt = Field(
        100, alias="RATINGS_FEED_MAX_PAGES", description="한 번의 동기화에서 읽을 최대 페이지 수"
    )
    ratings_feed_channel_capacity: PositiveInt = Field(
        100,
        alias="RATINGS_FEED_CHANNEL_CAPACITY",
        description="producer/consumer 큐 용량.",
    )
    sync_batch_size: PositiveInt = Field(100, alias="SYNC_BATCH_SIZE", description="배치 저장 크기")
    sync_write_policy: WritePolicy = Field(
        "continue",
        alias="SYNC_WRITE_POLICY",
        description="배치 저장 실패 시 정책 (continue | abort).",
    )
    sync_timeout_seconds: Optional[PositiveInt] = Field(
        None, alias="SYNC_TIMEOUT_SECONDS", description="동기화 1회 제한 시간(초)"
    )
    sync_interval_minutes: NonNegativeInt = Field(
        0,
        alias="SYNC_INTERVAL_MINUTES",
        description="주기 동기화 간격(분). 0이면 비활성.",
    )
    basic_auth_user: str = Field("admin", alias="BASIC_AUTH_USER", description="sync 엔드포인트 사용자")
    basic_auth_password: SecretStr = Field(
        SecretStr("stockviewer2024"),
        alias="BASIC_AUTH_PASSWORD",
        description="sync 엔드포인트 비밀번호",
    )
    cors_allow_origins: str = Field(
        "*",
        alias="CORS_ALLOW_ORIGINS",
        description="JSON 배열 혹은 콤마 구분 문자열.",
    )
    celery_broker_url: str = Field(
        "redis://localhost:6379/0",
        alias="CELERY_BROKER_URL",
        description="Celery 브로커/백엔드 Redis DSN.",
    )
    celery_worker_concurrency: PositiveInt = Field(
        1,
        alias="CELERY_WORKER_CONCURRENCY",
        description="Celery 워커 동시 실행 수.",
    )
    celery_task_soft_time_limit: PositiveInt = Field(
        600,
        alias="CELERY_TASK_SOFT_TIME_LIMIT",
        description="Celery 태스크 소프트 타임아웃 (초).",
    )
    log_level: str = Field("INFO", alias="LOG_LEVEL", description="로그 레벨.")
    log_json: bool = Field(False, alias="LOG_JSON", description="로그를 JSON 형식으로 출력할지 여부.")

    @field_validator("database_url")
    @classmethod
    def _validate_database_url(cls, value: str) -> str:
        if "://" not in value:
            raise ValueError("DATABASE_URL은 유효한 DSN 문자열이어야 합니다.")
        return value

    @field_validator("ratings_feed_base_url")
    @classmethod
    def _strip_base_url(cls, value: str) -> str:
        base = value.strip().rstrip("/")
        if not base.startswith(("http://", "https://")):
            raise ValueError("RATINGS_FEED_BASE_URL은 http(s) URL이어야 합니다.")
        return base

    @field_validator("ratings_feed_path")
    @classmethod
    def _normalize_path(cls, value: str) -> str:
        path = value.strip()
        if not path.startswith("/"):
            path = "/" + path
        return path

    @field_validator("ratings_feed_max_retries")
    @classmethod
    def _validate_retries(cls, v: int) -> int:
        if v > 10:
            raise ValueError("RATINGS_FEED_MAX_RETRIES는 10 이하여야 합니다.")
        return v

    @field_validator("sync_write_policy", mode="before")
    @classmethod
    def _lower_policy(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("cors_allow_origins")
    @classmethod
    def _validate_origins(cls, value: str) -> str:
        text = value.strip()
        if text.startswith("["):
            try:
                parsed = json.loads(text)
            except json.JSONDecodeError as exc:
                raise ValueError("CORS_ALLOW_ORIGINS는 JSON 배열이어야 합니다.") from exc
            if not isinstance(parsed, list):
                raise ValueError("CORS_ALLOW_ORIGINS는 리스트 형태여야 합니다.")
        return text or "*"

    @property
    def cors_origins(self) -> List[str]:
        text = self.cors_allow_origins
        if text.startswith("["):
            return [str(item).strip() for item in json.loads(text) if str(item).strip()]
        return [part.strip() for part in text.split(",") if part.strip()]

    @property
    def ratings_feed_url(self) -> str:
        return f"{self.ratings_feed_base_url}{self.ratings_feed_path}"


@lru_cache()
def get_settings() -> Settings:
    """환경 변수를 기준으로 Settings 인스턴스를 반환한다."""
    try:
        return Settings()
    except ValidationError as exc:
        raise RuntimeError(f"환경 변수 검증에 실패했습니다: {exc}") from exc


def reset_settings_cache() -> None:
    """Settings LRU 캐시를 초기화한다 (테스트 용도)."""
    get_settings.cache_clear()  # type: ignore[attr-defined]
