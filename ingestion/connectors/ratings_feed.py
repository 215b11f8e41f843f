"""Analyst ratings feed connector (provider-injected for tests/offline)."""

from __future__ import annotations

from typing import Any, Callable, Dict, Optional

import httpx

from ingestion.settings import Settings, get_settings

from .base import BaseConnector, PermanentError, TransientError

ProviderFn = Callable[[Optional[str]], Dict[str, Any]]


class RatingsFeedConnector(BaseConnector):
    """Connector for the paginated analyst-ratings list endpoint.

    - provider 주입 시: 오프라인 모드 (페이지 dict를 그대로 반환)
    - provider 미주입 시: 실제 HTTP 호출 (Bearer 토큰, ``next_page`` 커서)
    """

    source = "ratings_feed"

    def __init__(
        self,
        provider: Optional[ProviderFn] = None,
        *,
        settings: Optional[Settings] = None,
        client: Optional[httpx.Client] = None,
    ) -> None:
        cfg = settings or get_settings()
        super().__init__(
            max_attempts=int(cfg.ratings_feed_max_retries),
            max_pages=int(cfg.ratings_feed_max_pages),
            capacity=int(cfg.ratings_feed_channel_capacity),
        )
        self._provider = provider
        self._settings = cfg
        self._client = client

    def _fetch_page(self, cursor: Optional[str]) -> Dict[str, Any]:
        if self._provider is not None:
            return self._provider(cursor)

        cfg = self._settings
        if not cfg.ratings_feed_token:
            raise PermanentError("RATINGS_FEED_TOKEN이 설정되지 않았습니다.", service=self.source)

        headers = {
            "Authorization": f"Bearer {cfg.ratings_feed_token.get_secret_value()}",
            "Content-Type": "application/json",
        }
        params = {"next_page": cursor} if cursor else None
        try:
            if self._client is not None:
                resp = self._client.get(cfg.ratings_feed_url, headers=headers, params=params)
            else:
                resp = httpx.get(
                    cfg.ratings_feed_url,
                    headers=headers,
                    params=params,
                    timeout=float(cfg.ratings_feed_timeout_seconds),
                )
        except httpx.TimeoutException as exc:
            raise TransientError("ratings feed timeout", service=self.source) from exc
        except httpx.HTTPError as exc:
            raise TransientError(f"ratings feed request failed: {exc}", service=self.source) from exc

        if resp.status_code == 429 or resp.status_code >= 500:
            raise TransientError(
                f"unexpected status code: {resp.text[:200]}",
                service=self.source,
                status_code=resp.status_code,
            )
        if resp.status_code >= 400:
            raise PermanentError(
                f"unexpected status code: {resp.text[:200]}",
                service=self.source,
                status_code=resp.status_code,
            )

        try:
            return resp.json()
        except ValueError as exc:
            raise PermanentError(f"error parsing response: {exc}", service=self.source) from exc


def default_connector(settings: Optional[Settings] = None) -> RatingsFeedConnector:
    return RatingsFeedConnector(settings=settings)
