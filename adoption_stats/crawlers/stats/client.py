"""Resilient async JSON client shared by the download-count sources."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

import httpx
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from adoption_stats.config.settings import Settings, settings as default_settings
from adoption_stats.crawlers.stats.contracts import FetchResult, FetchState

logger = logging.getLogger(__name__)


class _RateLimitRetryableError(Exception):
    """Retryable rate-limit signal for tenacity."""


class StatsHttpClient:
    """Base async client: one ``httpx.AsyncClient`` per instance, failures as results."""

    source = "http"

    def __init__(
        self,
        *,
        config: Optional[Settings] = None,
        timeout_seconds: Optional[float] = None,
        max_retries: Optional[int] = None,
        backoff_base_seconds: Optional[float] = None,
        backoff_max_seconds: Optional[float] = None,
        transport: Optional[Any] = None,
    ) -> None:
        self._config = config or default_settings
        self._timeout_seconds = self._config.STATS_HTTP_TIMEOUT_SECONDS if timeout_seconds is None else timeout_seconds
        self._max_retries = self._config.STATS_HTTP_MAX_RETRIES if max_retries is None else max_retries
        self._backoff_base_seconds = (
            self._config.STATS_HTTP_BACKOFF_BASE_SECONDS if backoff_base_seconds is None else backoff_base_seconds
        )
        self._backoff_max_seconds = (
            self._config.STATS_HTTP_BACKOFF_MAX_SECONDS if backoff_max_seconds is None else backoff_max_seconds
        )
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        await self._ensure_client()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _request(self, url: str, *, params: Optional[dict[str, Any]] = None) -> FetchResult[Any]:
        client = await self._ensure_client()

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self._max_retries),
                wait=wait_exponential(multiplier=self._backoff_base_seconds, max=self._backoff_max_seconds),
                retry=retry_if_exception_type(_RateLimitRetryableError),
                reraise=True,
            ):
                with attempt:
                    response = await client.get(url, params=params)

                    if response.status_code == 429:
                        wait_seconds = self._retry_after_seconds(response.headers)
                        logger.warning(
                            "Stats API rate limit encountered",
                            extra={"source": self.source, "url": url, "retry_after_seconds": wait_seconds},
                        )
                        if wait_seconds > 0:
                            await asyncio.sleep(wait_seconds)
                        raise _RateLimitRetryableError(f"{self.source} rate limit encountered (429)")

                    response.raise_for_status()
                    try:
                        payload = response.json()
                    except ValueError as exc:
                        logger.warning(
                            "Stats API returned a non-JSON body",
                            extra={"source": self.source, "url": url, "error": str(exc)},
                        )
                        return FetchResult(
                            state=FetchState.MALFORMED,
                            source=self.source,
                            status_code=response.status_code,
                            error=f"Invalid JSON: {exc}",
                        )
                    return FetchResult(
                        state=FetchState.OK,
                        data=payload,
                        source=self.source,
                        status_code=response.status_code,
                    )
        except _RateLimitRetryableError as exc:
            logger.warning(
                "Stats request failed after rate-limit retries",
                extra={"source": self.source, "url": url, "error": str(exc)},
            )
            return FetchResult(state=FetchState.FAILED, source=self.source, status_code=429, error=str(exc))
        except httpx.HTTPError as exc:
            status_code = getattr(getattr(exc, "response", None), "status_code", None)
            logger.warning(
                "Stats request failed",
                extra={"source": self.source, "url": url, "error": str(exc), "status_code": status_code},
            )
            return FetchResult(state=FetchState.FAILED, source=self.source, status_code=status_code, error=str(exc))

        return FetchResult(state=FetchState.FAILED, source=self.source, error="Unknown stats request failure")

    async def _ensure_client(self) -> httpx.AsyncClient:
        if self._client:
            return self._client

        self._client = httpx.AsyncClient(
            headers={"Accept": "application/json", "User-Agent": self._config.USER_AGENT},
            timeout=self._timeout_seconds,
            transport=self._transport,
            follow_redirects=True,
        )
        return self._client

    def _retry_after_seconds(self, headers: httpx.Headers) -> float:
        retry_after = headers.get("retry-after")
        if retry_after is not None:
            try:
                return min(max(float(retry_after), 0.0), self._backoff_max_seconds)
            except ValueError:
                pass
        return 0.0
