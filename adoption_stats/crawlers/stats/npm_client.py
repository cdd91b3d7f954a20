"""npm registry downloads and publish-time client."""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Optional
from urllib.parse import quote

from dateutil import parser as date_parser

from adoption_stats.crawlers.stats.client import StatsHttpClient
from adoption_stats.crawlers.stats.contracts import SOURCE_NPM, FetchResult, FetchState, PointsResult
from adoption_stats.services.stats.publish_dates import extract_publish_dates
from adoption_stats.services.stats.range_planner import DayRange, decompose_day_range
from adoption_stats.services.stats.series import DailyPoint

logger = logging.getLogger(__name__)


class NpmStatsClient(StatsHttpClient):
    """Daily npm downloads by range, split to respect the API span limit."""

    source = SOURCE_NPM

    def __init__(
        self,
        *,
        package: Optional[str] = None,
        range_base_url: Optional[str] = None,
        registry_base_url: Optional[str] = None,
        max_days_per_request: Optional[int] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self._package = package or self._config.STATS_PACKAGE
        self._range_base_url = (range_base_url or self._config.NPM_RANGE_BASE_URL).rstrip("/")
        self._registry_base_url = (registry_base_url or self._config.NPM_REGISTRY_BASE_URL).rstrip("/")
        self._max_days = max_days_per_request or self._config.STATS_MAX_DAYS_PER_REQUEST

    async def fetch_registry(self, start: date, end: date) -> list[PointsResult]:
        """Fetch ``[start, end]`` as one result per sub-range, in range order."""

        results: list[PointsResult] = []
        for day_range in decompose_day_range(start, end, self._max_days):
            try:
                results.append(await self.fetch_range(day_range))
            except Exception as exc:
                logger.warning(
                    "Skipping npm range after unexpected error",
                    extra={"package": self._package, "range": f"{day_range.start}:{day_range.end}", "error": str(exc)},
                )
                results.append(FetchResult(state=FetchState.FAILED, source=self.source, token=day_range, error=str(exc)))
        return results

    async def fetch_range(self, day_range: DayRange) -> PointsResult:
        span = f"{day_range.start.isoformat()}:{day_range.end.isoformat()}"
        url = f"{self._range_base_url}/{span}/{quote(self._package, safe='')}"
        response = await self._request(url)
        if response.state != FetchState.OK:
            logger.warning(
                "Skipping npm range",
                extra={"package": self._package, "range": span, "error": response.error},
            )
            return FetchResult(
                state=response.state,
                source=self.source,
                token=day_range,
                status_code=response.status_code,
                error=response.error,
            )

        payload = response.data if isinstance(response.data, dict) else {}
        rows = payload.get("downloads")
        if not isinstance(rows, list):
            logger.warning(
                "npm range response missing downloads list",
                extra={"package": self._package, "range": span},
            )
            return FetchResult(
                state=FetchState.MALFORMED,
                data=[],
                source=self.source,
                token=day_range,
                status_code=response.status_code,
                error="Response has no downloads list",
            )

        points = self._to_points(rows)
        return FetchResult(
            state=FetchState.OK if points else FetchState.EMPTY,
            data=points,
            source=self.source,
            token=day_range,
            status_code=response.status_code,
        )

    async def fetch_publish_dates(self) -> FetchResult[dict[str, date]]:
        url = f"{self._registry_base_url}/{quote(self._package, safe='@')}"
        response = await self._request(url)
        if response.state != FetchState.OK:
            return FetchResult(state=response.state, source=self.source, status_code=response.status_code, error=response.error)

        payload = response.data if isinstance(response.data, dict) else {}
        times = payload.get("time")
        if not isinstance(times, dict):
            logger.warning("npm registry metadata missing time mapping", extra={"package": self._package})
            return FetchResult(
                state=FetchState.MALFORMED,
                data={},
                source=self.source,
                status_code=response.status_code,
                error="Response has no time mapping",
            )

        versions = extract_publish_dates(times)
        return FetchResult(
            state=FetchState.OK if versions else FetchState.EMPTY,
            data=versions,
            source=self.source,
            status_code=response.status_code,
        )

    @staticmethod
    def _to_points(rows: list[Any]) -> list[DailyPoint]:
        points: list[DailyPoint] = []
        for row in rows:
            if not isinstance(row, dict):
                continue
            day = row.get("day")
            downloads = row.get("downloads")
            if not isinstance(day, str) or downloads is None:
                continue
            try:
                points.append(DailyPoint(date_parser.isoparse(day).date(), int(downloads)))
            except (TypeError, ValueError, OverflowError):
                continue
        return points
