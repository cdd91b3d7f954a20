"""jsDelivr CDN hit statistics client."""

from __future__ import annotations

import logging
import math
from typing import Any, Optional
from urllib.parse import quote

from dateutil import parser as date_parser

from adoption_stats.crawlers.stats.client import StatsHttpClient
from adoption_stats.crawlers.stats.contracts import SOURCE_JSDELIVR, FetchResult, FetchState, PointsResult
from adoption_stats.services.stats.range_planner import CdnToken
from adoption_stats.services.stats.series import DailyPoint, round_half_up

logger = logging.getLogger(__name__)


class JsDelivrStatsClient(StatsHttpClient):
    """Fetches per-day package hits for a jsDelivr period token.

    jsDelivr counts file requests, not installs. Each hit count is divided by
    ``hits_per_install`` so the values compare with npm download counts.
    """

    source = SOURCE_JSDELIVR

    def __init__(
        self,
        *,
        package: Optional[str] = None,
        base_url: Optional[str] = None,
        hits_per_install: Optional[float] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self._package = package or self._config.STATS_PACKAGE
        self._base_url = (base_url or self._config.JSDELIVR_BASE_URL).rstrip("/")
        self._hits_per_install = hits_per_install or self._config.STATS_CDN_HITS_PER_INSTALL

    async def fetch_cdn(self, token: CdnToken) -> PointsResult:
        url = f"{self._base_url}/{quote(self._package, safe='')}"
        response = await self._request(url, params={"period": token.period})
        if response.state != FetchState.OK:
            return FetchResult(
                state=response.state,
                source=self.source,
                token=token,
                status_code=response.status_code,
                error=response.error,
            )

        dates = self._extract_hit_dates(response.data)
        if dates is None:
            logger.warning(
                "jsDelivr response missing hits.dates",
                extra={"package": self._package, "period": token.period},
            )
            return FetchResult(
                state=FetchState.MALFORMED,
                data=[],
                source=self.source,
                token=token,
                status_code=response.status_code,
                error="Response has no hits.dates mapping",
            )

        points = self._to_points(dates)
        return FetchResult(
            state=FetchState.OK if points else FetchState.EMPTY,
            data=points,
            source=self.source,
            token=token,
            status_code=response.status_code,
        )

    @staticmethod
    def _extract_hit_dates(payload: Any) -> Optional[dict[str, Any]]:
        if not isinstance(payload, dict):
            return None
        hits = payload.get("hits")
        if not isinstance(hits, dict):
            return None
        dates = hits.get("dates")
        return dates if isinstance(dates, dict) else None

    def _to_points(self, dates: dict[str, Any]) -> list[DailyPoint]:
        points: list[DailyPoint] = []
        for raw_day, raw_hits in dates.items():
            try:
                day = date_parser.isoparse(str(raw_day)).date()
                hits = float(raw_hits)
                if not math.isfinite(hits) or hits < 0:
                    continue
                count = round_half_up(hits / self._hits_per_install)
            except (TypeError, ValueError, OverflowError):
                continue
            points.append(DailyPoint(day, count))
        return points
