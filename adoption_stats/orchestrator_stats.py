"""Download-stats pipeline: plan, fetch, reconcile and clamp both sources."""

from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Callable, Optional, Sequence

from adoption_stats.config.settings import Settings, settings as default_settings
from adoption_stats.crawlers.stats.contracts import (
    SOURCE_JSDELIVR,
    SOURCE_NPM,
    FetchResult,
    FetchState,
    PointsResult,
)
from adoption_stats.crawlers.stats.jsdelivr_client import JsDelivrStatsClient
from adoption_stats.crawlers.stats.npm_client import NpmStatsClient
from adoption_stats.services.stats.range_planner import CdnToken, optimize_monthly_ranges
from adoption_stats.services.stats.reconciler import (
    clamp,
    cross_source_upper_bound,
    fallback_on_degenerate_range,
    merge_first_wins,
)
from adoption_stats.services.stats.series import Bounds, TimeSeries
from adoption_stats.services.stats.smoother import moving_average

logger = logging.getLogger(__name__)


class PipelineState(str, enum.Enum):
    PLAN = "plan"
    FETCH = "fetch"
    RECONCILE = "reconcile"
    CLAMP = "clamp"
    DONE = "done"


@dataclass(slots=True)
class StatsRunResult:
    """Clamped raw series for both sources plus run bookkeeping."""

    bounds: Bounds
    cdn_series: TimeSeries = field(default_factory=TimeSeries)
    registry_series: TimeSeries = field(default_factory=TimeSeries)
    state: PipelineState = PipelineState.PLAN
    stats: dict[str, Any] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)
    started_at: str = ""
    completed_at: Optional[str] = None


class StatsPipeline:
    """Builds the jsDelivr and npm daily series for one window.

    Each call to :meth:`run` is independent. A failed query unit is logged and
    left out; the run still completes with whatever data survived.
    """

    def __init__(
        self,
        *,
        config: Optional[Settings] = None,
        cdn_client_factory: Optional[Callable[[], Any]] = None,
        registry_client_factory: Optional[Callable[[], Any]] = None,
        today: Optional[date] = None,
        concurrency: Optional[int] = None,
    ) -> None:
        self._config = config or default_settings
        self._cdn_client_factory = cdn_client_factory or (lambda: JsDelivrStatsClient(config=self._config))
        self._registry_client_factory = registry_client_factory or (lambda: NpmStatsClient(config=self._config))
        self._today = today
        self._concurrency = max(1, concurrency or self._config.STATS_FETCH_CONCURRENCY)

    @property
    def config(self) -> Settings:
        return self._config

    def today(self) -> date:
        return self._today or datetime.now(timezone.utc).date()

    async def run(self, from_date: date, to_date: date) -> StatsRunResult:
        result = StatsRunResult(
            bounds=Bounds(from_date, to_date),
            started_at=datetime.now(timezone.utc).isoformat(),
        )
        logger.info(
            "Stats pipeline run started",
            extra={"package": self._config.STATS_PACKAGE, "from": from_date.isoformat(), "to": to_date.isoformat()},
        )

        tokens = optimize_monthly_ranges(from_date, to_date, self.today())
        result.stats["cdn_tokens"] = [token.period for token in tokens]

        result.state = PipelineState.FETCH
        async with self._cdn_client_factory() as cdn_client:
            cdn_results = await self._fetch_cdn_tokens(cdn_client, tokens)
        async with self._registry_client_factory() as registry_client:
            registry_results = await self._fetch_registry(registry_client, from_date, to_date)

        self._record_source(result, SOURCE_JSDELIVR, cdn_results)
        self._record_source(result, SOURCE_NPM, registry_results)
        result.stats["fallbacks"] = sum(1 for item in cdn_results if item.fallback_used)

        result.state = PipelineState.RECONCILE
        cdn_series = merge_first_wins(cdn_results)
        registry_series = merge_first_wins(registry_results)

        result.state = PipelineState.CLAMP
        result.cdn_series = clamp(cdn_series, from_date, to_date)
        bounded = cross_source_upper_bound(registry_series, result.cdn_series)
        result.registry_series = clamp(bounded, from_date, to_date)
        result.stats["cdn_points"] = len(result.cdn_series)
        result.stats["registry_points"] = len(result.registry_series)
        result.stats["registry_points_beyond_frontier"] = len(registry_series) - len(bounded)

        result.state = PipelineState.DONE
        result.completed_at = datetime.now(timezone.utc).isoformat()
        logger.info(
            "Stats pipeline run completed",
            extra={
                "package": self._config.STATS_PACKAGE,
                "cdn_points": len(result.cdn_series),
                "registry_points": len(result.registry_series),
                "errors": result.errors,
            },
        )
        return result

    async def collect_publish_dates(self) -> dict[str, date]:
        """Version publish days for chart annotations; empty when unavailable."""
        async with self._registry_client_factory() as registry_client:
            response: FetchResult[dict[str, date]] = await registry_client.fetch_publish_dates()
        if not response.is_ok:
            logger.warning(
                "Publish dates unavailable",
                extra={"package": self._config.STATS_PACKAGE, "state": response.state.value, "error": response.error},
            )
            return {}
        return dict(response.data or {})

    async def _fetch_cdn_tokens(self, client: Any, tokens: Sequence[CdnToken]) -> list[PointsResult]:
        semaphore = asyncio.Semaphore(self._concurrency)

        async def fetch(token: CdnToken) -> PointsResult:
            async with semaphore:
                try:
                    fetched = await client.fetch_cdn(token)
                    return await fallback_on_degenerate_range(fetched, client.fetch_cdn)
                except Exception as exc:
                    logger.warning(
                        "Skipping jsDelivr period after unexpected error",
                        extra={"period": token.period, "error": str(exc)},
                    )
                    return FetchResult(state=FetchState.FAILED, source=SOURCE_JSDELIVR, token=token, error=str(exc))

        # gather keeps submission order, which is the merge order
        return list(await asyncio.gather(*(fetch(token) for token in tokens)))

    @staticmethod
    async def _fetch_registry(client: Any, from_date: date, to_date: date) -> list[PointsResult]:
        try:
            return list(await client.fetch_registry(from_date, to_date))
        except Exception as exc:
            logger.warning(
                "Skipping npm downloads after unexpected error",
                extra={"from": from_date.isoformat(), "to": to_date.isoformat(), "error": str(exc)},
            )
            return [FetchResult(state=FetchState.FAILED, source=SOURCE_NPM, error=str(exc))]

    @staticmethod
    def _record_source(result: StatsRunResult, source: str, fetched: Sequence[PointsResult]) -> None:
        failed = [item for item in fetched if item.is_failed]
        malformed = [item for item in fetched if item.state == FetchState.MALFORMED]
        result.stats[source] = {
            "units": len(fetched),
            "failed": len(failed),
            "malformed": len(malformed),
        }
        for item in failed + malformed:
            result.errors.append(f"{source} {_describe_token(item)}: {item.error or item.state.value}")


def smooth_result(result: StatsRunResult, window: int = 7) -> dict[str, TimeSeries]:
    """Moving averages of both raw series, keyed by source."""
    return {
        SOURCE_JSDELIVR: moving_average(result.cdn_series, window),
        SOURCE_NPM: moving_average(result.registry_series, window),
    }


def _describe_token(item: PointsResult) -> str:
    token = item.token
    if token is None:
        return "window"
    period = getattr(token, "period", None)
    if period is not None:
        return period
    return f"{token.start.isoformat()}:{token.end.isoformat()}"
