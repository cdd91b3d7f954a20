"""Merge, fallback and bounding rules for per-source download series."""

from __future__ import annotations

import logging
from datetime import date
from typing import Awaitable, Callable, Iterable, Sequence

from adoption_stats.crawlers.stats.contracts import FetchResult, FetchState, PointsResult
from adoption_stats.services.stats.range_planner import CurrentPartialMonth, ExactMonth
from adoption_stats.services.stats.series import Bounds, DailyPoint, TimeSeries

logger = logging.getLogger(__name__)

WholeMonthFetcher = Callable[[ExactMonth], Awaitable[PointsResult]]


def merge_first_wins(results: Sequence[FetchResult]) -> TimeSeries:
    """Merge results in the given order; the first value seen for a date is kept.

    Callers pass results in plan order, so the outcome does not depend on which
    concurrent fetch finished first. Failed results contribute nothing.
    """

    merged: dict[date, DailyPoint] = {}
    for result in results:
        if result.is_failed or not result.data:
            continue
        for point in result.data:
            if point.date not in merged:
                merged[point.date] = point
    return TimeSeries.from_points(merged.values())


def is_degenerate(points: Iterable[DailyPoint]) -> bool:
    return all(point.count == 0 for point in points)


async def fallback_on_degenerate_range(result: PointsResult, refetch_whole_month: WholeMonthFetcher) -> PointsResult:
    """Replace an all-zero rolling-month fetch with the calendar-month fetch.

    The rolling ``month`` period covers the last thirty days or so, which reach
    back into the previous month. Its points are first narrowed to the token's own
    month, and only those days are checked. jsDelivr reports zeros for them until
    it has indexed the month; in that case the calendar month is fetched instead
    and narrowed the same way. If the refetch fails too, the narrowed original is
    kept.
    """

    token = result.token
    if not isinstance(token, CurrentPartialMonth):
        return result
    if result.state not in (FetchState.OK, FetchState.EMPTY):
        return result

    original = result.data or []
    own_days = _within(original, token.start, token.end)
    if len(own_days) != len(original):
        result = result.with_data(own_days, state=FetchState.OK if own_days else FetchState.EMPTY)
    if not is_degenerate(own_days):
        return result

    logger.warning(
        "Degenerate rolling-month result, refetching calendar month",
        extra={"source": result.source, "period": token.period, "month": token.whole_month().period},
    )
    whole = await refetch_whole_month(token.whole_month())
    if whole.is_failed:
        logger.warning(
            "Calendar-month fallback failed, keeping rolling-month result",
            extra={"source": result.source, "month": token.whole_month().period, "error": whole.error},
        )
        return result

    narrowed = _within(whole.data or [], token.start, token.end)
    return result.with_data(
        narrowed,
        state=FetchState.OK if narrowed else FetchState.EMPTY,
        status_code=whole.status_code,
        fallback_used=True,
    )


def _within(points: Iterable[DailyPoint], start: date, end: date) -> list[DailyPoint]:
    return [point for point in points if start <= point.date <= end]


def clamp(series: TimeSeries, from_date: date, to_date: date) -> TimeSeries:
    """Drop points outside ``[from_date, to_date]``."""

    if not series or (series.first_date >= from_date and series.last_date <= to_date):
        return series
    bounds = Bounds(from_date, to_date)
    return TimeSeries(tuple(point for point in series if bounds.contains(point.date)))


def cross_source_upper_bound(registry_series: TimeSeries, cdn_series: TimeSeries) -> TimeSeries:
    """Cut npm points dated after the latest jsDelivr day.

    jsDelivr updates faster, so its last day is the newest date both sources can
    be compared on. With no jsDelivr data there is no such date and nothing is kept.
    """

    frontier = cdn_series.last_date
    if frontier is None:
        return TimeSeries()
    if registry_series.last_date is None or registry_series.last_date <= frontier:
        return registry_series
    return TimeSeries(tuple(point for point in registry_series if point.date <= frontier))
