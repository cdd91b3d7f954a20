"""Download-stats report entrypoints."""

from __future__ import annotations

import re
from datetime import date
from typing import Any

from dateutil import parser as date_parser

from adoption_stats.orchestrator_stats import StatsPipeline, smooth_result
from adoption_stats.services.stats.range_planner import add_months, month_end, month_start, parse_month
from adoption_stats.services.stats.series import to_chart_points

_DAY_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def parse_window_bound(raw: str, *, end: bool) -> date:
    """Parse ``YYYY-MM`` or ``YYYY-MM-DD``; a month means its first or last day."""
    text = str(raw).strip()
    if _DAY_PATTERN.match(text):
        try:
            return date_parser.isoparse(text).date()
        except ValueError as exc:
            raise ValueError(f"Invalid date string: {raw!r}") from exc

    first = parse_month(text)
    return month_end(first) if end else first


def default_window(today: date, months: int = 6) -> tuple[date, date]:
    """The last ``months`` calendar months, current month included."""
    current = month_start(today)
    return add_months(current, -(max(months, 1) - 1)), month_end(current)


def parse_window(from_value: Any, to_value: Any, *, today: date, default_months: int = 6) -> tuple[date, date]:
    """Resolve optional window bounds; missing bounds fall back to the default window."""
    default_from, default_to = default_window(today, default_months)
    from_date = parse_window_bound(from_value, end=False) if from_value else default_from
    to_date = parse_window_bound(to_value, end=True) if to_value else default_to
    if from_date > to_date:
        raise ValueError(f"Window start {from_date.isoformat()} is after window end {to_date.isoformat()}")
    return from_date, to_date


async def run_stats_report(
    *,
    pipeline: StatsPipeline | None = None,
    from_value: Any = None,
    to_value: Any = None,
    include_versions: bool = True,
) -> dict[str, Any]:
    """Run the pipeline and shape raw, averaged and version data for charting."""
    report_pipeline = pipeline or StatsPipeline()
    config = report_pipeline.config
    from_date, to_date = parse_window(
        from_value,
        to_value,
        today=report_pipeline.today(),
        default_months=config.STATS_DEFAULT_MONTHS,
    )

    result = await report_pipeline.run(from_date, to_date)
    averages = smooth_result(result, config.STATS_MOVING_AVERAGE_WINDOW)
    versions = await report_pipeline.collect_publish_dates() if include_versions else {}

    return {
        "package": config.STATS_PACKAGE,
        "from": from_date.isoformat(),
        "to": to_date.isoformat(),
        "state": result.state.value,
        "series": {
            "npm": {
                "raw": to_chart_points(result.registry_series),
                "average": to_chart_points(averages["npm"]),
            },
            "jsdelivr": {
                "raw": to_chart_points(result.cdn_series),
                "average": to_chart_points(averages["jsdelivr"]),
            },
        },
        "versions": {version: day.isoformat() for version, day in sorted(versions.items(), key=lambda item: item[1])},
        "stats": result.stats,
        "errors": result.errors,
        "started_at": result.started_at,
        "completed_at": result.completed_at,
    }
