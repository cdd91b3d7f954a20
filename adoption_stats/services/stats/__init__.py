"""Download-stats service helpers."""

from adoption_stats.services.stats.range_planner import (
    MAX_DAYS_PER_REQUEST,
    CurrentPartialMonth,
    DayRange,
    ExactMonth,
    Quarter,
    decompose_day_range,
    optimize_monthly_ranges,
)
from adoption_stats.services.stats.series import Bounds, DailyPoint, TimeSeries, to_chart_points
from adoption_stats.services.stats.smoother import moving_average

__all__ = [
    "MAX_DAYS_PER_REQUEST",
    "ExactMonth",
    "Quarter",
    "CurrentPartialMonth",
    "DayRange",
    "decompose_day_range",
    "optimize_monthly_ranges",
    "Bounds",
    "DailyPoint",
    "TimeSeries",
    "to_chart_points",
    "moving_average",
]
