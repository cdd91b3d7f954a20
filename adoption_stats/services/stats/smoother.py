"""Trailing moving average for daily series."""

from __future__ import annotations

from adoption_stats.services.stats.series import DailyPoint, TimeSeries, round_half_up


def moving_average(series: TimeSeries, window: int = 7) -> TimeSeries:
    """Average each point with up to ``window - 1`` preceding points.

    The first ``window - 1`` outputs average over the points available so far.
    """

    if window < 1:
        raise ValueError(f"window must be positive, got {window}")

    counts = [point.count for point in series]
    smoothed: list[DailyPoint] = []
    running = 0
    for index, point in enumerate(series):
        running += counts[index]
        if index >= window:
            running -= counts[index - window]
        size = min(window, index + 1)
        smoothed.append(DailyPoint(point.date, round_half_up(running / size)))
    return TimeSeries(tuple(smoothed))
