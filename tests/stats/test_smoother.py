from __future__ import annotations

from datetime import date, timedelta

import pytest

from adoption_stats.services.stats.publish_dates import extract_publish_dates
from adoption_stats.services.stats.series import DailyPoint, TimeSeries, round_half_up, to_chart_points
from adoption_stats.services.stats.smoother import moving_average


def daily(counts: list[int], start: date = date(2024, 7, 1)) -> TimeSeries:
    return TimeSeries(tuple(DailyPoint(start + timedelta(days=index), count) for index, count in enumerate(counts)))


def test_moving_average_grows_window_then_trails() -> None:
    source = daily([10, 20, 30, 40, 50])

    smoothed = moving_average(source, window=3)

    assert [point.count for point in smoothed] == [10, 15, 20, 30, 40]
    assert [point.date for point in smoothed] == [point.date for point in source]


def test_moving_average_default_window_and_rounding() -> None:
    source = daily([1, 2, 0, 0, 0, 0, 0, 7, 7])

    smoothed = moving_average(source)

    assert smoothed.points[0].count == 1
    assert smoothed.points[1].count == 2  # 1.5 rounds up
    assert smoothed.points[7].count == 1  # (2 + 7) / 7
    assert len(smoothed) == len(source)


def test_moving_average_edge_cases() -> None:
    assert moving_average(TimeSeries()) == TimeSeries()
    with pytest.raises(ValueError):
        moving_average(daily([1]), window=0)


def test_series_rejects_duplicate_or_unordered_dates_and_negative_counts() -> None:
    with pytest.raises(ValueError):
        TimeSeries((DailyPoint(date(2024, 7, 2), 1), DailyPoint(date(2024, 7, 1), 1)))
    with pytest.raises(ValueError):
        TimeSeries((DailyPoint(date(2024, 7, 1), 1), DailyPoint(date(2024, 7, 1), 2)))
    with pytest.raises(ValueError):
        DailyPoint(date(2024, 7, 1), -1)


def test_chart_points_use_utc_midnight_epoch_millis() -> None:
    assert to_chart_points(daily([5, 10])) == [[1719792000000, 5], [1719878400000, 10]]
    assert round_half_up(2.5) == 3
    assert round_half_up(2.49) == 2


def test_publish_dates_exclude_lifecycle_keys_and_bad_timestamps() -> None:
    times = {
        "created": "2024-01-01T00:00:00.000Z",
        "modified": "2024-06-01T00:00:00.000Z",
        "1.0.0": "2024-03-01T10:00:00.000Z",
        "1.1.0": "2024-05-02T23:59:00Z",
        "1.2.0-beta": "not a date",
        "1.3.0": None,
    }

    assert extract_publish_dates(times) == {"1.0.0": date(2024, 3, 1), "1.1.0": date(2024, 5, 2)}
