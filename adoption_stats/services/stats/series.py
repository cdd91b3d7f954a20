"""Daily download series value types."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from typing import Iterable, Iterator


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for non-negative counts."""
    return int(math.floor(value + 0.5))


@dataclass(frozen=True, slots=True)
class DailyPoint:
    """A download count for one calendar day."""

    date: date
    count: int

    def __post_init__(self) -> None:
        if self.count < 0:
            raise ValueError(f"Negative count for {self.date.isoformat()}: {self.count}")


@dataclass(frozen=True, slots=True)
class Bounds:
    """Inclusive date window requested by the caller."""

    from_date: date
    to_date: date

    def __post_init__(self) -> None:
        if self.from_date > self.to_date:
            raise ValueError(f"Window start {self.from_date} is after window end {self.to_date}")

    def contains(self, day: date) -> bool:
        return self.from_date <= day <= self.to_date


@dataclass(frozen=True, slots=True)
class TimeSeries:
    """Strictly ascending, date-unique sequence of daily points."""

    points: tuple[DailyPoint, ...] = ()

    def __post_init__(self) -> None:
        for previous, current in zip(self.points, self.points[1:]):
            if current.date <= previous.date:
                raise ValueError(
                    f"Series dates must be strictly ascending: {previous.date} then {current.date}"
                )

    @classmethod
    def from_points(cls, points: Iterable[DailyPoint]) -> "TimeSeries":
        """Build a series from unique-dated points in any order."""
        return cls(tuple(sorted(points, key=lambda point: point.date)))

    def __iter__(self) -> Iterator[DailyPoint]:
        return iter(self.points)

    def __len__(self) -> int:
        return len(self.points)

    def __bool__(self) -> bool:
        return bool(self.points)

    @property
    def first_date(self) -> date | None:
        return self.points[0].date if self.points else None

    @property
    def last_date(self) -> date | None:
        return self.points[-1].date if self.points else None

    def as_dict(self) -> dict[date, int]:
        return {point.date: point.count for point in self.points}


def to_chart_points(series: TimeSeries) -> list[list[int]]:
    """Convert a series to ``[epoch_millis, count]`` pairs at UTC midnight."""
    pairs: list[list[int]] = []
    for point in series:
        midnight = datetime.combine(point.date, time.min, tzinfo=timezone.utc)
        pairs.append([int(midnight.timestamp() * 1000), point.count])
    return pairs
