"""Query planning for upstream download-count sources.

jsDelivr only answers fixed periods (a calendar month, a calendar quarter or the
rolling current month), while the npm range API answers arbitrary day ranges up to
a maximum span. The helpers here turn a requested window into the ordered list of
query units each source accepts, keeping the request count low.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Union

MAX_DAYS_PER_REQUEST = 360

_MONTH_PATTERN = re.compile(r"^(\d{4})-(\d{2})$")


@dataclass(frozen=True, slots=True)
class ExactMonth:
    """One closed calendar month."""

    year: int
    month: int

    @property
    def start(self) -> date:
        return date(self.year, self.month, 1)

    @property
    def end(self) -> date:
        return month_end(self.start)

    @property
    def period(self) -> str:
        return format_month(self.start)


@dataclass(frozen=True, slots=True)
class Quarter:
    """One fixed calendar quarter (Jan-Mar, Apr-Jun, Jul-Sep, Oct-Dec)."""

    year: int
    quarter: int

    @property
    def start(self) -> date:
        return date(self.year, 3 * self.quarter - 2, 1)

    @property
    def end(self) -> date:
        return month_end(date(self.year, 3 * self.quarter, 1))

    @property
    def period(self) -> str:
        return f"{self.year}-Q{self.quarter}"


@dataclass(frozen=True, slots=True)
class CurrentPartialMonth:
    """The live month, requested through the rolling ``month`` period."""

    year: int
    month: int

    @property
    def start(self) -> date:
        return date(self.year, self.month, 1)

    @property
    def end(self) -> date:
        return month_end(self.start)

    @property
    def period(self) -> str:
        return "month"

    def whole_month(self) -> ExactMonth:
        return ExactMonth(self.year, self.month)


@dataclass(frozen=True, slots=True)
class DayRange:
    """An explicit inclusive day range."""

    start: date
    end: date

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1


RangeToken = Union[ExactMonth, Quarter, CurrentPartialMonth, DayRange]
CdnToken = Union[ExactMonth, Quarter, CurrentPartialMonth]


def parse_month(value: str) -> date:
    """Parse ``YYYY-MM`` into the first day of that month."""
    match = _MONTH_PATTERN.match(value.strip())
    if not match:
        raise ValueError(f"Invalid month string: {value!r}")
    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        raise ValueError(f"Invalid month string: {value!r}")
    return date(year, month, 1)


def format_month(day: date) -> str:
    return f"{day.year:04d}-{day.month:02d}"


def month_start(day: date) -> date:
    return day.replace(day=1)


def add_months(day: date, months: int) -> date:
    """Return the first day of the month ``months`` away from ``day``'s month."""
    index = day.year * 12 + (day.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)


def month_end(day: date) -> date:
    return add_months(day, 1) - timedelta(days=1)


def quarter_of(day: date) -> int:
    return (day.month - 1) // 3 + 1


def decompose_day_range(start: date, end: date, max_days: int = MAX_DAYS_PER_REQUEST) -> list[DayRange]:
    """Split ``[start, end]`` into ascending, gap-free ranges of at most ``max_days`` days."""

    if start > end:
        raise ValueError(f"Range start {start} is after range end {end}")
    if max_days < 1:
        raise ValueError(f"max_days must be positive, got {max_days}")

    ranges: list[DayRange] = []
    cursor = start
    while cursor <= end:
        stop = min(cursor + timedelta(days=max_days - 1), end)
        ranges.append(DayRange(cursor, stop))
        cursor = stop + timedelta(days=1)
    return ranges


def optimize_monthly_ranges(from_month: date, to_month: date, current_month: date) -> list[CdnToken]:
    """Plan jsDelivr periods for ``[from_month, to_month]``.

    Closed calendar quarters lying fully inside the window collapse into one
    ``Quarter`` token. A quarter that sticks out of the window or holds the current
    month is emitted month by month, with the current month as
    ``CurrentPartialMonth``.
    """

    first = month_start(from_month)
    last = month_start(to_month)
    live = month_start(current_month)

    tokens: list[CdnToken] = []
    cursor = first
    while cursor <= last:
        quarter = quarter_of(cursor)
        quarter_first = date(cursor.year, 3 * quarter - 2, 1)
        quarter_months = [add_months(quarter_first, offset) for offset in range(3)]

        if quarter_first >= first and quarter_months[-1] <= last and live not in quarter_months:
            tokens.append(Quarter(cursor.year, quarter))
            cursor = add_months(quarter_first, 3)
            continue

        if cursor == live:
            tokens.append(CurrentPartialMonth(cursor.year, cursor.month))
        else:
            tokens.append(ExactMonth(cursor.year, cursor.month))
        cursor = add_months(cursor, 1)

    return tokens
