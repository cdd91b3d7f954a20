"""Typed fetch contracts shared by the download-count clients."""

from __future__ import annotations

import enum
from dataclasses import dataclass, replace
from typing import Generic, Optional, TypeVar

from adoption_stats.services.stats.range_planner import RangeToken
from adoption_stats.services.stats.series import DailyPoint

T = TypeVar("T")

SOURCE_JSDELIVR = "jsdelivr"
SOURCE_NPM = "npm"


class FetchState(str, enum.Enum):
    """Outcome of a single upstream query unit."""

    OK = "ok"
    EMPTY = "empty"
    MALFORMED = "malformed"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class FetchResult(Generic[T]):
    """Result of one query unit; anything but ``OK`` may be incomplete."""

    state: FetchState
    data: Optional[T] = None
    source: Optional[str] = None
    token: Optional[RangeToken] = None
    status_code: Optional[int] = None
    error: Optional[str] = None
    fallback_used: bool = False

    @property
    def is_ok(self) -> bool:
        return self.state == FetchState.OK

    @property
    def is_failed(self) -> bool:
        return self.state == FetchState.FAILED

    def with_data(self, data: T, **changes) -> "FetchResult[T]":
        return replace(self, data=data, **changes)


PointsResult = FetchResult[list[DailyPoint]]
