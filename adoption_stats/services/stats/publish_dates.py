"""Version publish dates from npm registry metadata."""

from __future__ import annotations

from datetime import date
from functools import reduce
from typing import Any, Mapping

from dateutil import parser as date_parser

LIFECYCLE_KEYS = frozenset({"created", "modified"})


def _fold_publish_date(acc: dict[str, date], item: tuple[str, Any]) -> dict[str, date]:
    version, raw = item
    if version in LIFECYCLE_KEYS or not isinstance(raw, str):
        return acc
    try:
        acc[version] = date_parser.isoparse(raw).date()
    except (TypeError, ValueError):
        pass
    return acc


def extract_publish_dates(times: Mapping[str, Any]) -> dict[str, date]:
    """Map each published version to its UTC publish day.

    ``created`` and ``modified`` describe the package document itself, not a
    release, and are left out. Unparsable timestamps are skipped.
    """
    return reduce(_fold_publish_date, times.items(), {})
