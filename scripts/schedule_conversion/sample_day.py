"""Sample-day selection for GTFS conversion.

A sample day decides which services of a feed end up in the schedule:

- a date in the format ``yyyymmdd``
- ``dayWithMostTrips`` (default)
- ``dayWithMostServices``
- ``all`` (every service id, no calendar filtering)

Matching is exact; no case folding or whitespace stripping is applied.
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass
from enum import Enum
from typing import Optional

# =============================================================================
# CONFIGURATION
# =============================================================================

DAY_WITH_MOST_TRIPS = "dayWithMostTrips"
DAY_WITH_MOST_SERVICES = "dayWithMostServices"
ALL_SERVICE_IDS = "all"

DEFAULT_SAMPLE_DAY = DAY_WITH_MOST_TRIPS

# =============================================================================
# TYPES
# =============================================================================


class InvalidSelectorError(ValueError):
    """Sample-day token is neither a known keyword nor a valid yyyymmdd date."""


class SampleDayKind(Enum):
    """The four ways of choosing services from a feed."""

    EXPLICIT_DATE = "date"
    DAY_WITH_MOST_TRIPS = DAY_WITH_MOST_TRIPS
    DAY_WITH_MOST_SERVICES = DAY_WITH_MOST_SERVICES
    ALL_SERVICES = ALL_SERVICE_IDS


@dataclass(frozen=True)
class SampleDay:
    """A resolved sample-day selector.

    ``date`` is set if and only if ``kind`` is ``EXPLICIT_DATE``.
    """

    kind: SampleDayKind
    date: Optional[datetime.date] = None

    def __post_init__(self) -> None:
        if (self.kind is SampleDayKind.EXPLICIT_DATE) != (self.date is not None):
            raise ValueError("A date is required for, and only for, EXPLICIT_DATE selectors.")

    @classmethod
    def explicit(cls, year: int, month: int, day: int) -> "SampleDay":
        return cls(SampleDayKind.EXPLICIT_DATE, datetime.date(year, month, day))

    @property
    def gtfs_date(self) -> Optional[str]:
        """The explicit date as a GTFS ``YYYYMMDD`` string."""
        return self.date.strftime("%Y%m%d") if self.date is not None else None

    def __str__(self) -> str:
        if self.kind is SampleDayKind.EXPLICIT_DATE:
            return self.gtfs_date or ""
        return self.kind.value


DAY_WITH_MOST_TRIPS_SELECTOR = SampleDay(SampleDayKind.DAY_WITH_MOST_TRIPS)
DAY_WITH_MOST_SERVICES_SELECTOR = SampleDay(SampleDayKind.DAY_WITH_MOST_SERVICES)
ALL_SERVICES_SELECTOR = SampleDay(SampleDayKind.ALL_SERVICES)

_SENTINELS: dict[str, SampleDay] = {
    DAY_WITH_MOST_TRIPS: DAY_WITH_MOST_TRIPS_SELECTOR,
    DAY_WITH_MOST_SERVICES: DAY_WITH_MOST_SERVICES_SELECTOR,
    ALL_SERVICE_IDS: ALL_SERVICES_SELECTOR,
}

# =============================================================================
# FUNCTIONS
# =============================================================================


def _parse_date_token(token: str) -> datetime.date:
    """Decompose a ``yyyymmdd`` token into a calendar date.

    Raises:
        ValueError: Wrong length, non-digit characters or impossible date.
    """
    if len(token) != 8 or not token.isascii() or not token.isdigit():
        raise ValueError(f"'{token}' is not an 8-digit yyyymmdd string.")
    return datetime.date(int(token[0:4]), int(token[4:6]), int(token[6:8]))


def resolve_selector(token: Optional[str]) -> SampleDay:
    """Validate and normalise a sample-day token.

    Args:
        token: One of ``dayWithMostTrips``, ``dayWithMostServices``, ``all``,
            a ``yyyymmdd`` date, or None.

    Returns:
        The matching :class:`SampleDay`. None resolves to the
        ``dayWithMostTrips`` default; it is never rejected.

    Raises:
        InvalidSelectorError: A non-null token that matches nothing.
    """
    if token is None:
        return _SENTINELS[DEFAULT_SAMPLE_DAY]

    sentinel = _SENTINELS.get(token)
    if sentinel is not None:
        return sentinel

    try:
        date = _parse_date_token(token)
    except ValueError as exc:
        raise InvalidSelectorError(
            f"Sample day parameter '{token}' not recognized! Allowed: date in format "
            f'"yyyymmdd", {DAY_WITH_MOST_SERVICES}, {DAY_WITH_MOST_TRIPS}, {ALL_SERVICE_IDS}'
        ) from exc
    return SampleDay(SampleDayKind.EXPLICIT_DATE, date)
