"""A loaded GTFS feed and its service calendar.

Resolves a :class:`SampleDay` into the set of ``service_id`` values whose
trips are converted.
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Optional

import pandas as pd

from scripts.schedule_conversion.sample_day import SampleDay, SampleDayKind
from scripts.utils.gtfs_helpers import build_service_calendar, load_gtfs_feed

LOGGER = logging.getLogger(__name__)


class GtfsFeed:
    """GTFS tables of one unzipped feed folder, loaded as strings."""

    def __init__(self, tables: dict[str, pd.DataFrame]):
        self.tables = tables
        trips = tables["trips"].copy()
        trips["service_id"] = trips["service_id"].astype(str)
        self.trips = trips
        self.service_calendar = build_service_calendar(
            tables.get("calendar"), tables.get("calendar_dates")
        )

    @classmethod
    def from_folder(cls, gtfs_folder: str) -> "GtfsFeed":
        return cls(load_gtfs_feed(gtfs_folder))

    def table(self, name: str) -> Optional[pd.DataFrame]:
        return self.tables.get(name)

    # -------------------------------------------------------------------------
    # Calendar look-ups
    # -------------------------------------------------------------------------

    def _services_by_date(self) -> dict[str, set[str]]:
        by_date: dict[str, set[str]] = {}
        for service_id, dates in self.service_calendar.items():
            for date in dates:
                by_date.setdefault(date, set()).add(service_id)
        return by_date

    def service_ids_on(self, date: str) -> set[str]:
        """Return the services active on *date* (``YYYYMMDD``)."""
        return {sid for sid, dates in self.service_calendar.items() if date in dates}

    def all_service_ids(self) -> set[str]:
        return set(self.trips["service_id"].unique())

    def day_with_most_trips(self) -> Optional[str]:
        """Return the date on which the most trips run, earliest on ties."""
        trips_per_service = Counter(self.trips["service_id"])
        best_date, best_count = None, -1
        for date, services in sorted(self._services_by_date().items()):
            count = sum(trips_per_service.get(sid, 0) for sid in services)
            if count > best_count:
                best_date, best_count = date, count
        if best_date is not None:
            LOGGER.info("Day with most trips: %s (%d trips).", best_date, best_count)
        return best_date

    def day_with_most_services(self) -> Optional[str]:
        """Return the date with the most active service ids, earliest on ties."""
        best_date, best_count = None, -1
        for date, services in sorted(self._services_by_date().items()):
            if len(services) > best_count:
                best_date, best_count = date, len(services)
        if best_date is not None:
            LOGGER.info("Day with most services: %s (%d services).", best_date, best_count)
        return best_date

    def service_ids_for(self, sample_day: SampleDay) -> set[str]:
        """Return the service ids selected by *sample_day*."""
        if sample_day.kind is SampleDayKind.ALL_SERVICES:
            service_ids = self.all_service_ids()
            LOGGER.info("Using all %d service ids.", len(service_ids))
            return service_ids

        if sample_day.kind is SampleDayKind.DAY_WITH_MOST_TRIPS:
            date = self.day_with_most_trips()
        elif sample_day.kind is SampleDayKind.DAY_WITH_MOST_SERVICES:
            date = self.day_with_most_services()
        else:
            date = sample_day.gtfs_date

        if date is None:
            LOGGER.warning("No active service dates in feed calendar.")
            return set()

        service_ids = self.service_ids_on(date)
        if not service_ids:
            LOGGER.warning("No services found on %s.", date)
        else:
            LOGGER.info("Using %d service id(s) active on %s.", len(service_ids), date)
        return service_ids
