from __future__ import annotations

import pytest

from scripts.schedule_conversion.gtfs_feed import GtfsFeed
from scripts.schedule_conversion.sample_day import resolve_selector


@pytest.fixture
def feed(gtfs_dir) -> GtfsFeed:
    return GtfsFeed.from_folder(gtfs_dir)


def test_service_ids_on_weekday_and_holiday(feed) -> None:
    assert feed.service_ids_on("20240102") == {"WKD"}
    assert feed.service_ids_on("20240106") == {"SAT", "XTRA"}
    # WKD removed on New Year's Day, nothing else runs
    assert feed.service_ids_on("20240101") == set()


def test_day_with_most_trips_is_earliest_busiest_date(feed) -> None:
    """All weekdays carry 4 trips; ties go to the earliest date."""
    assert feed.day_with_most_trips() == "20240102"


def test_day_with_most_services(feed) -> None:
    assert feed.day_with_most_services() == "20240106"


@pytest.mark.parametrize(
    ("token", "expected"),
    [
        ("dayWithMostTrips", {"WKD"}),
        ("dayWithMostServices", {"SAT", "XTRA"}),
        ("all", {"WKD", "SAT", "SUN", "XTRA"}),
        ("20240107", {"SUN"}),
    ],
)
def test_service_ids_for_selector(feed, token: str, expected: set[str]) -> None:
    assert feed.service_ids_for(resolve_selector(token)) == expected


def test_date_without_service_warns(feed, caplog) -> None:
    with caplog.at_level("WARNING"):
        assert feed.service_ids_for(resolve_selector("20240101")) == set()
    assert "No services found on 20240101" in caplog.text


def test_date_outside_calendar_is_empty(feed) -> None:
    assert feed.service_ids_for(resolve_selector("20250101")) == set()
