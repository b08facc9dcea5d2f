from __future__ import annotations

from pathlib import Path
from typing import Iterable

import pandas as pd
import pytest

from scripts.utils.gtfs_helpers import (
    build_service_calendar,
    format_seconds,
    load_gtfs_data,
    load_gtfs_feed,
    parse_gtfs_time,
)

FIXTURE_GTFS = Path(__file__).parent / "fixtures" / "gtfs"


def _mk_gtfs_dir(tmp_path, files: Iterable[tuple[str, str]]) -> str:
    """Create a minimal GTFS folder with (name, contents) pairs."""
    base = tmp_path / "gtfs"
    base.mkdir()
    for name, contents in files:
        (base / name).write_text(contents, encoding="utf-8")
    return str(base)


# -----------------------------------------------------------------------------
# load_gtfs_data / load_gtfs_feed
# -----------------------------------------------------------------------------


def test_load_gtfs_data_keeps_leading_zeros(tmp_path) -> None:
    """Keys are file stems; default dtype=str keeps ids like '001' intact."""
    folder = _mk_gtfs_dir(
        tmp_path,
        files=[
            ("stops.txt", "stop_id,stop_name,stop_lat,stop_lon\n001,Main,38.9,-77.0\n"),
            ("trips.txt", "route_id,service_id,trip_id\n10,WKD,10A\n"),
        ],
    )

    result = load_gtfs_data(folder, files=("stops.txt", "trips.txt"))

    assert set(result.keys()) == {"stops", "trips"}
    assert result["stops"].loc[0, "stop_id"] == "001"


def test_load_gtfs_data_strips_bom_and_header_spaces(tmp_path) -> None:
    """A UTF-8 BOM and blanks after commas do not leak into column names."""
    folder = _mk_gtfs_dir(
        tmp_path,
        files=[("routes.txt", "\ufeffroute_id, route_type\nR1, 3\n")],
    )

    routes = load_gtfs_data(folder, files=("routes.txt",))["routes"]

    assert list(routes.columns) == ["route_id", "route_type"]
    assert routes.loc[0, "route_type"] == "3"


def test_load_gtfs_data_missing_folder_raises(tmp_path) -> None:
    """Missing directory → OSError with the path in the message."""
    missing = tmp_path / "no_such_folder"
    with pytest.raises(OSError) as excinfo:
        load_gtfs_data(str(missing), files=("stops.txt",))
    assert str(missing) in str(excinfo.value)


def test_load_gtfs_data_missing_file_detection(tmp_path) -> None:
    folder = _mk_gtfs_dir(tmp_path, files=[("stops.txt", "stop_id,stop_name\n001,Main\n")])
    with pytest.raises(OSError) as excinfo:
        load_gtfs_data(folder, files=("stops.txt", "trips.txt"))
    msg = str(excinfo.value)
    assert "Missing GTFS files" in msg and "trips.txt" in msg


def test_load_gtfs_data_empty_file_raises(tmp_path) -> None:
    folder = _mk_gtfs_dir(tmp_path, files=[("stops.txt", "")])
    with pytest.raises(ValueError, match="empty"):
        load_gtfs_data(folder, files=("stops.txt",))


def test_load_gtfs_data_parser_error_raises(tmp_path: Path) -> None:
    """Malformed CSV (unclosed quote) → ValueError wrapping pandas ParserError."""
    folder = _mk_gtfs_dir(tmp_path, files=[("trips.txt", 'route_id,service_id,trip_id\n10,"WKD,10A\n')])
    with pytest.raises(ValueError) as excinfo:
        load_gtfs_data(folder, files=("trips.txt",))
    msg = str(excinfo.value)
    assert "Parser error" in msg and "trips.txt" in msg


def test_load_gtfs_feed_reads_optional_tables() -> None:
    data = load_gtfs_feed(str(FIXTURE_GTFS))

    for name in ("agency", "stops", "routes", "trips", "stop_times"):
        assert name in data
    assert {"calendar", "calendar_dates", "shapes", "transfers"} <= set(data)
    assert "frequencies" not in data
    assert len(data["trips"]) == 7


def test_load_gtfs_feed_requires_a_calendar(tmp_path) -> None:
    """A feed with neither calendar table cannot pick services."""
    folder = _mk_gtfs_dir(
        tmp_path,
        files=[
            ("agency.txt", "agency_id,agency_name\nA,Agency\n"),
            ("stops.txt", "stop_id,stop_name,stop_lat,stop_lon\nS1,Main,47.0,8.0\n"),
            ("routes.txt", "route_id,route_type\nR1,3\n"),
            ("trips.txt", "route_id,service_id,trip_id\nR1,WKD,T1\n"),
            ("stop_times.txt", "trip_id,arrival_time,departure_time,stop_id,stop_sequence\n"),
        ],
    )
    with pytest.raises(OSError, match="calendar"):
        load_gtfs_feed(folder)


# -----------------------------------------------------------------------------
# Times
# -----------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("text", "seconds"),
    [("00:00:00", 0), ("06:05:30", 21930), (" 7:00:00", 25200), ("25:10:00", 90600)],
)
def test_parse_gtfs_time(text: str, seconds: int) -> None:
    assert parse_gtfs_time(text) == seconds


def test_parse_gtfs_time_blank_is_none() -> None:
    assert parse_gtfs_time(None) is None
    assert parse_gtfs_time("") is None
    assert parse_gtfs_time(float("nan")) is None


def test_parse_gtfs_time_rejects_garbage() -> None:
    with pytest.raises(ValueError, match="Invalid GTFS time"):
        parse_gtfs_time("7am")


def test_format_seconds_past_midnight() -> None:
    assert format_seconds(0) == "00:00:00"
    assert format_seconds(90600) == "25:10:00"


# -----------------------------------------------------------------------------
# Service calendar
# -----------------------------------------------------------------------------


def test_build_service_calendar_applies_exceptions() -> None:
    """Weekday flags span the date range; exception 2 removes, 1 adds."""
    calendar = pd.DataFrame(
        {
            "service_id": ["WKD"],
            "monday": ["1"], "tuesday": ["1"], "wednesday": ["1"], "thursday": ["1"],
            "friday": ["1"], "saturday": ["0"], "sunday": ["0"],
            "start_date": ["20240101"], "end_date": ["20240107"],
        }
    )
    calendar_dates = pd.DataFrame(
        {
            "service_id": ["WKD", "XTRA"],
            "date": ["20240101", "20240106"],
            "exception_type": ["2", "1"],
        }
    )

    svc = build_service_calendar(calendar, calendar_dates)

    assert svc["WKD"] == {"20240102", "20240103", "20240104", "20240105"}
    assert svc["XTRA"] == {"20240106"}


def test_build_service_calendar_dates_only() -> None:
    calendar_dates = pd.DataFrame(
        {"service_id": ["S"], "date": ["20240301"], "exception_type": ["1"]}
    )
    assert build_service_calendar(None, calendar_dates) == {"S": {"20240301"}}
