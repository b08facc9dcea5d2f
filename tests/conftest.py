from __future__ import annotations

import shutil
from pathlib import Path

import pytest

FIXTURE_GTFS = Path(__file__).parent / "fixtures" / "gtfs"


@pytest.fixture
def gtfs_dir() -> str:
    """Path to the read-only toy feed.

    January 2024: WKD runs Mon-Fri except New Year's Day, SAT on Saturdays,
    SUN on Sundays, XTRA only on Sat 6 Jan. Weekdays have the most trips (4);
    6 Jan has the most services (SAT + XTRA).
    """
    return str(FIXTURE_GTFS)


@pytest.fixture
def gtfs_copy(tmp_path) -> Path:
    """A writable copy of the toy feed for tests that add or edit tables."""
    target = tmp_path / "gtfs"
    shutil.copytree(FIXTURE_GTFS, target)
    return target
