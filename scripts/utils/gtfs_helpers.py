"""Shared GTFS loading and calendar helpers.

Reads the text tables of an unzipped GTFS folder into pandas DataFrames
and expands ``calendar.txt`` / ``calendar_dates.txt`` into the concrete
dates each ``service_id`` runs on.
"""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Mapping, Sequence
from typing import Any, Optional, cast

import pandas as pd

# =============================================================================
# CONFIGURATION
# =============================================================================

REQUIRED_GTFS_FILES: tuple[str, ...] = (
    "agency.txt",
    "stops.txt",
    "routes.txt",
    "trips.txt",
    "stop_times.txt",
)

OPTIONAL_GTFS_FILES: tuple[str, ...] = (
    "calendar.txt",
    "calendar_dates.txt",
    "shapes.txt",
    "frequencies.txt",
    "transfers.txt",
)

WEEKDAY_COLUMNS: tuple[str, ...] = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)

_TIME_RE = re.compile(r"^(\d{1,3}):(\d{2}):(\d{2})$")

LOGGER = logging.getLogger(__name__)

# =============================================================================
# FUNCTIONS
# =============================================================================


def load_gtfs_data(
    gtfs_folder_path: str,
    files: Optional[Sequence[str]] = None,
    dtype: str | type[str] | Mapping[str, Any] = str,
) -> dict[str, pd.DataFrame]:
    """Load one or more GTFS text files into memory.

    Args:
        gtfs_folder_path: Absolute or relative path to the folder
            containing the GTFS feed.
        files: Explicit sequence of file names to load. If ``None``,
            the required GTFS tables are attempted.
        dtype: Value forwarded to :pyfunc:`pandas.read_csv(dtype=…)` to
            control column dtypes. Supply a mapping for per-column dtypes.

    Returns:
        Mapping of file stem → :class:`pandas.DataFrame`; for example,
        ``data["trips"]`` holds the parsed *trips.txt* table.

    Raises:
        OSError: Folder missing or one of *files* not present.
        ValueError: Empty file or CSV parser failure.
        RuntimeError: Generic OS error while reading a file.

    Notes:
        All columns default to ``str`` to avoid pandas’ type-inference
        pitfalls (e.g. leading zeros in IDs).
    """
    if not os.path.isdir(gtfs_folder_path):
        raise OSError(f"The directory '{gtfs_folder_path}' does not exist.")

    if files is None:
        files = REQUIRED_GTFS_FILES

    missing = [
        file_name
        for file_name in files
        if not os.path.exists(os.path.join(gtfs_folder_path, file_name))
    ]
    if missing:
        raise OSError(f"Missing GTFS files in '{gtfs_folder_path}': {', '.join(missing)}")

    data: dict[str, pd.DataFrame] = {}
    for file_name in files:
        key = file_name.replace(".txt", "")
        file_path = os.path.join(gtfs_folder_path, file_name)
        try:
            df = pd.read_csv(
                file_path,
                dtype=cast("Any", dtype),
                low_memory=False,
                skipinitialspace=True,
                encoding="utf-8-sig",
            )
            df.columns = [str(col).strip() for col in df.columns]
            data[key] = df
            LOGGER.info("Loaded %s (%d records).", file_name, len(df))

        except pd.errors.EmptyDataError as exc:
            raise ValueError(f"File '{file_name}' in '{gtfs_folder_path}' is empty.") from exc

        except pd.errors.ParserError as exc:
            raise ValueError(
                f"Parser error in '{file_name}' in '{gtfs_folder_path}': {exc}"
            ) from exc

        except OSError as exc:
            raise RuntimeError(
                f"OS error reading file '{file_name}' in '{gtfs_folder_path}': {exc}"
            ) from exc

    return data


def load_gtfs_feed(gtfs_folder_path: str) -> dict[str, pd.DataFrame]:
    """Load the required GTFS tables plus whichever optional ones exist.

    Raises:
        OSError: Folder or a required table missing, or neither
            ``calendar.txt`` nor ``calendar_dates.txt`` present.
    """
    data = load_gtfs_data(gtfs_folder_path, files=REQUIRED_GTFS_FILES)

    present = [
        name
        for name in OPTIONAL_GTFS_FILES
        if os.path.exists(os.path.join(gtfs_folder_path, name))
    ]
    if present:
        data.update(load_gtfs_data(gtfs_folder_path, files=present))

    if "calendar" not in data and "calendar_dates" not in data:
        raise OSError(
            f"GTFS folder '{gtfs_folder_path}' has neither calendar.txt nor calendar_dates.txt."
        )
    return data


def parse_gtfs_time(value: Optional[str]) -> Optional[int]:
    """Convert a GTFS ``HH:MM:SS`` string into seconds after midnight.

    Hours of 24 or more are kept (``'25:10:00'`` → 90600). Blank or
    missing values return None.

    Raises:
        ValueError: The value is not blank and not a GTFS time.
    """
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return None
    text = str(value).strip()
    if not text:
        return None
    m = _TIME_RE.match(text)
    if not m:
        raise ValueError(f"Invalid GTFS time '{value}'.")
    h, mm, ss = (int(g) for g in m.groups())
    return h * 3600 + mm * 60 + ss


def format_seconds(seconds: float) -> str:
    """Format seconds after midnight as ``HH:MM:SS`` (24 h-plus safe)."""
    secs = int(round(seconds))
    hours, rest = divmod(secs, 3600)
    mins, secs = divmod(rest, 60)
    return f"{hours:02d}:{mins:02d}:{secs:02d}"


def build_service_calendar(
    calendar_df: Optional[pd.DataFrame],
    calendar_dates_df: Optional[pd.DataFrame],
) -> dict[str, set[str]]:
    """Merge calendar and calendar_dates into active-date sets per service_id.

    Dates are ``YYYYMMDD`` strings. Either table may be None.
    """
    svc_dates: dict[str, set[str]] = {}

    if calendar_df is not None:
        calendar_df = calendar_df.copy()
        calendar_df["service_id"] = calendar_df["service_id"].astype(str)
        for row in calendar_df.itertuples(index=False):
            start = pd.to_datetime(str(row.start_date).strip(), format="%Y%m%d")
            end = pd.to_datetime(str(row.end_date).strip(), format="%Y%m%d")
            rng = pd.date_range(start, end)

            # rng.dayofweek maps Monday=0, Sunday=6
            days_active = [str(getattr(row, col)).strip() == "1" for col in WEEKDAY_COLUMNS]
            mask = [days_active[d] for d in rng.dayofweek]
            svc_dates.setdefault(row.service_id, set()).update(rng[mask].strftime("%Y%m%d"))

    if calendar_dates_df is not None:
        calendar_dates_df = calendar_dates_df.copy()
        calendar_dates_df["service_id"] = calendar_dates_df["service_id"].astype(str)
        for cd in calendar_dates_df.itertuples(index=False):
            svc_set = svc_dates.setdefault(cd.service_id, set())
            exception_type = str(cd.exception_type).strip()
            if exception_type == "1":
                svc_set.add(str(cd.date).strip())
            elif exception_type == "2":
                svc_set.discard(str(cd.date).strip())

    return svc_dates
