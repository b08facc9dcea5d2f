from __future__ import annotations

import logging

import pandas as pd
import pytest

from scripts.schedule_conversion import gtfs_converter
from scripts.schedule_conversion import gtfs_to_transit_schedule as target
from scripts.schedule_conversion.sample_day import InvalidSelectorError


def _outputs(tmp_path):
    return (
        str(tmp_path / "schedule.xml"),
        str(tmp_path / "vehicles.xml"),
        str(tmp_path / "shape_ref.csv"),
    )


def test_run_writes_all_three_outputs(gtfs_dir, tmp_path) -> None:
    schedule, vehicles, shape_ref = _outputs(tmp_path)

    target.run(gtfs_dir, "dayWithMostTrips", "EPSG:2056", schedule, vehicles, shape_ref)

    assert (tmp_path / "schedule.xml").exists()
    assert (tmp_path / "vehicles.xml").exists()
    assert len(pd.read_csv(shape_ref)) == 3


def test_unresolvable_crs_skips_only_shape_reference(gtfs_dir, tmp_path, caplog) -> None:
    """An unknown output CRS degrades the run instead of failing it."""
    schedule, vehicles, shape_ref = _outputs(tmp_path)

    with caplog.at_level(logging.WARNING):
        target.run(gtfs_dir, "dayWithMostTrips", "not-a-crs", schedule, vehicles, shape_ref)

    assert (tmp_path / "schedule.xml").exists()
    assert (tmp_path / "vehicles.xml").exists()
    assert not (tmp_path / "shape_ref.csv").exists()
    warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
    assert any("not-a-crs" in r.getMessage() for r in warnings)
    assert any("Shape reference file not written" in r.getMessage() for r in warnings)


def test_mandatory_params_only_write_schedule(gtfs_dir, tmp_path, monkeypatch) -> None:
    def _not_called(*args, **kwargs):
        pytest.fail("optional writer invoked without a destination")

    monkeypatch.setattr(target, "write_vehicles", _not_called)
    monkeypatch.setattr(target, "write_shape_reference", _not_called)
    monkeypatch.setattr(target, "resolve_crs", _not_called)

    target.run(gtfs_dir, "dayWithMostTrips", "WGS84", str(tmp_path / "schedule.xml"))

    assert [p.name for p in tmp_path.iterdir()] == ["schedule.xml"]


def test_vehicles_without_shape_reference(gtfs_dir, tmp_path) -> None:
    schedule, vehicles, _ = _outputs(tmp_path)
    target.run(gtfs_dir, "20240107", "WGS84", schedule, vehicles)
    assert sorted(p.name for p in tmp_path.iterdir()) == ["schedule.xml", "vehicles.xml"]


def test_invalid_selector_aborts_before_conversion(gtfs_dir, tmp_path, monkeypatch) -> None:
    def _no_converter(*args, **kwargs):
        pytest.fail("converter built for an invalid sample day")

    monkeypatch.setattr(target, "GtfsConverter", _no_converter)
    schedule, vehicles, shape_ref = _outputs(tmp_path)

    with pytest.raises(InvalidSelectorError):
        target.run(gtfs_dir, "20230230", "WGS84", schedule, vehicles, shape_ref)
    assert list(tmp_path.iterdir()) == []


def test_none_sample_day_matches_default(gtfs_dir, tmp_path) -> None:
    default_out = tmp_path / "default.xml"
    explicit_out = tmp_path / "explicit.xml"

    target.run(gtfs_dir, None, "WGS84", str(default_out))
    target.run(gtfs_dir, "dayWithMostTrips", "WGS84", str(explicit_out))

    assert default_out.read_text(encoding="utf-8") == explicit_out.read_text(encoding="utf-8")


def test_missing_feed_is_fatal(tmp_path) -> None:
    with pytest.raises(OSError):
        target.run(str(tmp_path / "missing"), "all", "WGS84", str(tmp_path / "schedule.xml"))
    assert not (tmp_path / "schedule.xml").exists()


class _NoisyConverter(gtfs_converter.GtfsConverter):
    """Logs on a few geospatial loggers while converting."""

    def convert(self, sample_day):
        for name in ("pyproj", "my.geo"):
            logging.getLogger(name).info("%s info during run", name)
            logging.getLogger(name).warning("%s warning during run", name)
        return super().convert(sample_day)


def _run_messages(caplog, name: str) -> list[str]:
    return [r.getMessage() for r in caplog.records if r.name == name and "run" in r.getMessage()]


def test_geospatial_loggers_quieted_only_during_run(
    gtfs_dir, tmp_path, monkeypatch, caplog
) -> None:
    monkeypatch.setattr(target, "GtfsConverter", _NoisyConverter)
    pyproj_logger = logging.getLogger("pyproj")
    previous = pyproj_logger.level

    with caplog.at_level(logging.DEBUG):
        target.run(gtfs_dir, "all", "WGS84", str(tmp_path / "schedule.xml"))
        pyproj_logger.info("pyproj info after run")

    assert _run_messages(caplog, "pyproj") == [
        "pyproj warning during run",
        "pyproj info after run",
    ]
    assert pyproj_logger.level == previous
    assert pyproj_logger.filters == []


def test_run_options_choose_quieted_loggers(gtfs_dir, tmp_path, monkeypatch, caplog) -> None:
    monkeypatch.setattr(target, "GtfsConverter", _NoisyConverter)
    options = target.RunOptions(quiet_loggers=("my.geo",), quiet_level=logging.ERROR)

    with caplog.at_level(logging.DEBUG):
        target.run(gtfs_dir, "all", "WGS84", str(tmp_path / "schedule.xml"), options=options)

    assert _run_messages(caplog, "my.geo") == []
    # pyproj is not in the custom list
    assert _run_messages(caplog, "pyproj") == [
        "pyproj info during run",
        "pyproj warning during run",
    ]
    assert logging.getLogger("my.geo").level == logging.NOTSET


# -----------------------------------------------------------------------------
# main()
# -----------------------------------------------------------------------------


@pytest.mark.parametrize("count", [0, 3, 7])
def test_main_rejects_wrong_argument_count(count: int, monkeypatch) -> None:
    monkeypatch.setattr(target, "run", lambda *a: pytest.fail("run called"))
    with pytest.raises(target.ArgumentCountError):
        target.main([f"arg{i}" for i in range(count)])


@pytest.mark.parametrize("count", [4, 5, 6])
def test_main_pads_missing_optional_arguments_with_none(count: int, monkeypatch) -> None:
    calls: list[tuple] = []
    monkeypatch.setattr(target, "run", lambda *a: calls.append(a))

    args = [f"arg{i}" for i in range(count)]
    target.main(args)

    assert calls == [tuple(args) + (None,) * (6 - count)]


def test_main_validates_sample_day(gtfs_dir, tmp_path) -> None:
    with pytest.raises(InvalidSelectorError):
        target.main([gtfs_dir, "2023", "WGS84", str(tmp_path / "schedule.xml")])
