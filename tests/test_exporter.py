"""Tests for exporting a single day window."""

import logging
from datetime import date

import pytest

from conftest import message
from daily_export.exceptions import PaginationError, StorageError
from daily_export.exporter import DayWindowExporter, day_object_key
from daily_export.models import DayAction

DAY = date(2024, 1, 15)
KEY = "cosmosdb/2024-01-15-Messages.csv"


def _exporter(source, store, **kwargs):
    return DayWindowExporter(source, store, **kwargs)


def _rows(store, key=KEY):
    return store.read_bytes(key).decode("utf-8").split("\r\n")[1:-1]


def test_object_key_layout():
    assert day_object_key(DAY) == KEY
    assert day_object_key(DAY, prefix="", suffix="x.csv") == "2024-01-15-x.csv"


def test_window_boundaries(fake_source, local_store):
    fake_source.add(
        message("2024-01-14T23:59:59.9999999Z", "prev-day"),
        message("2024-01-15T00:00:00.0000000Z", "start"),
        message("2024-01-15T23:59:59.9999999Z", "end"),
        message("2024-01-16T00:00:00.0000000Z", "next-day"),
    )
    result = _exporter(fake_source, local_store).export_day(DAY)

    assert result.record_count == 2
    assert result.action is DayAction.UPLOADED
    ids = [row.split(",")[0] for row in _rows(local_store)]
    assert ids == ["start", "end"]


def test_records_ordered_by_timestamp(fake_source, local_store):
    fake_source.add(
        message("2024-01-15T12:00:00.0000000Z", "noon"),
        message("2024-01-15T01:00:00.0000000Z", "early"),
    )
    _exporter(fake_source, local_store).export_day(DAY)
    assert [row.split(",")[0] for row in _rows(local_store)] == ["early", "noon"]


def test_status_transformed_in_output(fake_source, local_store):
    fake_source.add(message("2024-01-15T01:00:00.0000000Z", status="abc"))
    _exporter(fake_source, local_store).export_day(DAY)
    assert "Invalid (abc)" in _rows(local_store)[0]


def test_pages_accumulate(fake_source, local_store):
    fake_source.add(*[message(f"2024-01-15T10:00:{i:02d}.0000000Z") for i in range(25)])
    result = _exporter(fake_source, local_store, page_size=10).export_day(DAY)

    assert result.page_count == 3
    assert result.record_count == 25
    assert result.request_charge == pytest.approx(7.5)
    assert len(_rows(local_store)) == 25


def test_reexport_is_byte_identical(fake_source, local_store):
    fake_source.add(*[message(f"2024-01-15T10:00:{i:02d}.0000000Z") for i in range(5)])
    exporter = _exporter(fake_source, local_store)
    exporter.export_day(DAY)
    first = local_store.read_bytes(KEY)
    exporter.export_day(DAY)
    assert local_store.read_bytes(KEY) == first


def test_empty_day_deletes_stale_file(fake_source, local_store):
    local_store.write_text(KEY, "stale")
    result = _exporter(fake_source, local_store).export_day(DAY)

    assert result.action is DayAction.DELETED
    assert not local_store.exists(KEY)


def test_empty_day_without_file_is_noop(fake_source, local_store, tmp_path):
    result = _exporter(fake_source, local_store).export_day(DAY)
    assert result.action is DayAction.SKIPPED
    assert result.record_count == 0
    assert list((tmp_path / "out").iterdir()) == []


def test_oversize_truncates_by_default(fake_source, local_store, caplog):
    fake_source.add(*[message(f"2024-01-15T10:00:{i:02d}.0000000Z") for i in range(30)])
    fake_source.oversize_at[DAY] = 2

    with caplog.at_level(logging.WARNING, logger="daily_export.exporter"):
        result = _exporter(fake_source, local_store, page_size=10).export_day(DAY)

    assert result.truncated
    assert result.record_count == 10
    assert len(_rows(local_store)) == 10
    assert any("too large" in r.getMessage() for r in caplog.records)
    assert all(r.export_date == "2024-01-15" for r in caplog.records)


def test_oversize_fail_policy_raises(fake_source, local_store):
    fake_source.add(*[message(f"2024-01-15T10:00:{i:02d}.0000000Z") for i in range(30)])
    fake_source.oversize_at[DAY] = 2

    with pytest.raises(PaginationError) as excinfo:
        _exporter(fake_source, local_store, page_size=10, oversize_policy="fail").export_day(DAY)
    assert excinfo.value.details["page"] == 2
    assert not local_store.exists(KEY)


def test_upload_failure_propagates(fake_source, flaky_store):
    fake_source.add(message("2024-01-15T10:00:00.0000000Z"))
    flaky_store.fail_keys.add(KEY)
    with pytest.raises(StorageError):
        _exporter(fake_source, flaky_store).export_day(DAY)


def test_progress_logging(fake_source, local_store, caplog):
    fake_source.add(*[message(f"2024-01-15T10:{i // 60:02d}:{i % 60:02d}.0000000Z") for i in range(1200)])

    with caplog.at_level(logging.INFO, logger="daily_export.exporter"):
        _exporter(fake_source, local_store, page_size=100).export_day(DAY)

    progress = [r.getMessage() for r in caplog.records if "fetched page" in r.getMessage()]
    # page 1, page 10 (1000 records) only
    assert len(progress) == 2
    assert "fetched page 1 " in progress[0]
    assert "fetched page 10 " in progress[1]


def test_invalid_policy_rejected(fake_source, local_store):
    with pytest.raises(ValueError):
        DayWindowExporter(fake_source, local_store, oversize_policy="ignore")
