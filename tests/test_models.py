"""Tests for day windows, watermark parsing and records."""

from datetime import date, datetime, timezone

import pytest

from daily_export.models import (
    DayWindow,
    MessageRecord,
    Watermark,
    format_round_trip,
    parse_utc_date,
    parse_utc_timestamp,
)


def test_day_window_is_exactly_one_day():
    window = DayWindow.for_date(date(2024, 1, 15))
    assert window.start == datetime(2024, 1, 15, tzinfo=timezone.utc)
    assert (window.end - window.start).total_seconds() == 86400
    assert window.day == date(2024, 1, 15)


def test_day_window_bounds_render_with_seven_digits():
    window = DayWindow.for_date(date(2024, 1, 15))
    assert window.start_iso == "2024-01-15T00:00:00.0000000Z"
    assert window.end_iso == "2024-01-16T00:00:00.0000000Z"


def test_round_trip_keeps_microseconds():
    value = datetime(2024, 1, 15, 10, 30, 0, 123456, tzinfo=timezone.utc)
    assert format_round_trip(value) == "2024-01-15T10:30:00.1234560Z"


def test_watermark_serialization():
    wm = Watermark(date(2024, 1, 15))
    assert wm.to_dict() == {"LastExportDateUtc": "2024-01-15T00:00:00Z"}
    assert Watermark.from_dict(wm.to_dict()) == wm


def test_watermark_accepts_snake_case_and_bare_date():
    assert Watermark.from_dict({"last_export_date_utc": "2024-01-15"}).last_export_date_utc == date(2024, 1, 15)


def test_watermark_missing_key():
    with pytest.raises(ValueError):
        Watermark.from_dict({"other": "2024-01-15"})


def test_watermark_floor_is_invalid():
    assert not Watermark(date.min).is_valid
    assert Watermark(date(1, 1, 2)).is_valid


def test_parse_timestamp_variants():
    assert parse_utc_timestamp("2024-01-15T10:00:00.1234567Z") == datetime(
        2024, 1, 15, 10, 0, 0, 123456, tzinfo=timezone.utc
    )
    assert parse_utc_timestamp("2024-01-15T10:00:00") == datetime(2024, 1, 15, 10, tzinfo=timezone.utc)
    # offsets are normalised to UTC
    assert parse_utc_timestamp("2024-01-15T23:30:00-02:00").date() == date(2024, 1, 16)


def test_parse_timestamp_out_of_utc_range():
    with pytest.raises(ValueError):
        parse_utc_timestamp("0001-01-01T00:00:00+05:00")


def test_parse_utc_date():
    assert parse_utc_date("2024-01-15") == date(2024, 1, 15)
    assert parse_utc_date("2024-01-15T00:00:00Z") == date(2024, 1, 15)
    with pytest.raises(ValueError):
        parse_utc_date("not-a-date")


def test_message_record_from_document():
    record = MessageRecord.from_document({"id": "1", "status": 2, "tokens": "15", "deleted": None})
    assert record.status == "2"
    assert record.tokens == 15
    assert record.deleted is None
    assert record.type == "Message"
