"""Tests for the start date fallback chain."""

from datetime import date

import pytest

from conftest import message
from daily_export.models import ResolutionSource
from daily_export.resolver import (
    LookbackStrategy,
    ProbeStrategy,
    StartDateResolver,
    WatermarkStrategy,
    years_before,
)
from daily_export.state.watermark import WatermarkStore

TODAY = date(2024, 3, 10)


@pytest.fixture
def watermarks(local_store):
    return WatermarkStore(local_store, "cosmosdb/state.json")


def test_watermark_wins(watermarks, fake_source):
    watermarks.write(date(2024, 3, 1))
    fake_source.add(message("2023-01-01T00:00:00.0000000Z"))

    resolver = StartDateResolver.default(watermarks, fake_source)
    assert resolver.resolve(TODAY) == (date(2024, 3, 1), ResolutionSource.WATERMARK)


def test_probe_used_without_watermark(watermarks, fake_source):
    fake_source.add(
        message("2024-02-05T08:00:00.0000000Z"),
        message("2024-02-03T23:59:59.9999999Z"),
    )
    resolver = StartDateResolver.default(watermarks, fake_source)

    last_exported, source = resolver.resolve(TODAY)
    assert source is ResolutionSource.PROBE
    # processing starts on the oldest record's day
    assert last_exported == date(2024, 2, 2)


def test_probe_ignores_other_record_types(watermarks, fake_source):
    fake_source.add(message("2020-01-01T00:00:00.0000000Z", type="Session"))
    probe = ProbeStrategy(fake_source, "Message")
    assert probe.resolve(TODAY) is None


def test_lookback_when_store_empty(watermarks, fake_source):
    resolver = StartDateResolver.default(watermarks, fake_source)
    assert resolver.resolve(TODAY) == (date(2022, 3, 9), ResolutionSource.LOOKBACK)


def test_probe_failure_degrades_to_lookback(watermarks, fake_source):
    fake_source.min_timestamp_error = RuntimeError("service unavailable")
    resolver = StartDateResolver.default(watermarks, fake_source)
    _, source = resolver.resolve(TODAY)
    assert source is ResolutionSource.LOOKBACK


def test_unparseable_probe_result(fake_source):
    class Garbage(type(fake_source)):
        def min_timestamp(self, record_type):
            return "yesterday-ish"

    assert ProbeStrategy(Garbage()).resolve(TODAY) is None


def test_probe_at_minimum_date_degrades_to_lookback(watermarks, fake_source):
    fake_source.add(message("0001-01-01T00:00:00.0000000Z"))
    resolver = StartDateResolver.default(watermarks, fake_source)
    assert resolver.resolve(TODAY) == (date(2022, 3, 9), ResolutionSource.LOOKBACK)


def test_malformed_watermark_falls_through(local_store, fake_source):
    local_store.write_text("cosmosdb/state.json", "{not json")
    fake_source.add(message("2024-03-01T00:00:00.0000000Z"))
    resolver = StartDateResolver.default(WatermarkStore(local_store, "cosmosdb/state.json"), fake_source)
    assert resolver.resolve(TODAY) == (date(2024, 2, 29), ResolutionSource.PROBE)


def test_lookback_leap_day_clamps():
    assert years_before(date(2024, 2, 29), 2) == date(2022, 2, 28)
    assert LookbackStrategy(2).resolve(date(2024, 2, 29)) == date(2022, 2, 27)


def test_custom_lookback_years():
    assert LookbackStrategy(1).resolve(date(2024, 3, 10)) == date(2023, 3, 9)


def test_strategy_order_is_respected(watermarks, fake_source):
    resolver = StartDateResolver([LookbackStrategy(1), WatermarkStrategy(watermarks)])
    watermarks.write(date(2024, 3, 1))
    assert resolver.resolve(TODAY)[1] is ResolutionSource.LOOKBACK


def test_resolver_requires_strategies():
    with pytest.raises(ValueError):
        StartDateResolver([])
