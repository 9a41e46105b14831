"""Resolve the last exported day for a run.

Historical processing always starts the day after the resolved date. The
resolver tries an ordered list of strategies and the first one that produces a
date wins:

1. the persisted watermark,
2. a probe for the oldest stored record,
3. a fixed lookback horizon.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import date
from typing import List, Optional, Sequence, Tuple

from daily_export.models import ONE_DAY, ResolutionSource, parse_utc_timestamp
from daily_export.source.base import DocumentSource
from daily_export.state.watermark import WatermarkStore

logger = logging.getLogger(__name__)

__all__ = [
    "LookbackStrategy",
    "ProbeStrategy",
    "ResolutionStrategy",
    "StartDateResolver",
    "WatermarkStrategy",
    "years_before",
]


def years_before(day: date, years: int) -> date:
    """Return the same calendar day ``years`` earlier; Feb 29 clamps to Feb 28."""
    try:
        return day.replace(year=day.year - years)
    except ValueError:
        return day.replace(year=day.year - years, day=28)


class ResolutionStrategy(ABC):
    """One step of the start-date fallback chain."""

    source: ResolutionSource

    @abstractmethod
    def resolve(self, today: date) -> Optional[date]:
        """Return the last exported day, or None to defer to the next strategy."""


class WatermarkStrategy(ResolutionStrategy):
    source = ResolutionSource.WATERMARK

    def __init__(self, watermarks: WatermarkStore) -> None:
        self.watermarks = watermarks

    def resolve(self, today: date) -> Optional[date]:
        watermark = self.watermarks.read()
        return watermark.last_export_date_utc if watermark else None


class ProbeStrategy(ResolutionStrategy):
    """Start on the day of the oldest stored record.

    Any failure of the probe query is logged and treated as "no answer".
    """

    source = ResolutionSource.PROBE

    def __init__(self, documents: DocumentSource, record_type: str = "Message") -> None:
        self.documents = documents
        self.record_type = record_type

    def resolve(self, today: date) -> Optional[date]:
        logger.info("No valid watermark; probing for the oldest %s record", self.record_type)
        try:
            raw = self.documents.min_timestamp(self.record_type)
        except Exception as e:
            logger.warning("Minimum timestamp probe failed: %s", e)
            return None

        if not raw or not raw.strip():
            logger.info("Probe returned no timestamp; the container may be empty")
            return None
        try:
            oldest = parse_utc_timestamp(raw).date()
            start = oldest - ONE_DAY
        except (ValueError, OverflowError):
            logger.warning("Probe returned an unusable timestamp: %r", raw)
            return None

        logger.info("Oldest record is from %s", oldest.isoformat())
        return start


class LookbackStrategy(ResolutionStrategy):
    source = ResolutionSource.LOOKBACK

    def __init__(self, years: int = 2) -> None:
        self.years = years

    def resolve(self, today: date) -> Optional[date]:
        start = years_before(today, self.years)
        logger.info("Using default lookback start %s (%d years)", start.isoformat(), self.years)
        return start - ONE_DAY


class StartDateResolver:
    """Runs the strategy chain.

    Example:
        >>> resolver = StartDateResolver.default(watermarks, documents)
        >>> last_exported, source = resolver.resolve(date(2024, 3, 1))
    """

    def __init__(self, strategies: Sequence[ResolutionStrategy]) -> None:
        if not strategies:
            raise ValueError("at least one resolution strategy is required")
        self.strategies: List[ResolutionStrategy] = list(strategies)

    @classmethod
    def default(
        cls,
        watermarks: WatermarkStore,
        documents: DocumentSource,
        record_type: str = "Message",
        lookback_years: int = 2,
    ) -> "StartDateResolver":
        return cls([
            WatermarkStrategy(watermarks),
            ProbeStrategy(documents, record_type),
            LookbackStrategy(lookback_years),
        ])

    def resolve(self, today: date) -> Tuple[date, ResolutionSource]:
        for strategy in self.strategies:
            result = strategy.resolve(today)
            if result is not None:
                logger.info(
                    "Resolved last exported day %s from %s",
                    result.isoformat(),
                    strategy.source.value,
                )
                return result, strategy.source
        raise RuntimeError("No resolution strategy produced a start date")
