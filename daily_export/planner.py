"""Plan the historical days of a run."""

from __future__ import annotations

from datetime import date
from typing import Iterator, List

from daily_export.models import ONE_DAY

__all__ = ["end_of_history", "iter_days", "plan_days"]


def end_of_history(today: date) -> date:
    """Last day eligible for watermarked export: yesterday."""
    return today - ONE_DAY


def iter_days(first: date, last: date) -> Iterator[date]:
    """Yield every date in the closed range ``[first, last]`` ascending."""
    current = first
    while current <= last:
        yield current
        current += ONE_DAY


def plan_days(last_exported: date, today: date) -> List[date]:
    """Days to export after ``last_exported``, up to and excluding ``today``.

    >>> plan_days(date(2024, 1, 13), date(2024, 1, 16))
    [datetime.date(2024, 1, 14), datetime.date(2024, 1, 15)]
    >>> plan_days(date(2024, 1, 15), date(2024, 1, 16))
    []
    """
    return list(iter_days(last_exported + ONE_DAY, end_of_history(today)))
