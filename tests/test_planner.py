"""Tests for the historical day range."""

from datetime import date

from daily_export.planner import end_of_history, iter_days, plan_days


def test_plan_excludes_today():
    assert plan_days(date(2024, 1, 12), date(2024, 1, 15)) == [
        date(2024, 1, 13),
        date(2024, 1, 14),
    ]


def test_plan_empty_when_caught_up():
    assert plan_days(date(2024, 1, 14), date(2024, 1, 15)) == []


def test_plan_empty_when_watermark_ahead():
    assert plan_days(date(2024, 1, 20), date(2024, 1, 15)) == []


def test_plan_crosses_month_and_leap_day():
    days = plan_days(date(2024, 2, 27), date(2024, 3, 2))
    assert days == [date(2024, 2, 28), date(2024, 2, 29), date(2024, 3, 1)]


def test_end_of_history_is_yesterday():
    assert end_of_history(date(2024, 1, 1)) == date(2023, 12, 31)


def test_iter_days_single():
    assert list(iter_days(date(2024, 1, 1), date(2024, 1, 1))) == [date(2024, 1, 1)]
