"""
Tests for calendar helpers used by reminder evaluation.
"""

from datetime import datetime

from notification_service.services.dates import (
    add_days,
    add_months,
    diff_in_days,
    next_monthly_date,
    start_of_day,
)


class TestDayArithmetic:

    def test_start_of_day_strips_time(self):
        assert start_of_day(datetime(2024, 1, 12, 23, 59, 59, 999)) == datetime(2024, 1, 12)

    def test_add_days_returns_midnight(self):
        assert add_days(datetime(2024, 1, 1, 15, 45), 14) == datetime(2024, 1, 15)

    def test_diff_in_days_ignores_time_of_day(self):
        assert diff_in_days(datetime(2024, 1, 15), datetime(2024, 1, 12, 23, 59)) == 3
        assert diff_in_days(datetime(2024, 1, 15, 1, 0), datetime(2024, 1, 15, 22, 0)) == 0

    def test_diff_in_days_negative_for_past_target(self):
        assert diff_in_days(datetime(2024, 1, 10), datetime(2024, 1, 12)) == -2


class TestMonthArithmetic:

    def test_jan_31_clamps_to_leap_february(self):
        assert add_months(datetime(2024, 1, 31), 1) == datetime(2024, 2, 29)

    def test_jan_31_clamps_to_regular_february(self):
        assert add_months(datetime(2023, 1, 31), 1) == datetime(2023, 2, 28)

    def test_year_rollover(self):
        assert add_months(datetime(2023, 12, 15), 1) == datetime(2024, 1, 15)

    def test_next_monthly_date_is_anchor_when_due_today(self):
        assert next_monthly_date(datetime(2024, 1, 15), datetime(2024, 1, 15, 8, 0)) == datetime(2024, 1, 15)

    def test_next_monthly_date_steps_from_previous_result(self):
        # Jan 31 -> Feb 29 -> Mar 29 (clamp carries forward)
        assert next_monthly_date(datetime(2024, 1, 31), datetime(2024, 3, 10)) == datetime(2024, 3, 29)

    def test_next_monthly_date_skips_past_months(self):
        assert next_monthly_date(datetime(2023, 12, 15), datetime(2024, 1, 12)) == datetime(2024, 1, 15)
