"""Tests for service frequency arithmetic and interval classification."""

from datetime import UTC, datetime

import pytest

from database.models import ReminderFrequency
from homezy.utils.frequency import classify_interval, next_due_date


def dt(year, month, day):
    return datetime(year, month, day, 9, 0, tzinfo=UTC)


class TestNextDueDate:
    """Calendar steps per frequency."""

    def test_quarterly_from_mid_month(self):
        assert next_due_date(dt(2024, 1, 15), ReminderFrequency.QUARTERLY) == dt(2024, 4, 15)

    def test_monthly_clamps_to_leap_february(self):
        assert next_due_date(dt(2024, 1, 31), ReminderFrequency.MONTHLY) == dt(2024, 2, 29)

    def test_monthly_clamps_to_short_february(self):
        assert next_due_date(dt(2023, 1, 31), ReminderFrequency.MONTHLY) == dt(2023, 2, 28)

    def test_biannual(self):
        assert next_due_date(dt(2024, 8, 31), ReminderFrequency.BIANNUAL) == dt(2025, 2, 28)

    def test_annual_from_leap_day(self):
        assert next_due_date(dt(2024, 2, 29), ReminderFrequency.ANNUAL) == dt(2025, 2, 28)

    def test_custom_interval_adds_days(self):
        result = next_due_date(dt(2024, 1, 1), ReminderFrequency.CUSTOM, custom_interval_days=45)
        assert result == dt(2024, 2, 15)

    def test_custom_without_interval_returns_input(self):
        start = dt(2024, 1, 1)
        assert next_due_date(start, ReminderFrequency.CUSTOM) == start

    def test_time_of_day_is_preserved(self):
        start = datetime(2024, 3, 10, 17, 45, tzinfo=UTC)
        assert next_due_date(start, ReminderFrequency.MONTHLY).time() == start.time()

    @pytest.mark.parametrize(
        "frequency",
        [
            ReminderFrequency.MONTHLY,
            ReminderFrequency.QUARTERLY,
            ReminderFrequency.BIANNUAL,
            ReminderFrequency.ANNUAL,
        ],
    )
    def test_always_moves_forward(self, frequency):
        for start in (dt(2024, 1, 31), dt(2024, 2, 29), dt(2024, 12, 31), dt(2025, 6, 15)):
            assert next_due_date(start, frequency) > start

    def test_twelve_monthly_steps_match_one_annual_step(self):
        start = dt(2024, 3, 15)
        current = start
        for _ in range(12):
            current = next_due_date(current, ReminderFrequency.MONTHLY)
        assert current == next_due_date(start, ReminderFrequency.ANNUAL)

    def test_monthly_steps_drift_after_month_end_clamp(self):
        """Once clamped to the 29th, later steps stay on the 29th."""
        current = dt(2024, 1, 31)
        current = next_due_date(current, ReminderFrequency.MONTHLY)
        current = next_due_date(current, ReminderFrequency.MONTHLY)
        assert current == dt(2024, 3, 29)


class TestClassifyInterval:
    @pytest.mark.parametrize(
        "days, expected",
        [
            (10, ReminderFrequency.MONTHLY),
            (45, ReminderFrequency.MONTHLY),
            (46, ReminderFrequency.QUARTERLY),
            (120, ReminderFrequency.QUARTERLY),
            (121, ReminderFrequency.BIANNUAL),
            (270, ReminderFrequency.BIANNUAL),
            (271, ReminderFrequency.ANNUAL),
        ],
    )
    def test_bucket_boundaries(self, days, expected):
        assert classify_interval(days) == expected

    def test_monotonic(self):
        order = [
            ReminderFrequency.MONTHLY,
            ReminderFrequency.QUARTERLY,
            ReminderFrequency.BIANNUAL,
            ReminderFrequency.ANNUAL,
        ]
        ranks = [order.index(classify_interval(d)) for d in range(1, 400)]
        assert ranks == sorted(ranks)
