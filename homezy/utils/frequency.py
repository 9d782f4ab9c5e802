"""
Service frequency arithmetic.

Month and year steps use dateutil.relativedelta, which clamps to the last
day of the target month: Jan 31 + 1 month is Feb 29 in a leap year and
Feb 28 otherwise.
"""

from datetime import datetime, timedelta

from dateutil.relativedelta import relativedelta

from database.models import ReminderFrequency

FREQUENCY_STEPS: dict[ReminderFrequency, relativedelta] = {
    ReminderFrequency.MONTHLY: relativedelta(months=1),
    ReminderFrequency.QUARTERLY: relativedelta(months=3),
    ReminderFrequency.BIANNUAL: relativedelta(months=6),
    ReminderFrequency.ANNUAL: relativedelta(years=1),
}

# Upper bound (inclusive, in days) of each interval bucket
MONTHLY_MAX_DAYS = 45
QUARTERLY_MAX_DAYS = 120
BIANNUAL_MAX_DAYS = 270


def next_due_date(
    from_date: datetime,
    frequency: ReminderFrequency,
    custom_interval_days: int | None = None,
) -> datetime:
    """
    Compute the next due date one frequency step after from_date.

    Args:
        from_date: Date the step starts from (usually the last service date)
        frequency: Reminder frequency
        custom_interval_days: Interval for ReminderFrequency.CUSTOM

    Returns:
        The next due date. For a custom frequency without an interval the
        input is returned unchanged.
    """
    if frequency == ReminderFrequency.CUSTOM:
        if not custom_interval_days:
            return from_date
        return from_date + timedelta(days=custom_interval_days)

    return from_date + FREQUENCY_STEPS[frequency]


def classify_interval(avg_days_between_services: float) -> ReminderFrequency:
    """Map an observed average service interval to a frequency bucket."""
    if avg_days_between_services <= MONTHLY_MAX_DAYS:
        return ReminderFrequency.MONTHLY
    if avg_days_between_services <= QUARTERLY_MAX_DAYS:
        return ReminderFrequency.QUARTERLY
    if avg_days_between_services <= BIANNUAL_MAX_DAYS:
        return ReminderFrequency.BIANNUAL
    return ReminderFrequency.ANNUAL
