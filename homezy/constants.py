"""
Platform constants shared by services and jobs.

Values that operators may tune (claim caps, response windows, schedules)
live in shared.config.Settings; the tables here are fixed business data.
"""

from database.models import HomeServiceCategory, ReminderFrequency

# Lead days used when a reminder is created without explicit lead days
DEFAULT_REMINDER_LEAD_DAYS: list[int] = [30, 7, 1]
SEASONAL_REMINDER_LEAD_DAYS: list[int] = [14, 7, 1]

# Typical service interval per category; these are also the categories the
# pattern sync engine inspects.
DEFAULT_SERVICE_FREQUENCIES: dict[HomeServiceCategory, ReminderFrequency] = {
    HomeServiceCategory.HVAC: ReminderFrequency.BIANNUAL,
    HomeServiceCategory.PLUMBING: ReminderFrequency.ANNUAL,
    HomeServiceCategory.ELECTRICAL: ReminderFrequency.ANNUAL,
    HomeServiceCategory.LANDSCAPING: ReminderFrequency.MONTHLY,
    HomeServiceCategory.POOL: ReminderFrequency.MONTHLY,
    HomeServiceCategory.PEST_CONTROL: ReminderFrequency.QUARTERLY,
    HomeServiceCategory.CLEANING: ReminderFrequency.QUARTERLY,
    HomeServiceCategory.GENERAL_MAINTENANCE: ReminderFrequency.QUARTERLY,
}

PATTERN_SYNC_CATEGORIES: tuple[HomeServiceCategory, ...] = tuple(DEFAULT_SERVICE_FREQUENCIES)

# Service history records considered when detecting a pattern
PATTERN_HISTORY_WINDOW = 10

# Upper bound for a single snooze request
MAX_SNOOZE_DAYS = 90

# Lead days swept by the daily service reminder notification job
NOTIFICATION_LEAD_DAYS: tuple[int, ...] = (30, 7, 1)

# Direct lead reminder thresholds (hours before the response window closes)
DIRECT_LEAD_REMINDER1_HOURS = 12
DIRECT_LEAD_REMINDER2_HOURS = 1

# Days since license expiry on which admins are alerted (plus every 30 days)
TRADE_LICENSE_ADMIN_ALERT_DAYS = frozenset({1, 7, 14})
TRADE_LICENSE_WARNING_DAYS = 7

_CATEGORY_LABEL_OVERRIDES = {
    HomeServiceCategory.HVAC: "HVAC",
}


def category_label(category: HomeServiceCategory) -> str:
    """Human-readable category name ("pest-control" -> "Pest Control")."""
    return _CATEGORY_LABEL_OVERRIDES.get(category) or category.value.replace("-", " ").title()
