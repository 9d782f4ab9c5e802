"""
Startup configuration validation module.

Catches misconfigurations when a process starts (fail-fast) rather than
minutes later when the first scheduled job runs.

Usage:
    from shared.startup_validator import validate_startup_config, StartupValidationError

    def main():
        try:
            validate_startup_config()
        except StartupValidationError as e:
            logger.critical(f"Startup blocked: {e}")
            sys.exit(1)
"""

import logging
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy import text

from shared.config import Settings, get_settings

logger = logging.getLogger(__name__)

SUPPORTED_DATABASE_DRIVERS = ("postgresql+asyncpg://", "sqlite+aiosqlite://")

CRON_SETTINGS = (
    "DIRECT_LEAD_EXPIRY_CRON",
    "DIRECT_LEAD_REMINDERS_CRON",
    "SERVICE_REMINDER_NOTIFICATIONS_CRON",
    "TRADE_LICENSE_EXPIRY_CRON",
    "PATTERN_ANALYSIS_CRON",
    "SEASONAL_REMINDERS_CRON",
    "SITEMAP_WARM_CRON",
    "SITEMAP_PING_CRON",
)


class StartupValidationError(Exception):
    """Raised when critical startup validation fails."""

    pass


def validate_startup_config(settings: Settings | None = None) -> dict[str, bool]:
    """
    Validate critical configuration at startup.

    Tiered validation:
    - TIER 1 (CRITICAL): database driver, timezone, job schedules
    - TIER 2 (IMPORTANT): provider credentials still set to placeholders

    Returns:
        dict of {check_name: passed} for all validations

    Raises:
        StartupValidationError: If any CRITICAL check fails
    """
    from homezy.workers.scheduler import CronParseError, CronSchedule

    settings = settings or get_settings()
    results: dict[str, bool] = {}
    critical_failures: list[str] = []

    # =========================================================================
    # TIER 1: CRITICAL (block startup if any fail)
    # =========================================================================

    results["database_url"] = settings.DATABASE_URL.startswith(SUPPORTED_DATABASE_DRIVERS)
    if not results["database_url"]:
        critical_failures.append(
            "DATABASE_URL must use an async driver "
            f"({', '.join(SUPPORTED_DATABASE_DRIVERS)})"
        )

    tz = None
    try:
        tz = ZoneInfo(settings.TIMEZONE)
        results["timezone"] = True
    except (ZoneInfoNotFoundError, ValueError):
        results["timezone"] = False
        critical_failures.append(f"Unknown TIMEZONE: {settings.TIMEZONE}")

    for name in CRON_SETTINGS:
        expression = getattr(settings, name)
        try:
            CronSchedule(expression, tz or ZoneInfo("UTC"))
            results[name.lower()] = True
        except CronParseError as e:
            results[name.lower()] = False
            critical_failures.append(f"{name} is invalid: {e}")

    for check, passed in results.items():
        if passed:
            logger.info(f"  [OK] {check}")

    # =========================================================================
    # TIER 2: IMPORTANT (warn but allow startup)
    # =========================================================================

    results["brevo_api_key"] = bool(settings.BREVO_API_KEY) and settings.BREVO_API_KEY != "brevo-placeholder"
    if not results["brevo_api_key"]:
        logger.warning("  [WARN] BREVO_API_KEY is a placeholder - emails will fail to send")

    if not settings.EXPO_ACCESS_TOKEN:
        logger.info("  [INFO] EXPO_ACCESS_TOKEN not set - push requests are sent unauthenticated")

    if critical_failures:
        for failure in critical_failures:
            logger.critical(f"  [FAIL] {failure}")
        raise StartupValidationError(
            f"Critical startup validation failed ({len(critical_failures)} errors): "
            f"{'; '.join(critical_failures)}"
        )

    return results


async def validate_database_connection() -> bool:
    """
    Validate database connection is working.

    Returns:
        True if database connection successful, False otherwise
    """
    from database.connection import get_async_session

    try:
        async with get_async_session() as session:
            await session.execute(text("SELECT 1"))
        logger.info("  [OK] Database connection successful")
        return True
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        return False
