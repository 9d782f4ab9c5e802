"""
Seasonal Reminder Job - Creates next month's seasonal reminders.

Runs on the 1st of each month at 08:00 local time by default
(SEASONAL_REMINDERS_CRON). Homeowners who turned seasonal reminders off are
skipped.
"""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime

from homezy.workers.dependencies import WorkerDependencies
from homezy.workers.health import update_health_check
from homezy.workers.homeowners import load_homeowners

logger = logging.getLogger(__name__)

JOB_NAME = "seasonal_reminders"


@dataclass
class SeasonalResults:
    users_processed: int = 0
    reminders_created: int = 0
    errors: int = 0


async def run_seasonal_reminders(deps: WorkerDependencies, now: datetime | None = None) -> SeasonalResults:
    now = now or deps.clock()
    results = SeasonalResults()
    logger.info(f"Starting seasonal reminder job at {now.isoformat()}", extra={"job_name": JOB_NAME})

    try:
        homeowners = await load_homeowners(deps, seasonal_only=True)

        for homeowner, property_id in homeowners:
            try:
                results.reminders_created += await deps.seasonal.create_seasonal_reminders(
                    homeowner.id, property_id, now=now
                )
                results.users_processed += 1
            except Exception as e:
                results.errors += 1
                logger.error(
                    f"Error creating seasonal reminders for homeowner {homeowner.id}: {e}",
                    extra={"homeowner_id": homeowner.id},
                    exc_info=True,
                )

    except Exception as e:
        results.errors += 1
        logger.exception(f"Critical error in seasonal reminder job: {e}")

    logger.info(
        f"Seasonal reminder job completed: users={results.users_processed}, "
        f"created={results.reminders_created}, errors={results.errors}",
        extra={"job_name": JOB_NAME},
    )
    await update_health_check(
        JOB_NAME,
        datetime.now(UTC),
        "healthy" if results.errors == 0 else "unhealthy",
        results.reminders_created,
        results.errors,
    )
    return results
