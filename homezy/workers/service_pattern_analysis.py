"""
Service Pattern Analysis Job - Keeps pattern-based reminders in step with
each homeowner's service history.

Runs weekly (Sunday 02:00 local time) by default (PATTERN_ANALYSIS_CRON).
"""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID

from homezy.workers.dependencies import WorkerDependencies
from homezy.workers.health import update_health_check
from homezy.workers.homeowners import load_homeowners

logger = logging.getLogger(__name__)

JOB_NAME = "service_pattern_analysis"


@dataclass
class PatternAnalysisResults:
    users_processed: int = 0
    reminders_created: int = 0
    reminders_updated: int = 0
    errors: int = 0


async def run_service_pattern_analysis(
    deps: WorkerDependencies, homeowner_id: UUID | None = None
) -> PatternAnalysisResults:
    """
    Sync pattern-based reminders for every homeowner, or just one.

    Each homeowner is synced against their primary property.
    """
    results = PatternAnalysisResults()
    logger.info(
        f"Starting service pattern analysis at {deps.clock().isoformat()}"
        + (f" for homeowner {homeowner_id}" if homeowner_id else ""),
        extra={"job_name": JOB_NAME},
    )

    try:
        homeowners = await load_homeowners(deps, homeowner_id=homeowner_id)
        logger.info(f"Analyzing service history for {len(homeowners)} homeowners")

        for homeowner, property_id in homeowners:
            try:
                sync = await deps.pattern_sync.sync_reminders_from_service_history(homeowner.id, property_id)
                results.users_processed += 1
                results.reminders_created += sync.created
                results.reminders_updated += sync.updated
            except Exception as e:
                results.errors += 1
                logger.error(
                    f"Error analyzing service pattern for homeowner {homeowner.id}: {e}",
                    extra={"homeowner_id": homeowner.id},
                    exc_info=True,
                )

    except Exception as e:
        results.errors += 1
        logger.exception(f"Critical error in service pattern analysis: {e}")

    logger.info(
        f"Service pattern analysis completed: users={results.users_processed}, "
        f"created={results.reminders_created}, updated={results.reminders_updated}, errors={results.errors}",
        extra={"job_name": JOB_NAME},
    )
    await update_health_check(
        JOB_NAME,
        datetime.now(UTC),
        "healthy" if results.errors == 0 else "unhealthy",
        results.users_processed,
        results.errors,
    )
    return results
