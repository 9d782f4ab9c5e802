"""
Direct Lead Expiry Job - Opens unanswered direct leads to the marketplace.

Runs every 10 minutes by default (DIRECT_LEAD_EXPIRY_CRON).

Flow:
1. Query direct leads with direct_lead_status=pending and expires_at <= now
2. Convert each one with a guarded update (pending -> expired, public lead)
3. Email and notify the homeowner, notify the professional in-app

The conversion is exactly-once: a lead converted by an overlapping run, or
accepted by the professional a moment earlier, matches nothing and is skipped.
"""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime

from homezy.workers.dependencies import WorkerDependencies
from homezy.workers.health import update_health_check

logger = logging.getLogger(__name__)

JOB_NAME = "direct_lead_expiry"


@dataclass
class ExpiryResults:
    found: int = 0
    converted: int = 0
    skipped: int = 0
    errors: int = 0


async def expire_direct_leads(deps: WorkerDependencies) -> ExpiryResults:
    """
    Convert every overdue pending direct lead into a public lead.

    Returns:
        ExpiryResults with per-run counters
    """
    now = deps.clock()
    results = ExpiryResults()
    logger.info(f"Starting direct lead expiry job at {now.isoformat()}", extra={"job_name": JOB_NAME})

    try:
        leads = await deps.direct_leads.find_expired_pending(now)
        results.found = len(leads)

        if not leads:
            logger.info("No expired direct leads found")
        else:
            logger.info(f"Found {len(leads)} expired direct leads")

        for candidate in leads:
            try:
                lead = await deps.direct_leads.expire_direct_lead(candidate.id, now)
                if lead is None:
                    results.skipped += 1
                    logger.info(
                        f"Lead {candidate.id} no longer pending, skipping",
                        extra={"lead_id": candidate.id},
                    )
                    continue
                results.converted += 1

                professional = await deps.direct_leads.get_user(lead.target_professional_id)
                if professional is None:
                    logger.warning(
                        f"Target professional {lead.target_professional_id} not found for lead {lead.id}",
                        extra={"lead_id": lead.id},
                    )
                    continue

                homeowner = await deps.direct_leads.get_user(lead.homeowner_id)
                if homeowner is not None:
                    email_result = await deps.email.send_direct_lead_converted(
                        homeowner, professional.display_name, lead
                    )
                    if not email_result.ok:
                        logger.error(
                            f"Conversion email failed for lead {lead.id}: {email_result.error}",
                            extra={"lead_id": lead.id},
                        )
                    await deps.notifications.notify_homeowner_direct_lead_converted(
                        lead, professional.display_name
                    )
                else:
                    logger.warning(
                        f"Homeowner {lead.homeowner_id} not found for lead {lead.id}",
                        extra={"lead_id": lead.id},
                    )

                await deps.notifications.notify_pro_direct_lead_expired(professional.id, lead)

            except Exception as e:
                results.errors += 1
                logger.error(
                    f"Error expiring direct lead {candidate.id}: {e}",
                    extra={"lead_id": candidate.id},
                    exc_info=True,
                )

    except Exception as e:
        results.errors += 1
        logger.exception(f"Critical error in direct lead expiry job: {e}")

    logger.info(
        f"Direct lead expiry job completed: found={results.found}, converted={results.converted}, "
        f"skipped={results.skipped}, errors={results.errors}",
        extra={"job_name": JOB_NAME},
    )
    await update_health_check(
        JOB_NAME,
        datetime.now(UTC),
        "healthy" if results.errors == 0 else "unhealthy",
        results.converted,
        results.errors,
    )
    return results
