"""
Direct Lead Reminder Job - Nudges professionals before a direct lead expires.

Runs every 10 minutes by default (DIRECT_LEAD_REMINDERS_CRON).

Two reminders per lead:
- reminder 1 once 12 hours or less remain
- reminder 2 once 1 hour or less remains

A lead first seen with under an hour left gets both in the same pass,
reminder 1 first. Each reminder is sent and then its flag is flipped; a
failed send leaves the flag unset so the next run tries again. Reminder 2
is never sent ahead of reminder 1: when reminder 1 fails, reminder 2 for
that lead waits for the next run.
"""

import logging
import math
from dataclasses import dataclass
from datetime import UTC, datetime

from database.models import Lead, User
from homezy.constants import DIRECT_LEAD_REMINDER1_HOURS, DIRECT_LEAD_REMINDER2_HOURS
from homezy.workers.dependencies import WorkerDependencies
from homezy.workers.health import update_health_check

logger = logging.getLogger(__name__)

JOB_NAME = "direct_lead_reminders"


@dataclass
class ReminderResults:
    checked: int = 0
    reminder1_sent: int = 0
    reminder2_sent: int = 0
    errors: int = 0


async def _send_reminder(
    deps: WorkerDependencies,
    lead: Lead,
    professional: User,
    reminder: int,
    hours_until_expiry: float,
) -> bool:
    if reminder == 1:
        result = await deps.email.send_direct_lead_reminder1(
            professional, lead, math.ceil(hours_until_expiry)
        )
    else:
        result = await deps.email.send_direct_lead_reminder2(
            professional, lead, max(1, math.ceil(hours_until_expiry * 60))
        )
    result.raise_for_error()

    if not await deps.direct_leads.mark_reminder_sent(lead.id, reminder):
        logger.info(f"Reminder {reminder} for lead {lead.id} was already recorded", extra={"lead_id": lead.id})
        return False

    logger.info(
        f"Reminder {reminder} sent for lead {lead.id} ({hours_until_expiry:.1f}h left)",
        extra={"lead_id": lead.id, "professional_id": professional.id},
    )
    return True


async def send_direct_lead_reminders(deps: WorkerDependencies) -> ReminderResults:
    """
    Send the 12h and 1h reminders for pending direct leads.

    Returns:
        ReminderResults with per-run counters
    """
    now = deps.clock()
    results = ReminderResults()
    logger.info(f"Starting direct lead reminder job at {now.isoformat()}", extra={"job_name": JOB_NAME})

    try:
        leads = await deps.direct_leads.find_open_pending(now)
        results.checked = len(leads)

        for lead in leads:
            hours_left = lead.hours_until_direct_expiry(now)
            due1 = hours_left <= DIRECT_LEAD_REMINDER1_HOURS and not lead.reminder1_sent
            due2 = hours_left <= DIRECT_LEAD_REMINDER2_HOURS and not lead.reminder2_sent
            if not (due1 or due2):
                continue

            try:
                professional = await deps.direct_leads.get_user(lead.target_professional_id)
            except Exception as e:
                results.errors += 1
                logger.error(f"Error loading professional for lead {lead.id}: {e}", exc_info=True)
                continue
            if professional is None:
                logger.warning(
                    f"Target professional {lead.target_professional_id} not found for lead {lead.id}",
                    extra={"lead_id": lead.id},
                )
                continue

            if due1:
                try:
                    if await _send_reminder(deps, lead, professional, 1, hours_left):
                        results.reminder1_sent += 1
                except Exception as e:
                    results.errors += 1
                    logger.error(
                        f"Error sending reminder 1 for lead {lead.id}: {e}",
                        extra={"lead_id": lead.id},
                        exc_info=True,
                    )
                    # Reminder 2 waits until reminder 1 has gone out
                    continue

            if due2:
                try:
                    if await _send_reminder(deps, lead, professional, 2, hours_left):
                        results.reminder2_sent += 1
                except Exception as e:
                    results.errors += 1
                    logger.error(
                        f"Error sending reminder 2 for lead {lead.id}: {e}",
                        extra={"lead_id": lead.id},
                        exc_info=True,
                    )

    except Exception as e:
        results.errors += 1
        logger.exception(f"Critical error in direct lead reminder job: {e}")

    logger.info(
        f"Direct lead reminder job completed: checked={results.checked}, "
        f"reminder1={results.reminder1_sent}, reminder2={results.reminder2_sent}, errors={results.errors}",
        extra={"job_name": JOB_NAME},
    )
    await update_health_check(
        JOB_NAME,
        datetime.now(UTC),
        "healthy" if results.errors == 0 else "unhealthy",
        results.reminder1_sent + results.reminder2_sent,
        results.errors,
    )
    return results
