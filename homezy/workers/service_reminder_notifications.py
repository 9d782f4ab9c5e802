"""
Service Reminder Notification Job - Emails homeowners ahead of due services.

Runs daily at 09:00 local time by default
(SERVICE_REMINDER_NOTIFICATIONS_CRON).

For each lead day (30, 7 and 1 days before due), picks active reminders due
on that local day whose reminder_lead_days include it and that have no send
recorded for it. Every successful email is recorded in the reminder's send
log, which is what keeps a reminder from being emailed twice for the same
lead day.
"""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime

from database.models import Property, ReminderChannel, User
from homezy.constants import NOTIFICATION_LEAD_DAYS
from homezy.workers.dependencies import WorkerDependencies
from homezy.workers.health import update_health_check

logger = logging.getLogger(__name__)

JOB_NAME = "service_reminder_notifications"
DEFAULT_PROPERTY_NAME = "your property"


@dataclass
class NotificationResults:
    checked: int = 0
    sent: int = 0
    skipped: int = 0
    errors: int = 0


async def send_service_reminder_notifications(deps: WorkerDependencies) -> NotificationResults:
    now = deps.clock()
    results = NotificationResults()
    logger.info(f"Starting service reminder notification job at {now.isoformat()}", extra={"job_name": JOB_NAME})

    try:
        for days_before_due in NOTIFICATION_LEAD_DAYS:
            reminders = await deps.reminders.reminders_needing_notification(days_before_due, now)
            results.checked += len(reminders)
            if reminders:
                logger.info(f"Found {len(reminders)} reminders due in {days_before_due} day(s)")

            for reminder in reminders:
                try:
                    async with deps.session_factory() as session:
                        homeowner = await session.get(User, reminder.homeowner_id)
                        prop = (
                            await session.get(Property, reminder.property_id)
                            if reminder.property_id
                            else None
                        )

                    if homeowner is None or not homeowner.email:
                        results.skipped += 1
                        logger.warning(
                            f"No email address for reminder {reminder.id}, skipping",
                            extra={"reminder_id": reminder.id},
                        )
                        continue
                    if not homeowner.service_reminder_emails_enabled:
                        results.skipped += 1
                        continue

                    email_result = await deps.email.send_service_reminder(
                        homeowner,
                        reminder,
                        days_before_due,
                        property_name=prop.name if prop is not None else DEFAULT_PROPERTY_NAME,
                    )
                    email_result.raise_for_error()

                    await deps.reminders.record_reminder_sent(
                        reminder.id, ReminderChannel.EMAIL, days_before_due, sent_at=now
                    )
                    results.sent += 1
                    logger.info(
                        f"Service reminder {reminder.id} emailed ({days_before_due} day(s) before due)",
                        extra={"reminder_id": reminder.id, "homeowner_id": reminder.homeowner_id},
                    )

                except Exception as e:
                    results.errors += 1
                    logger.error(
                        f"Error sending service reminder {reminder.id}: {e}",
                        extra={"reminder_id": reminder.id},
                        exc_info=True,
                    )

    except Exception as e:
        results.errors += 1
        logger.exception(f"Critical error in service reminder notification job: {e}")

    logger.info(
        f"Service reminder notification job completed: checked={results.checked}, sent={results.sent}, "
        f"skipped={results.skipped}, errors={results.errors}",
        extra={"job_name": JOB_NAME},
    )
    await update_health_check(
        JOB_NAME,
        datetime.now(UTC),
        "healthy" if results.errors == 0 else "unhealthy",
        results.sent,
        results.errors,
    )
    return results
