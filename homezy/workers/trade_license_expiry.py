"""
Trade License Expiry Job - Warns professionals about expiring licenses.

Runs daily at 09:00 local time by default (TRADE_LICENSE_EXPIRY_CRON).

Two independent sweeps (a failure in one does not stop the other):
1. Licenses expiring in exactly 7 days that were not warned yet: email and
   notify the professional, alert admins, set the one-time 7-day marker.
2. Licenses already expired and not reminded today: email and notify the
   professional; admins hear about it on days 1, 7 and 14 after expiry and
   every 30 days after that.

A marker is claimed with a guarded update before anything is sent, so two
overlapping runs cannot both notify the same professional. When the email to
the professional fails the marker is restored and the next run retries.
"""

import logging
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta

from sqlalchemy import or_, select, update
from sqlalchemy.orm import InstrumentedAttribute

from database.models import User, UserRole
from homezy.constants import TRADE_LICENSE_ADMIN_ALERT_DAYS, TRADE_LICENSE_WARNING_DAYS
from homezy.utils.date_utils import local_date, start_of_local_day
from homezy.workers.dependencies import WorkerDependencies
from homezy.workers.health import update_health_check

logger = logging.getLogger(__name__)

JOB_NAME = "trade_license_expiry"


@dataclass
class LicenseResults:
    warnings_sent: int = 0
    expired_reminders_sent: int = 0
    admin_alerts: int = 0
    errors: int = 0


def should_alert_admins(days_since_expiry: int) -> bool:
    """Admins are alerted on days 1, 7 and 14 after expiry, then every 30 days."""
    if days_since_expiry <= 0:
        return False
    return days_since_expiry in TRADE_LICENSE_ADMIN_ALERT_DAYS or days_since_expiry % 30 == 0


# ============================================================================
# Marker helpers
# ============================================================================


async def _claim_marker(
    deps: WorkerDependencies,
    professional_id,
    column: InstrumentedAttribute,
    now: datetime,
    not_before: datetime | None = None,
) -> bool:
    """Set a marker column to `now` if it is unset (or older than `not_before`)."""
    condition = column.is_(None)
    if not_before is not None:
        condition = or_(column.is_(None), column < not_before)
    async with deps.session_factory() as session:
        result = await session.execute(
            update(User)
            .where(User.id == professional_id, condition)
            .values({column.key: now})
            .execution_options(synchronize_session=False)
        )
        await session.commit()
        return result.rowcount == 1


async def _release_marker(
    deps: WorkerDependencies,
    professional_id,
    column: InstrumentedAttribute,
    claimed_at: datetime,
    previous: datetime | None,
) -> None:
    async with deps.session_factory() as session:
        await session.execute(
            update(User)
            .where(User.id == professional_id, column == claimed_at)
            .values({column.key: previous})
            .execution_options(synchronize_session=False)
        )
        await session.commit()


async def _load_admins(deps: WorkerDependencies) -> list[User]:
    async with deps.session_factory() as session:
        result = await session.execute(select(User).where(User.role == UserRole.ADMIN))
        return list(result.scalars().all())


async def _alert_admins(
    deps: WorkerDependencies,
    admins: list[User],
    professional: User,
    expired: bool,
    days: int,
) -> int:
    """Email every admin (each failure logged on its own) and notify in-app."""
    for admin in admins:
        try:
            result = await deps.email.send_admin_trade_license_alert(admin, professional, expired, days)
            if not result.ok:
                logger.warning(f"Admin license alert to {admin.id} not delivered: {result.error}")
        except Exception as e:
            logger.error(f"Error emailing admin {admin.id} about {professional.id}: {e}", exc_info=True)
    return await deps.notifications.notify_admins_trade_license_expiry(professional, expired, days)


# ============================================================================
# Sweeps
# ============================================================================


async def _warn_expiring_soon(
    deps: WorkerDependencies, today: date, now: datetime, admins: list[User], results: LicenseResults
) -> None:
    target = today + timedelta(days=TRADE_LICENSE_WARNING_DAYS)
    marker = User.trade_license_expiry_notification_7days_sent

    async with deps.session_factory() as session:
        result = await session.execute(
            select(User).where(
                User.role == UserRole.PRO,
                User.trade_license_expiry == target,
                marker.is_(None),
            )
        )
        professionals = list(result.scalars().all())

    logger.info(f"Found {len(professionals)} trade licenses expiring on {target.isoformat()}")

    for professional in professionals:
        try:
            if not await _claim_marker(deps, professional.id, marker, now):
                continue

            email_result = await deps.email.send_trade_license_expiry_warning(
                professional, TRADE_LICENSE_WARNING_DAYS
            )
            if not email_result.ok:
                await _release_marker(deps, professional.id, marker, now, None)
                email_result.raise_for_error()

            await deps.notifications.notify_pro_trade_license_expiring(professional, TRADE_LICENSE_WARNING_DAYS)
            results.admin_alerts += await _alert_admins(
                deps, admins, professional, expired=False, days=TRADE_LICENSE_WARNING_DAYS
            )
            results.warnings_sent += 1
            logger.info(
                f"7-day license warning sent to professional {professional.id}",
                extra={"professional_id": professional.id},
            )

        except Exception as e:
            results.errors += 1
            logger.error(
                f"Error warning professional {professional.id}: {e}",
                extra={"professional_id": professional.id},
                exc_info=True,
            )


async def _remind_expired(
    deps: WorkerDependencies, today: date, now: datetime, admins: list[User], results: LicenseResults
) -> None:
    day_start = start_of_local_day(today)
    marker = User.trade_license_expiry_notification_daily_sent

    async with deps.session_factory() as session:
        result = await session.execute(
            select(User).where(
                User.role == UserRole.PRO,
                User.trade_license_expiry < today,
                or_(marker.is_(None), marker < day_start),
            )
        )
        professionals = list(result.scalars().all())

    logger.info(f"Found {len(professionals)} expired trade licenses not reminded today")

    for professional in professionals:
        days_since = (today - professional.trade_license_expiry).days
        previous = professional.trade_license_expiry_notification_daily_sent
        try:
            if not await _claim_marker(deps, professional.id, marker, now, not_before=day_start):
                continue

            email_result = await deps.email.send_trade_license_expired_reminder(professional, days_since)
            if not email_result.ok:
                await _release_marker(deps, professional.id, marker, now, previous)
                email_result.raise_for_error()

            await deps.notifications.notify_pro_trade_license_expired(professional, days_since)
            if should_alert_admins(days_since):
                results.admin_alerts += await _alert_admins(
                    deps, admins, professional, expired=True, days=days_since
                )
            results.expired_reminders_sent += 1
            logger.info(
                f"Expired license reminder sent to professional {professional.id} (day {days_since})",
                extra={"professional_id": professional.id},
            )

        except Exception as e:
            results.errors += 1
            logger.error(
                f"Error reminding professional {professional.id}: {e}",
                extra={"professional_id": professional.id},
                exc_info=True,
            )


async def run_trade_license_expiry(deps: WorkerDependencies) -> LicenseResults:
    """
    Run both license sweeps.

    Returns:
        LicenseResults with per-run counters
    """
    now = deps.clock()
    today = local_date(now)
    results = LicenseResults()
    logger.info(f"Starting trade license expiry job at {now.isoformat()}", extra={"job_name": JOB_NAME})

    admins: list[User] = []
    try:
        admins = await _load_admins(deps)
    except Exception as e:
        results.errors += 1
        logger.exception(f"Could not load admins, license alerts go to professionals only: {e}")

    for sweep in (_warn_expiring_soon, _remind_expired):
        try:
            await sweep(deps, today, now, admins, results)
        except Exception as e:
            results.errors += 1
            logger.exception(f"Critical error in trade license sweep {sweep.__name__}: {e}")

    logger.info(
        f"Trade license expiry job completed: warnings={results.warnings_sent}, "
        f"expired_reminders={results.expired_reminders_sent}, admin_alerts={results.admin_alerts}, "
        f"errors={results.errors}",
        extra={"job_name": JOB_NAME},
    )
    await update_health_check(
        JOB_NAME,
        datetime.now(UTC),
        "healthy" if results.errors == 0 else "unhealthy",
        results.warnings_sent + results.expired_reminders_sent,
        results.errors,
    )
    return results
