"""
Service Reminder store.

CRUD, homeowner queries and lifecycle operations for service reminders.

Ownership:
    Every homeowner-facing operation is scoped by homeowner_id. A reminder
    that does not exist and one that belongs to someone else are
    indistinguishable: both return None (delete returns False).

Invalid transitions:
    Operations that do not apply to the reminder's current status (resume on
    a reminder that is not paused, any change to a converted reminder)
    return None instead of raising.

Snooze expiry:
    Every read-then-save path runs reactivate_if_snooze_elapsed() before
    persisting, so a snoozed reminder whose snooze_until has passed is saved
    back as active.
"""

import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from database.connection import get_session_factory
from database.models import (
    HomeServiceCategory,
    ReminderChannel,
    ReminderFrequency,
    ReminderSend,
    ReminderStatus,
    ServiceReminder,
)
from homezy.constants import DEFAULT_REMINDER_LEAD_DAYS
from homezy.schemas import ServiceReminderCreate, ServiceReminderUpdate
from homezy.utils.date_utils import local_date, local_day_bounds, utc_now
from homezy.utils.frequency import next_due_date

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
ReminderChange = Callable[[ServiceReminder, datetime], bool]


def reactivate_if_snooze_elapsed(reminder: ServiceReminder, now: datetime) -> bool:
    if (
        reminder.status == ReminderStatus.SNOOZED
        and reminder.snooze_until is not None
        and now >= reminder.snooze_until
    ):
        reminder.status = ReminderStatus.ACTIVE
        reminder.snooze_until = None
        logger.info(
            f"Snooze elapsed, reminder {reminder.id} reactivated",
            extra={"reminder_id": reminder.id},
        )
        return True
    return False


class ReminderService:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        clock: Clock = utc_now,
    ):
        self.session_factory = session_factory or get_session_factory()
        self.clock = clock

    # =========================================================================
    # Internal helpers
    # =========================================================================

    @staticmethod
    async def _load(
        session: AsyncSession, reminder_id: UUID, homeowner_id: UUID
    ) -> ServiceReminder | None:
        result = await session.execute(
            select(ServiceReminder).where(
                ServiceReminder.id == reminder_id,
                ServiceReminder.homeowner_id == homeowner_id,
            )
        )
        return result.scalar_one_or_none()

    async def _apply(
        self, reminder_id: UUID, homeowner_id: UUID, change: ReminderChange
    ) -> ServiceReminder | None:
        """
        Load, run the snooze guard, apply `change`, persist.

        `change` returns False to refuse the transition; the snooze guard's
        effect is persisted either way.
        """
        now = self.clock()
        async with self.session_factory() as session:
            reminder = await self._load(session, reminder_id, homeowner_id)
            if reminder is None:
                return None

            reactivate_if_snooze_elapsed(reminder, now)
            applied = change(reminder, now)
            await session.commit()
            return reminder if applied else None

    @staticmethod
    def _homeowner_filters(
        homeowner_id: UUID, property_id: UUID | None
    ) -> list:
        filters = [ServiceReminder.homeowner_id == homeowner_id]
        if property_id is not None:
            filters.append(ServiceReminder.property_id == property_id)
        return filters

    # =========================================================================
    # CRUD
    # =========================================================================

    async def create(self, homeowner_id: UUID, data: ServiceReminderCreate) -> ServiceReminder:
        """
        Create a reminder.

        next_due_date is the explicit value when given, else one frequency
        step after last_service_date, else one step after now.
        """
        now = self.clock()
        if data.next_due_date is not None:
            due = data.next_due_date
        else:
            base = data.last_service_date or now
            due = next_due_date(base, data.frequency, data.custom_interval_days)

        reminder = ServiceReminder(
            homeowner_id=homeowner_id,
            property_id=data.property_id,
            category=data.category,
            title=data.title,
            description=data.description,
            trigger_type=data.trigger_type,
            frequency=data.frequency,
            custom_interval_days=data.custom_interval_days,
            last_service_date=data.last_service_date,
            next_due_date=due,
            reminder_lead_days=data.reminder_lead_days or list(DEFAULT_REMINDER_LEAD_DAYS),
            status=ReminderStatus.ACTIVE,
            reminders_sent=[],
        )
        async with self.session_factory() as session:
            session.add(reminder)
            await session.commit()

        logger.info(
            f"Reminder created: {reminder.category.value} '{reminder.title}' "
            f"due {reminder.next_due_date.isoformat()} ({reminder.trigger_type.value})",
            extra={"reminder_id": reminder.id, "homeowner_id": homeowner_id},
        )
        return reminder

    async def get_by_id(self, reminder_id: UUID, homeowner_id: UUID) -> ServiceReminder | None:
        return await self._apply(reminder_id, homeowner_id, lambda reminder, now: True)

    async def list_for_homeowner(
        self,
        homeowner_id: UUID,
        property_id: UUID | None = None,
        category: HomeServiceCategory | None = None,
        status: ReminderStatus | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[ServiceReminder], int]:
        """List a homeowner's reminders by next_due_date ascending, with the total count."""
        filters = self._homeowner_filters(homeowner_id, property_id)
        if category is not None:
            filters.append(ServiceReminder.category == category)
        if status is not None:
            filters.append(ServiceReminder.status == status)

        async with self.session_factory() as session:
            total = await session.scalar(
                select(func.count()).select_from(ServiceReminder).where(*filters)
            )
            result = await session.execute(
                select(ServiceReminder)
                .where(*filters)
                .order_by(ServiceReminder.next_due_date.asc())
                .limit(limit)
                .offset(offset)
            )
            return list(result.scalars().all()), total or 0

    async def get_upcoming(
        self,
        homeowner_id: UUID,
        property_id: UUID | None = None,
        days_ahead: int = 30,
        limit: int = 10,
    ) -> list[ServiceReminder]:
        """Reminders due within `days_ahead` days that are active or whose snooze has elapsed."""
        now = self.clock()
        filters = self._homeowner_filters(homeowner_id, property_id)
        filters += [
            ServiceReminder.next_due_date >= now,
            ServiceReminder.next_due_date <= now + timedelta(days=days_ahead),
            or_(
                ServiceReminder.status == ReminderStatus.ACTIVE,
                and_(
                    ServiceReminder.status == ReminderStatus.SNOOZED,
                    ServiceReminder.snooze_until <= now,
                ),
            ),
        ]
        async with self.session_factory() as session:
            result = await session.execute(
                select(ServiceReminder)
                .where(*filters)
                .order_by(ServiceReminder.next_due_date.asc())
                .limit(limit)
            )
            return list(result.scalars().all())

    async def get_overdue(
        self,
        homeowner_id: UUID,
        property_id: UUID | None = None,
        limit: int = 10,
    ) -> list[ServiceReminder]:
        now = self.clock()
        filters = self._homeowner_filters(homeowner_id, property_id)
        filters += [
            ServiceReminder.status == ReminderStatus.ACTIVE,
            ServiceReminder.next_due_date < now,
        ]
        async with self.session_factory() as session:
            result = await session.execute(
                select(ServiceReminder)
                .where(*filters)
                .order_by(ServiceReminder.next_due_date.asc())
                .limit(limit)
            )
            return list(result.scalars().all())

    async def update(
        self, reminder_id: UUID, homeowner_id: UUID, data: ServiceReminderUpdate
    ) -> ServiceReminder | None:
        """
        Apply the explicitly provided mutable fields.

        When the frequency (or custom interval) changes and the last service
        date is known, next_due_date is recomputed from it, unless the same
        update sets next_due_date explicitly; the explicit date wins.

        Raises:
            ValueError: If the result would be a custom frequency without an interval
        """
        fields = data.model_fields_set
        explicit_due = "next_due_date" in fields and data.next_due_date is not None

        def change(reminder: ServiceReminder, now: datetime) -> bool:
            schedule_changed = False

            if "title" in fields and data.title is not None:
                reminder.title = data.title
            if "description" in fields:
                reminder.description = data.description
            if "reminder_lead_days" in fields and data.reminder_lead_days is not None:
                reminder.reminder_lead_days = data.reminder_lead_days
            if explicit_due:
                reminder.next_due_date = data.next_due_date

            if "frequency" in fields and data.frequency is not None:
                schedule_changed = data.frequency != reminder.frequency
                reminder.frequency = data.frequency
            if "custom_interval_days" in fields:
                schedule_changed = schedule_changed or (
                    data.custom_interval_days != reminder.custom_interval_days
                )
                reminder.custom_interval_days = data.custom_interval_days

            if reminder.frequency == ReminderFrequency.CUSTOM:
                if reminder.custom_interval_days is None:
                    raise ValueError("custom_interval_days is required when frequency is custom")
            else:
                reminder.custom_interval_days = None

            if schedule_changed and not explicit_due and reminder.last_service_date is not None:
                reminder.next_due_date = next_due_date(
                    reminder.last_service_date,
                    reminder.frequency,
                    reminder.custom_interval_days,
                )
            return True

        return await self._apply(reminder_id, homeowner_id, change)

    async def delete(self, reminder_id: UUID, homeowner_id: UUID) -> bool:
        async with self.session_factory() as session:
            reminder = await self._load(session, reminder_id, homeowner_id)
            if reminder is None:
                return False
            await session.delete(reminder)
            await session.commit()

        logger.info(
            f"Reminder {reminder_id} deleted",
            extra={"reminder_id": reminder_id, "homeowner_id": homeowner_id},
        )
        return True

    # =========================================================================
    # Lifecycle operations
    # =========================================================================

    async def snooze(
        self, reminder_id: UUID, homeowner_id: UUID, days: int
    ) -> ServiceReminder | None:
        def change(reminder: ServiceReminder, now: datetime) -> bool:
            if reminder.status == ReminderStatus.CONVERTED_TO_QUOTE:
                return False
            reminder.status = ReminderStatus.SNOOZED
            reminder.snooze_until = now + timedelta(days=days)
            return True

        return await self._apply(reminder_id, homeowner_id, change)

    async def pause(self, reminder_id: UUID, homeowner_id: UUID) -> ServiceReminder | None:
        def change(reminder: ServiceReminder, now: datetime) -> bool:
            if reminder.status == ReminderStatus.CONVERTED_TO_QUOTE:
                return False
            reminder.status = ReminderStatus.PAUSED
            reminder.snooze_until = None
            return True

        return await self._apply(reminder_id, homeowner_id, change)

    async def resume(self, reminder_id: UUID, homeowner_id: UUID) -> ServiceReminder | None:
        """Resume a paused reminder. Any other status is refused (None)."""

        def change(reminder: ServiceReminder, now: datetime) -> bool:
            if reminder.status != ReminderStatus.PAUSED:
                return False
            reminder.status = ReminderStatus.ACTIVE
            return True

        return await self._apply(reminder_id, homeowner_id, change)

    async def complete(
        self,
        reminder_id: UUID,
        homeowner_id: UUID,
        service_date: datetime | None = None,
    ) -> ServiceReminder | None:
        """
        Mark the service as performed and roll the reminder to its next cycle.

        last_service_date becomes service_date (or now), next_due_date is one
        frequency step later, status is active and the sent-notification log
        is emptied.
        """

        def change(reminder: ServiceReminder, now: datetime) -> bool:
            if reminder.status == ReminderStatus.CONVERTED_TO_QUOTE:
                return False
            performed = service_date or now
            reminder.last_service_date = performed
            reminder.next_due_date = next_due_date(
                performed, reminder.frequency, reminder.custom_interval_days
            )
            reminder.status = ReminderStatus.ACTIVE
            reminder.snooze_until = None
            reminder.reminders_sent.clear()
            return True

        return await self._apply(reminder_id, homeowner_id, change)

    async def convert_to_quote(
        self, reminder_id: UUID, homeowner_id: UUID, lead_id: UUID
    ) -> ServiceReminder | None:
        def change(reminder: ServiceReminder, now: datetime) -> bool:
            if reminder.status == ReminderStatus.CONVERTED_TO_QUOTE:
                return reminder.lead_id == lead_id
            reminder.status = ReminderStatus.CONVERTED_TO_QUOTE
            reminder.snooze_until = None
            reminder.lead_id = lead_id
            return True

        return await self._apply(reminder_id, homeowner_id, change)

    # =========================================================================
    # Notification job support
    # =========================================================================

    async def reminders_needing_notification(
        self, days_before_due: int, now: datetime | None = None
    ) -> list[ServiceReminder]:
        """
        Active reminders due exactly `days_before_due` local days from today
        that include that lead day and have not been notified for it yet.
        """
        now = now or self.clock()
        target_day = local_date(now) + timedelta(days=days_before_due)
        start, end = local_day_bounds(target_day)

        async with self.session_factory() as session:
            result = await session.execute(
                select(ServiceReminder)
                .where(
                    ServiceReminder.status == ReminderStatus.ACTIVE,
                    ServiceReminder.next_due_date >= start,
                    ServiceReminder.next_due_date < end,
                )
                .order_by(ServiceReminder.next_due_date.asc())
            )
            candidates = result.scalars().all()

        return [
            r
            for r in candidates
            if days_before_due in (r.reminder_lead_days or []) and not r.was_sent_for(days_before_due)
        ]

    async def record_reminder_sent(
        self,
        reminder_id: UUID,
        channel: ReminderChannel,
        days_before_due: int,
        sent_at: datetime | None = None,
    ) -> None:
        async with self.session_factory() as session:
            session.add(
                ReminderSend(
                    reminder_id=reminder_id,
                    channel=channel,
                    days_before_due=days_before_due,
                    sent_at=sent_at or self.clock(),
                )
            )
            await session.commit()

