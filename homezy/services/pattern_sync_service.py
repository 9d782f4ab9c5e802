"""
Pattern Sync Engine.

Turns recurring service history into pattern-based reminders. For every
category with a default service frequency, a homeowner with at least two
completed services gets a reminder whose frequency is the classified average
gap and whose next due date is one step after the latest completion.

Only pattern-based reminders are touched; seasonal and custom reminders in
the same category are left alone.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from database.connection import get_session_factory
from database.models import (
    HomeServiceCategory,
    ReminderStatus,
    ReminderTriggerType,
    ServiceReminder,
)
from homezy.constants import DEFAULT_REMINDER_LEAD_DAYS, PATTERN_SYNC_CATEGORIES, category_label
from homezy.services.reminder_service import Clock, reactivate_if_snooze_elapsed
from homezy.services.service_history_service import ServiceHistoryService
from homezy.utils.date_utils import utc_now
from homezy.utils.frequency import classify_interval, next_due_date

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    created: int = 0
    updated: int = 0


class PatternSyncService:
    def __init__(
        self,
        history_service: ServiceHistoryService,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        clock: Clock = utc_now,
    ):
        self.history_service = history_service
        self.session_factory = session_factory or get_session_factory()
        self.clock = clock

    async def _find_pattern_reminder(
        self,
        session: AsyncSession,
        homeowner_id: UUID,
        category: HomeServiceCategory,
        property_id: UUID | None,
    ) -> ServiceReminder | None:
        stmt = select(ServiceReminder).where(
            ServiceReminder.homeowner_id == homeowner_id,
            ServiceReminder.category == category,
            ServiceReminder.trigger_type == ReminderTriggerType.PATTERN_BASED,
        )
        if property_id is not None:
            stmt = stmt.where(ServiceReminder.property_id == property_id)
        else:
            stmt = stmt.where(ServiceReminder.property_id.is_(None))
        result = await session.execute(stmt.order_by(ServiceReminder.created_at.asc()).limit(1))
        return result.scalar_one_or_none()

    async def sync_reminders_from_service_history(
        self, homeowner_id: UUID, property_id: UUID | None = None
    ) -> SyncResult:
        """
        Create or update pattern-based reminders from service history.

        Returns:
            SyncResult with the number of reminders created and updated
        """
        result = SyncResult()
        now = self.clock()

        async with self.session_factory() as session:
            for category in PATTERN_SYNC_CATEGORIES:
                pattern = await self.history_service.detect_service_pattern(
                    homeowner_id, category, property_id
                )
                if pattern.service_count < 2 or not pattern.frequency_days:
                    continue

                last_service = await self.history_service.get_last_service_by_category(
                    homeowner_id, category, property_id
                )
                if last_service is None:
                    continue

                frequency = classify_interval(pattern.frequency_days)
                last_date: datetime = last_service.completed_at
                due = next_due_date(last_date, frequency)

                reminder = await self._find_pattern_reminder(
                    session, homeowner_id, category, property_id
                )
                if reminder is not None:
                    reactivate_if_snooze_elapsed(reminder, now)
                    reminder.last_service_date = last_date
                    reminder.frequency = frequency
                    reminder.custom_interval_days = None
                    reminder.next_due_date = due
                    result.updated += 1
                    continue

                label = category_label(category)
                session.add(
                    ServiceReminder(
                        homeowner_id=homeowner_id,
                        property_id=property_id,
                        category=category,
                        title=f"{label} Service",
                        description=(
                            "Based on your service history, it's time for your "
                            f"{frequency.value} {label.lower()} service."
                        ),
                        trigger_type=ReminderTriggerType.PATTERN_BASED,
                        frequency=frequency,
                        last_service_date=last_date,
                        next_due_date=due,
                        reminder_lead_days=list(DEFAULT_REMINDER_LEAD_DAYS),
                        status=ReminderStatus.ACTIVE,
                        reminders_sent=[],
                    )
                )
                result.created += 1

            await session.commit()

        logger.info(
            f"Pattern sync for homeowner {homeowner_id}: "
            f"{result.created} created, {result.updated} updated",
            extra={"homeowner_id": homeowner_id},
        )
        return result
