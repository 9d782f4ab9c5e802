"""
Seasonal Reminder Generator.

UAE climate calendar: AC checks before and after the summer heat, and a
water heater check before winter. Each monthly run creates the reminders for
the current month's entries, due on the first day of next month.
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
    ReminderFrequency,
    ReminderStatus,
    ReminderTriggerType,
    ServiceReminder,
)
from homezy.constants import SEASONAL_REMINDER_LEAD_DAYS
from homezy.services.reminder_service import Clock
from homezy.utils.date_utils import local_date, next_month_bounds, utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SeasonalEntry:
    category: HomeServiceCategory
    title: str
    description: str


SEASONAL_CALENDAR: dict[int, list[SeasonalEntry]] = {
    3: [
        SeasonalEntry(
            HomeServiceCategory.HVAC,
            "Pre-Summer AC Checkup",
            "Summer is coming! Schedule your AC maintenance before the heat hits.",
        ),
    ],
    4: [
        SeasonalEntry(
            HomeServiceCategory.HVAC,
            "AC Service Reminder",
            "Get your AC serviced before summer temperatures peak.",
        ),
    ],
    9: [
        SeasonalEntry(
            HomeServiceCategory.HVAC,
            "Post-Summer AC Service",
            "Your AC worked hard this summer. Time for a service check.",
        ),
    ],
    11: [
        SeasonalEntry(
            HomeServiceCategory.PLUMBING,
            "Water Heater Check",
            "Winter is approaching. Make sure your water heater is working properly.",
        ),
    ],
}


class SeasonalReminderService:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        clock: Clock = utc_now,
    ):
        self.session_factory = session_factory or get_session_factory()
        self.clock = clock

    async def create_seasonal_reminders(
        self,
        homeowner_id: UUID,
        property_id: UUID | None = None,
        now: datetime | None = None,
    ) -> int:
        """
        Create this month's seasonal reminders for one homeowner.

        Skips any entry whose category already has a seasonal reminder due
        next month, so repeated runs in the same month create nothing.

        Returns:
            Number of reminders created
        """
        now = now or self.clock()
        entries = SEASONAL_CALENDAR.get(local_date(now).month, [])
        if not entries:
            return 0

        start, end = next_month_bounds(now)
        created = 0

        async with self.session_factory() as session:
            for entry in entries:
                existing = await session.scalar(
                    select(ServiceReminder.id)
                    .where(
                        ServiceReminder.homeowner_id == homeowner_id,
                        ServiceReminder.category == entry.category,
                        ServiceReminder.trigger_type == ReminderTriggerType.SEASONAL,
                        ServiceReminder.next_due_date >= start,
                        ServiceReminder.next_due_date < end,
                    )
                    .limit(1)
                )
                if existing is not None:
                    continue

                session.add(
                    ServiceReminder(
                        homeowner_id=homeowner_id,
                        property_id=property_id,
                        category=entry.category,
                        title=entry.title,
                        description=entry.description,
                        trigger_type=ReminderTriggerType.SEASONAL,
                        frequency=ReminderFrequency.ANNUAL,
                        next_due_date=start,
                        reminder_lead_days=list(SEASONAL_REMINDER_LEAD_DAYS),
                        status=ReminderStatus.ACTIVE,
                        reminders_sent=[],
                    )
                )
                created += 1

            await session.commit()

        if created:
            logger.info(
                f"Created {created} seasonal reminder(s) for homeowner {homeowner_id}",
                extra={"homeowner_id": homeowner_id},
            )
        return created
