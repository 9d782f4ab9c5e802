"""Pattern-based and seasonal reminder generation, through the service and the jobs."""

from decimal import Decimal

import pytest
from sqlalchemy import select

from database.models import (
    HomeServiceCategory,
    ReminderFrequency,
    ReminderTriggerType,
    ServiceReminder,
)
from homezy.schemas import ServiceReminderCreate
from homezy.workers.seasonal_reminders import run_seasonal_reminders
from homezy.workers.service_pattern_analysis import run_service_pattern_analysis
from tests.helpers import utc


async def all_reminders(session_factory, homeowner_id) -> list[ServiceReminder]:
    async with session_factory() as session:
        result = await session.execute(
            select(ServiceReminder).where(ServiceReminder.homeowner_id == homeowner_id)
        )
        return list(result.scalars().all())


async def record_quarterly_hvac(deps, homeowner_id):
    # 91-day gaps
    for completed in (utc(2023, 9, 1, 6), utc(2023, 12, 1, 6), utc(2024, 3, 1, 6)):
        await deps.service_history.record_service(
            homeowner_id, HomeServiceCategory.HVAC, "AC service", completed, cost=Decimal("250.00")
        )


class TestServicePattern:
    @pytest.mark.asyncio
    async def test_detects_average_gap(self, deps, factory):
        homeowner = await factory.homeowner()
        await record_quarterly_hvac(deps, homeowner.id)

        pattern = await deps.service_history.detect_service_pattern(homeowner.id, HomeServiceCategory.HVAC)
        assert pattern.service_count == 3
        assert pattern.frequency_days == 91

        last = await deps.service_history.get_last_service_by_category(homeowner.id, HomeServiceCategory.HVAC)
        assert last.completed_at == utc(2024, 3, 1, 6)
        assert last.cost == Decimal("250.00")

    @pytest.mark.asyncio
    async def test_single_service_has_no_pattern(self, deps, factory):
        homeowner = await factory.homeowner()
        await factory.service(homeowner.id, HomeServiceCategory.POOL, utc(2024, 5, 1))

        pattern = await deps.service_history.detect_service_pattern(homeowner.id, HomeServiceCategory.POOL)
        assert pattern.service_count == 1
        assert pattern.frequency_days is None


class TestPatternSync:
    @pytest.mark.asyncio
    async def test_creates_quarterly_reminder(self, deps, factory, session_factory):
        homeowner = await factory.homeowner()
        await record_quarterly_hvac(deps, homeowner.id)

        result = await deps.pattern_sync.sync_reminders_from_service_history(homeowner.id)

        assert (result.created, result.updated) == (1, 0)
        [reminder] = await all_reminders(session_factory, homeowner.id)
        assert reminder.trigger_type == ReminderTriggerType.PATTERN_BASED
        assert reminder.frequency == ReminderFrequency.QUARTERLY
        assert reminder.last_service_date == utc(2024, 3, 1, 6)
        assert reminder.next_due_date == utc(2024, 6, 1, 6)
        assert reminder.title == "HVAC Service"

    @pytest.mark.asyncio
    async def test_rerun_updates_instead_of_duplicating(self, deps, factory, session_factory):
        homeowner = await factory.homeowner()
        await record_quarterly_hvac(deps, homeowner.id)

        await deps.pattern_sync.sync_reminders_from_service_history(homeowner.id)
        await factory.service(homeowner.id, HomeServiceCategory.HVAC, utc(2024, 6, 1, 6))
        result = await deps.pattern_sync.sync_reminders_from_service_history(homeowner.id)

        assert (result.created, result.updated) == (0, 1)
        [reminder] = await all_reminders(session_factory, homeowner.id)
        assert reminder.next_due_date == utc(2024, 9, 1, 6)

    @pytest.mark.asyncio
    async def test_custom_reminder_in_same_category_untouched(self, deps, factory, session_factory):
        homeowner = await factory.homeowner()
        custom = await deps.reminders.create(
            homeowner.id,
            ServiceReminderCreate(
                category=HomeServiceCategory.HVAC,
                title="My AC",
                frequency=ReminderFrequency.ANNUAL,
                next_due_date=utc(2025, 1, 1),
            ),
        )
        await record_quarterly_hvac(deps, homeowner.id)

        await deps.pattern_sync.sync_reminders_from_service_history(homeowner.id)

        reminders = {r.id: r for r in await all_reminders(session_factory, homeowner.id)}
        assert len(reminders) == 2
        assert reminders[custom.id].next_due_date == utc(2025, 1, 1)

    @pytest.mark.asyncio
    async def test_analysis_job_counts(self, deps, factory):
        first = await factory.homeowner()
        second = await factory.homeowner()
        await record_quarterly_hvac(deps, first.id)

        results = await run_service_pattern_analysis(deps)
        assert results.users_processed == 2
        assert results.reminders_created == 1
        assert results.errors == 0

        results = await run_service_pattern_analysis(deps, homeowner_id=second.id)
        assert results.users_processed == 1
        assert results.reminders_created == 0


class TestSeasonalReminders:
    @pytest.mark.asyncio
    async def test_march_creates_ac_checkup_due_april_first(self, deps, factory, clock, session_factory):
        clock.set(utc(2024, 3, 5, 6))
        homeowner = await factory.homeowner()

        created = await deps.seasonal.create_seasonal_reminders(homeowner.id)

        assert created == 1
        [reminder] = await all_reminders(session_factory, homeowner.id)
        assert reminder.category == HomeServiceCategory.HVAC
        assert reminder.trigger_type == ReminderTriggerType.SEASONAL
        assert reminder.title == "Pre-Summer AC Checkup"
        # Local midnight on April 1st in Dubai
        assert reminder.next_due_date == utc(2024, 3, 31, 20)
        assert reminder.reminder_lead_days == [14, 7, 1]

    @pytest.mark.asyncio
    async def test_second_run_same_month_creates_nothing(self, deps, factory, clock):
        clock.set(utc(2024, 3, 5, 6))
        homeowner = await factory.homeowner()

        assert await deps.seasonal.create_seasonal_reminders(homeowner.id) == 1
        clock.advance(days=10)
        assert await deps.seasonal.create_seasonal_reminders(homeowner.id) == 0

    @pytest.mark.asyncio
    async def test_month_without_entries(self, deps, factory):
        homeowner = await factory.homeowner()
        # Clock is in June
        assert await deps.seasonal.create_seasonal_reminders(homeowner.id) == 0

    @pytest.mark.asyncio
    async def test_job_skips_opted_out_homeowners(self, deps, factory, session_factory):
        enabled = await factory.homeowner()
        opted_out = await factory.homeowner(seasonal_reminders_enabled=False)
        prop = await factory.property(enabled.id)

        results = await run_seasonal_reminders(deps, now=utc(2024, 11, 1, 4))

        assert results.users_processed == 1
        assert results.reminders_created == 1
        [reminder] = await all_reminders(session_factory, enabled.id)
        assert reminder.category == HomeServiceCategory.PLUMBING
        assert reminder.property_id == prop.id
        assert await all_reminders(session_factory, opted_out.id) == []
