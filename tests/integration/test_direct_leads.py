"""Direct lead state machine, expiry job and reminder job."""

import asyncio
from datetime import timedelta

import pytest
from sqlalchemy import select

from database.models import (
    DirectLeadStatus,
    Lead,
    LeadStatus,
    LeadType,
    Notification,
    VerificationStatus,
)
from homezy.schemas import DirectLeadCreate, LeadCreate
from homezy.services.direct_lead_service import (
    InvalidLeadStateError,
    LeadForbiddenError,
    LeadNotFoundError,
    ProfessionalUnavailableError,
)
from homezy.workers.direct_lead_expiry import expire_direct_leads
from homezy.workers.direct_lead_reminders import send_direct_lead_reminders
from shared.config import get_settings
from shared.results import SendResult


def request_for(professional_id) -> DirectLeadCreate:
    return DirectLeadCreate(
        title="AC not cooling",
        description="Living room split unit blows warm air since yesterday",
        category="hvac",
        emirate="Dubai",
        professional_id=professional_id,
    )


async def notifications_for(session_factory, user_id) -> list[Notification]:
    async with session_factory() as session:
        result = await session.execute(select(Notification).where(Notification.recipient_id == user_id))
        return list(result.scalars().all())


@pytest.fixture
async def parties(factory):
    homeowner = await factory.homeowner()
    professional = await factory.professional()
    return homeowner, professional


class TestCreateDirectLead:
    @pytest.mark.asyncio
    async def test_opens_24_hour_window(self, deps, parties, clock, email_client, session_factory):
        homeowner, professional = parties

        lead = await deps.direct_leads.create_direct_lead(homeowner.id, request_for(professional.id))

        assert lead.lead_type == LeadType.DIRECT
        assert lead.direct_lead_status == DirectLeadStatus.PENDING
        assert lead.direct_lead_expires_at == clock() + timedelta(hours=24)
        assert lead.max_claims == 1
        assert not lead.reminder1_sent and not lead.reminder2_sent

        [email] = email_client.to(professional.email)
        assert email["subject"] == "New direct request: AC not cooling"
        assert len(await notifications_for(session_factory, professional.id)) == 1

    @pytest.mark.asyncio
    async def test_unverified_professional_rejected(self, deps, factory):
        homeowner = await factory.homeowner()
        professional = await factory.professional(verification_status=VerificationStatus.PENDING)

        with pytest.raises(ProfessionalUnavailableError):
            await deps.direct_leads.create_direct_lead(homeowner.id, request_for(professional.id))

    @pytest.mark.asyncio
    async def test_target_must_be_professional(self, deps, factory):
        homeowner = await factory.homeowner()
        other_homeowner = await factory.homeowner()

        with pytest.raises(LeadNotFoundError):
            await deps.direct_leads.create_direct_lead(homeowner.id, request_for(other_homeowner.id))


class TestRespond:
    @pytest.mark.asyncio
    async def test_accept(self, deps, parties, email_client):
        homeowner, professional = parties
        lead = await deps.direct_leads.create_direct_lead(homeowner.id, request_for(professional.id))

        accepted = await deps.direct_leads.accept_direct_lead(lead.id, professional.id)

        assert accepted.direct_lead_status == DirectLeadStatus.ACCEPTED
        assert accepted.status == LeadStatus.FULL
        assert accepted.claim_count == 1
        assert accepted.lead_type == LeadType.DIRECT
        assert email_client.to(homeowner.email)[0]["subject"].endswith("accepted your request")

    @pytest.mark.asyncio
    async def test_accept_twice_refused(self, deps, parties):
        homeowner, professional = parties
        lead = await deps.direct_leads.create_direct_lead(homeowner.id, request_for(professional.id))
        await deps.direct_leads.accept_direct_lead(lead.id, professional.id)

        with pytest.raises(InvalidLeadStateError):
            await deps.direct_leads.accept_direct_lead(lead.id, professional.id)

    @pytest.mark.asyncio
    async def test_accept_after_window_refused(self, deps, parties, clock):
        homeowner, professional = parties
        lead = await deps.direct_leads.create_direct_lead(homeowner.id, request_for(professional.id))

        clock.advance(hours=24, minutes=1)
        with pytest.raises(InvalidLeadStateError):
            await deps.direct_leads.accept_direct_lead(lead.id, professional.id)

    @pytest.mark.asyncio
    async def test_other_professional_forbidden(self, deps, parties, factory):
        homeowner, professional = parties
        intruder = await factory.professional()
        lead = await deps.direct_leads.create_direct_lead(homeowner.id, request_for(professional.id))

        with pytest.raises(LeadForbiddenError):
            await deps.direct_leads.decline_direct_lead(lead.id, intruder.id)

    @pytest.mark.asyncio
    async def test_decline_converts_to_public(self, deps, parties, test_settings):
        homeowner, professional = parties
        lead = await deps.direct_leads.create_direct_lead(homeowner.id, request_for(professional.id))

        declined = await deps.direct_leads.decline_direct_lead(lead.id, professional.id, "Fully booked")

        assert declined.direct_lead_status == DirectLeadStatus.DECLINED
        assert declined.lead_type == LeadType.INDIRECT
        assert declined.claim_count == 0
        assert declined.max_claims == test_settings.MAX_LEAD_CLAIMS
        assert declined.decline_reason == "Fully booked"
        assert declined.converted_to_public_at is not None


class TestPublicLead:
    @pytest.mark.asyncio
    async def test_opens_to_marketplace(self, deps, parties, clock, test_settings):
        homeowner, _ = parties
        data = LeadCreate(
            title="Repaint villa exterior",
            description="Two storey villa, exterior walls and boundary wall need repainting",
            category="painting",
            emirate="Sharjah",
        )

        lead = await deps.direct_leads.create_public_lead(homeowner.id, data)

        stored = await deps.direct_leads.get_lead(lead.id)
        assert stored.lead_type == LeadType.INDIRECT
        assert stored.status == LeadStatus.OPEN
        assert stored.claim_count == 0
        assert stored.max_claims == test_settings.MAX_LEAD_CLAIMS
        assert stored.target_professional_id is None
        assert stored.expires_at == clock() + timedelta(days=test_settings.LEAD_EXPIRY_DAYS)

    @pytest.mark.asyncio
    async def test_claim_cap_matches_expired_direct_lead(self, deps, parties, factory, monkeypatch):
        monkeypatch.setenv("MAX_LEAD_CLAIMS", "8")
        get_settings.cache_clear()
        homeowner, professional = parties
        public = await deps.direct_leads.create_public_lead(homeowner.id, request_for(professional.id))
        direct = await factory.direct_lead(homeowner.id, professional.id, expires_in=timedelta(minutes=-1))

        converted = await deps.direct_leads.expire_direct_lead(direct.id)

        assert public.max_claims == converted.max_claims == 8
        assert public.lead_type == converted.lead_type == LeadType.INDIRECT
        assert public.claim_count == converted.claim_count == 0


class TestExpiry:
    @pytest.mark.asyncio
    async def test_not_due_yet(self, deps, parties):
        homeowner, professional = parties
        lead = await deps.direct_leads.create_direct_lead(homeowner.id, request_for(professional.id))

        assert await deps.direct_leads.expire_direct_lead(lead.id) is None

    @pytest.mark.asyncio
    async def test_concurrent_expiry_has_one_winner(self, deps, parties, factory):
        homeowner, professional = parties
        lead = await factory.direct_lead(homeowner.id, professional.id, expires_in=timedelta(minutes=-5))

        outcomes = await asyncio.gather(
            *(deps.direct_leads.expire_direct_lead(lead.id) for _ in range(4))
        )

        winners = [o for o in outcomes if o is not None]
        assert len(winners) == 1
        assert winners[0].direct_lead_status == DirectLeadStatus.EXPIRED
        assert winners[0].lead_type == LeadType.INDIRECT

    @pytest.mark.asyncio
    async def test_expiry_job_converts_and_notifies(
        self, deps, parties, factory, email_client, session_factory
    ):
        homeowner, professional = parties
        overdue = await factory.direct_lead(homeowner.id, professional.id, expires_in=timedelta(hours=-1))
        still_open = await factory.direct_lead(homeowner.id, professional.id, expires_in=timedelta(hours=3))

        results = await expire_direct_leads(deps)

        assert (results.found, results.converted, results.errors) == (1, 1, 0)
        assert (await factory.get(Lead, overdue.id)).direct_lead_status == DirectLeadStatus.EXPIRED
        assert (await factory.get(Lead, still_open.id)).direct_lead_status == DirectLeadStatus.PENDING

        [email] = email_client.to(homeowner.email)
        assert email["subject"] == "Your request is now open to more professionals"
        assert len(await notifications_for(session_factory, homeowner.id)) == 1
        assert len(await notifications_for(session_factory, professional.id)) == 1

        rerun = await expire_direct_leads(deps)
        assert (rerun.found, rerun.converted) == (0, 0)

    @pytest.mark.asyncio
    async def test_accepted_lead_is_never_expired(self, deps, parties, clock):
        homeowner, professional = parties
        lead = await deps.direct_leads.create_direct_lead(homeowner.id, request_for(professional.id))
        await deps.direct_leads.accept_direct_lead(lead.id, professional.id)

        clock.advance(hours=30)
        results = await expire_direct_leads(deps)

        assert results.found == 0


class TestReminderJob:
    @pytest.mark.asyncio
    async def test_first_reminder_inside_twelve_hours(self, deps, parties, factory, email_client, clock):
        homeowner, professional = parties
        lead = await factory.direct_lead(homeowner.id, professional.id, expires_in=timedelta(hours=11))

        results = await send_direct_lead_reminders(deps)

        assert (results.reminder1_sent, results.reminder2_sent) == (1, 0)
        [email] = email_client.to(professional.email)
        assert email["subject"].startswith("Reminder: 11 hours left")
        stored = await factory.get(Lead, lead.id)
        assert stored.reminder1_sent and not stored.reminder2_sent

        clock.advance(minutes=10)
        results = await send_direct_lead_reminders(deps)
        assert (results.reminder1_sent, results.reminder2_sent) == (0, 0)
        assert len(email_client.to(professional.email)) == 1

    @pytest.mark.asyncio
    async def test_nothing_outside_twelve_hours(self, deps, parties, factory, email_client):
        homeowner, professional = parties
        await factory.direct_lead(homeowner.id, professional.id, expires_in=timedelta(hours=20))

        results = await send_direct_lead_reminders(deps)

        assert results.checked == 1
        assert email_client.sent == []

    @pytest.mark.asyncio
    async def test_both_reminders_when_first_seen_late(self, deps, parties, factory, email_client):
        homeowner, professional = parties
        lead = await factory.direct_lead(homeowner.id, professional.id, expires_in=timedelta(minutes=30))

        results = await send_direct_lead_reminders(deps)

        assert (results.reminder1_sent, results.reminder2_sent) == (1, 1)
        subjects = [e["subject"] for e in email_client.to(professional.email)]
        assert subjects[0].startswith("Reminder: 1 hour left")
        assert subjects[1].startswith("Final reminder: 30 minutes left")
        stored = await factory.get(Lead, lead.id)
        assert stored.reminder1_sent and stored.reminder2_sent

    @pytest.mark.asyncio
    async def test_failed_send_leaves_flag_for_retry(self, deps, parties, factory, monkeypatch):
        homeowner, professional = parties
        lead = await factory.direct_lead(homeowner.id, professional.id, expires_in=timedelta(minutes=30))

        async def failing_reminder2(pro, lead, minutes_remaining):
            return SendResult.failure("email", pro.email, "mailbox unavailable")

        monkeypatch.setattr(deps.email, "send_direct_lead_reminder2", failing_reminder2)
        results = await send_direct_lead_reminders(deps)

        assert (results.reminder1_sent, results.reminder2_sent, results.errors) == (1, 0, 1)
        stored = await factory.get(Lead, lead.id)
        assert stored.reminder1_sent
        assert not stored.reminder2_sent

        monkeypatch.delattr(deps.email, "send_direct_lead_reminder2")
        results = await send_direct_lead_reminders(deps)
        assert (results.reminder1_sent, results.reminder2_sent) == (0, 1)

    @pytest.mark.asyncio
    async def test_final_reminder_waits_for_failed_first_reminder(
        self, deps, parties, factory, email_client, monkeypatch
    ):
        homeowner, professional = parties
        lead = await factory.direct_lead(homeowner.id, professional.id, expires_in=timedelta(minutes=50))

        async def failing_reminder1(pro, lead, hours_remaining):
            return SendResult.failure("email", pro.email, "mailbox unavailable")

        monkeypatch.setattr(deps.email, "send_direct_lead_reminder1", failing_reminder1)
        results = await send_direct_lead_reminders(deps)

        assert (results.reminder1_sent, results.reminder2_sent, results.errors) == (0, 0, 1)
        assert email_client.to(professional.email) == []
        stored = await factory.get(Lead, lead.id)
        assert not stored.reminder1_sent and not stored.reminder2_sent

        monkeypatch.delattr(deps.email, "send_direct_lead_reminder1")
        results = await send_direct_lead_reminders(deps)

        assert (results.reminder1_sent, results.reminder2_sent) == (1, 1)
        subjects = [e["subject"] for e in email_client.to(professional.email)]
        assert subjects[0].startswith("Reminder: 1 hour left")
        assert subjects[1].startswith("Final reminder:")

    @pytest.mark.asyncio
    async def test_mark_reminder_sent_is_monotonic(self, deps, parties, factory):
        homeowner, professional = parties
        lead = await factory.direct_lead(homeowner.id, professional.id, expires_in=timedelta(hours=5))

        assert await deps.direct_leads.mark_reminder_sent(lead.id, 1) is True
        assert await deps.direct_leads.mark_reminder_sent(lead.id, 1) is False
        assert (await factory.get(Lead, lead.id)).reminder1_sent
