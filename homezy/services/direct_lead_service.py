"""
Direct Lead State Machine.

A direct lead is routed privately to one professional, who has
DIRECT_LEAD_WINDOW_HOURS to respond:

    pending --accept--> accepted
    pending --decline-> declined  (converted to a public lead)
    pending --expire--> expired   (converted to a public lead)

Every transition is a single guarded UPDATE whose WHERE clause requires
direct_lead_status='pending'. Whoever changes the row wins; a concurrent or
repeated attempt matches nothing and is a no-op. Conversion to public sets
lead_type=indirect, claim_count=0 and max_claims=MAX_LEAD_CLAIMS, the same
setting used when a public lead is created.
"""

import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from database.connection import get_session_factory
from database.models import (
    DirectLeadStatus,
    Lead,
    LeadStatus,
    LeadType,
    User,
    UserRole,
    VerificationStatus,
)
from homezy.schemas import DirectLeadCreate, LeadCreate
from homezy.services.email_service import EmailService
from homezy.services.notification_service import NotificationService
from homezy.utils.date_utils import utc_now
from shared.config import get_settings

logger = logging.getLogger(__name__)

UNVERIFIED_STATUSES = frozenset({VerificationStatus.PENDING, VerificationStatus.REJECTED})


# ============================================================================
# Errors
# ============================================================================


class DirectLeadError(Exception):
    """Base class for direct lead errors."""


class LeadNotFoundError(DirectLeadError):
    """Lead (or a party to it) does not exist."""


class LeadForbiddenError(DirectLeadError):
    """Caller is not the professional the lead was sent to."""


class InvalidLeadStateError(DirectLeadError):
    """Lead is no longer pending, or its response window has closed."""


class ProfessionalUnavailableError(DirectLeadError):
    """Target professional cannot receive direct leads."""


def public_marketplace_values() -> dict[str, Any]:
    """Claim settings shared by new public leads and converted direct leads."""
    return {
        "lead_type": LeadType.INDIRECT,
        "claim_count": 0,
        "max_claims": get_settings().MAX_LEAD_CLAIMS,
    }


def public_conversion_values(now: datetime) -> dict[str, Any]:
    """Column values that turn a direct lead into a public marketplace lead."""
    return {**public_marketplace_values(), "converted_to_public_at": now}


class DirectLeadService:
    def __init__(
        self,
        notification_service: NotificationService,
        email_service: EmailService,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.notification_service = notification_service
        self.email_service = email_service
        self.session_factory = session_factory or get_session_factory()
        self.clock = clock

    # =========================================================================
    # Lookups
    # =========================================================================

    async def get_lead(self, lead_id: UUID) -> Lead | None:
        async with self.session_factory() as session:
            return await session.get(Lead, lead_id)

    async def get_user(self, user_id: UUID | None) -> User | None:
        if user_id is None:
            return None
        async with self.session_factory() as session:
            return await session.get(User, user_id)

    async def find_expired_pending(self, now: datetime | None = None) -> list[Lead]:
        """Pending direct leads whose response window has closed, oldest first."""
        now = now or self.clock()
        async with self.session_factory() as session:
            result = await session.execute(
                select(Lead)
                .where(
                    Lead.lead_type == LeadType.DIRECT,
                    Lead.direct_lead_status == DirectLeadStatus.PENDING,
                    Lead.direct_lead_expires_at <= now,
                )
                .order_by(Lead.direct_lead_expires_at.asc())
            )
            return list(result.scalars().all())

    async def find_open_pending(self, now: datetime | None = None) -> list[Lead]:
        """Pending direct leads still inside their response window."""
        now = now or self.clock()
        async with self.session_factory() as session:
            result = await session.execute(
                select(Lead)
                .where(
                    Lead.lead_type == LeadType.DIRECT,
                    Lead.direct_lead_status == DirectLeadStatus.PENDING,
                    Lead.direct_lead_expires_at > now,
                )
                .order_by(Lead.direct_lead_expires_at.asc())
            )
            return list(result.scalars().all())

    async def list_direct_leads_for_professional(
        self, professional_id: UUID, status: DirectLeadStatus | None = None
    ) -> list[Lead]:
        stmt = select(Lead).where(Lead.target_professional_id == professional_id)
        if status is not None:
            stmt = stmt.where(Lead.direct_lead_status == status)
        async with self.session_factory() as session:
            result = await session.execute(stmt.order_by(Lead.created_at.desc()))
            return list(result.scalars().all())

    async def list_direct_leads_for_homeowner(self, homeowner_id: UUID) -> list[Lead]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(Lead)
                .where(
                    Lead.homeowner_id == homeowner_id,
                    Lead.target_professional_id.is_not(None),
                )
                .order_by(Lead.created_at.desc())
            )
            return list(result.scalars().all())

    # =========================================================================
    # Creation
    # =========================================================================

    async def create_public_lead(self, homeowner_id: UUID, data: LeadCreate) -> Lead:
        """Post a lead to the marketplace, open to MAX_LEAD_CLAIMS professionals."""
        now = self.clock()
        settings = get_settings()
        lead = Lead(
            homeowner_id=homeowner_id,
            title=data.title,
            description=data.description,
            category=data.category,
            emirate=data.emirate,
            budget_bracket=data.budget_bracket,
            urgency=data.urgency,
            status=LeadStatus.OPEN,
            expires_at=now + timedelta(days=settings.LEAD_EXPIRY_DAYS),
            **public_marketplace_values(),
        )
        async with self.session_factory() as session:
            session.add(lead)
            await session.commit()
        logger.info(f"Public lead created: {lead.id}", extra={"lead_id": lead.id})
        return lead

    async def create_direct_lead(self, homeowner_id: UUID, data: DirectLeadCreate) -> Lead:
        """
        Send a lead privately to one professional.

        Raises:
            LeadNotFoundError: Homeowner or professional does not exist
            ProfessionalUnavailableError: Professional is not verified
        """
        now = self.clock()
        settings = get_settings()

        async with self.session_factory() as session:
            homeowner = await session.get(User, homeowner_id)
            if homeowner is None or homeowner.role != UserRole.HOMEOWNER:
                raise LeadNotFoundError("Homeowner not found")

            professional = await session.get(User, data.professional_id)
            if professional is None or professional.role != UserRole.PRO:
                raise LeadNotFoundError("Professional not found")
            if professional.verification_status in UNVERIFIED_STATUSES or professional.verification_status is None:
                raise ProfessionalUnavailableError("Professional is not verified")

            lead = Lead(
                homeowner_id=homeowner_id,
                title=data.title,
                description=data.description,
                category=data.category,
                emirate=data.emirate,
                budget_bracket=data.budget_bracket,
                urgency=data.urgency,
                status=LeadStatus.OPEN,
                lead_type=LeadType.DIRECT,
                target_professional_id=professional.id,
                direct_lead_status=DirectLeadStatus.PENDING,
                direct_lead_expires_at=now + timedelta(hours=settings.DIRECT_LEAD_WINDOW_HOURS),
                reminder1_sent=False,
                reminder2_sent=False,
                claim_count=0,
                max_claims=1,
                expires_at=now + timedelta(days=settings.LEAD_EXPIRY_DAYS),
            )
            session.add(lead)
            await session.commit()

        logger.info(
            f"Direct lead {lead.id} sent to professional {professional.id}, "
            f"window closes {lead.direct_lead_expires_at.isoformat()}",
            extra={"lead_id": lead.id, "professional_id": professional.id},
        )

        result = await self.email_service.send_direct_lead_received(professional, homeowner, lead)
        if not result.ok:
            logger.error(f"Direct lead email failed for lead {lead.id}: {result.error}", extra={"lead_id": lead.id})
        await self.notification_service.notify_pro_lead_assigned(professional.id, lead, homeowner.full_name)

        return lead

    # =========================================================================
    # Transitions
    # =========================================================================

    async def _load_for_professional(self, lead_id: UUID, professional_id: UUID) -> Lead:
        lead = await self.get_lead(lead_id)
        if lead is None or lead.direct_lead_status is None:
            raise LeadNotFoundError("Lead not found")
        if lead.target_professional_id != professional_id:
            raise LeadForbiddenError("Lead was not sent to this professional")
        return lead

    async def _transition(self, lead_id: UUID, criteria: list, values: dict[str, Any]) -> Lead | None:
        """Run a guarded update; returns the fresh lead when this caller won."""
        async with self.session_factory() as session:
            result = await session.execute(
                update(Lead)
                .where(Lead.id == lead_id, *criteria)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            await session.commit()
            if result.rowcount != 1:
                return None
            return await session.get(Lead, lead_id, populate_existing=True)

    async def accept_direct_lead(self, lead_id: UUID, professional_id: UUID) -> Lead:
        """
        Accept a pending direct lead inside its response window.

        Raises:
            LeadNotFoundError, LeadForbiddenError, InvalidLeadStateError
        """
        await self._load_for_professional(lead_id, professional_id)
        now = self.clock()

        lead = await self._transition(
            lead_id,
            [
                Lead.lead_type == LeadType.DIRECT,
                Lead.direct_lead_status == DirectLeadStatus.PENDING,
                Lead.direct_lead_expires_at > now,
            ],
            {
                "direct_lead_status": DirectLeadStatus.ACCEPTED,
                "claim_count": 1,
                "status": LeadStatus.FULL,
            },
        )
        if lead is None:
            raise InvalidLeadStateError("Lead is no longer pending")

        logger.info(f"Direct lead {lead_id} accepted", extra={"lead_id": lead_id, "professional_id": professional_id})

        professional = await self.get_user(professional_id)
        homeowner = await self.get_user(lead.homeowner_id)
        if homeowner is not None and professional is not None:
            result = await self.email_service.send_direct_lead_accepted(homeowner, professional, lead)
            if not result.ok:
                logger.error(f"Accepted email failed for lead {lead_id}: {result.error}", extra={"lead_id": lead_id})
            await self.notification_service.notify_homeowner_direct_lead_accepted(lead, professional.display_name)
        return lead

    async def decline_direct_lead(self, lead_id: UUID, professional_id: UUID, reason: str | None = None) -> Lead:
        """
        Decline a pending direct lead and open it to the marketplace.

        Raises:
            LeadNotFoundError, LeadForbiddenError, InvalidLeadStateError
        """
        await self._load_for_professional(lead_id, professional_id)
        now = self.clock()

        lead = await self._transition(
            lead_id,
            [
                Lead.lead_type == LeadType.DIRECT,
                Lead.direct_lead_status == DirectLeadStatus.PENDING,
            ],
            {
                "direct_lead_status": DirectLeadStatus.DECLINED,
                "decline_reason": reason,
                **public_conversion_values(now),
            },
        )
        if lead is None:
            raise InvalidLeadStateError("Lead is no longer pending")

        logger.info(
            f"Direct lead {lead_id} declined and converted to public",
            extra={"lead_id": lead_id, "professional_id": professional_id},
        )

        professional = await self.get_user(professional_id)
        homeowner = await self.get_user(lead.homeowner_id)
        if homeowner is not None and professional is not None:
            result = await self.email_service.send_direct_lead_declined(homeowner, professional, lead)
            if not result.ok:
                logger.error(f"Declined email failed for lead {lead_id}: {result.error}", extra={"lead_id": lead_id})
            await self.notification_service.notify_homeowner_direct_lead_declined(
                lead, professional.display_name, reason
            )
        return lead

    async def expire_direct_lead(self, lead_id: UUID, now: datetime | None = None) -> Lead | None:
        """
        Convert an unanswered direct lead to a public lead.

        Returns:
            The converted lead if this call performed the conversion, None if
            the lead was not pending, not due, or already converted.
        """
        now = now or self.clock()
        lead = await self._transition(
            lead_id,
            [
                Lead.lead_type == LeadType.DIRECT,
                Lead.direct_lead_status == DirectLeadStatus.PENDING,
                Lead.direct_lead_expires_at <= now,
            ],
            {
                "direct_lead_status": DirectLeadStatus.EXPIRED,
                **public_conversion_values(now),
            },
        )
        if lead is not None:
            logger.info(f"Direct lead {lead_id} expired and converted to public", extra={"lead_id": lead_id})
        return lead

    # =========================================================================
    # Reminder flags
    # =========================================================================

    async def mark_reminder_sent(self, lead_id: UUID, reminder: int) -> bool:
        """
        Flip reminder1_sent or reminder2_sent from False to True.

        The flags never go back to False. Returns False when the flag was
        already set.
        """
        column = Lead.reminder1_sent if reminder == 1 else Lead.reminder2_sent
        marked = await self._transition(lead_id, [column.is_(False)], {column.key: True})
        return marked is not None
