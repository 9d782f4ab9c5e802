"""
Transactional email sender.

One method per template. Every method returns a SendResult; callers decide
whether a failed send is logged and counted or propagated with
`result.raise_for_error()`.
"""

import logging
from datetime import date, datetime

from database.models import Lead, ServiceReminder, User
from homezy.constants import category_label
from homezy.services import email_templates
from homezy.services.email_templates import EmailContent
from homezy.utils.date_utils import get_timezone, local_date
from shared.config import get_settings
from shared.email_client import BrevoEmailClient
from shared.results import SendResult

logger = logging.getLogger(__name__)


def format_local_time(moment: datetime) -> str:
    return moment.astimezone(get_timezone()).strftime("%d %b %Y, %I:%M %p")


class EmailService:
    def __init__(self, client: BrevoEmailClient | None = None, client_url: str | None = None):
        self.client = client or BrevoEmailClient()
        self.client_url = (client_url or get_settings().CLIENT_URL).rstrip("/")

    async def _send(self, to: str | None, content: EmailContent) -> SendResult:
        if not to:
            return SendResult.failure("email", "-", "recipient has no email address")
        return await self.client.send_email(to, content.subject, content.html, content.text)

    # =========================================================================
    # Direct leads
    # =========================================================================

    async def send_direct_lead_received(self, professional: User, homeowner: User, lead: Lead) -> SendResult:
        content = email_templates.direct_lead_received(
            professional_name=professional.first_name,
            homeowner_name=homeowner.first_name,
            lead_title=lead.title,
            category=lead.category,
            respond_by=format_local_time(lead.direct_lead_expires_at),
            lead_url=f"{self.client_url}/pro/dashboard/leads/{lead.id}",
        )
        return await self._send(professional.email, content)

    async def send_direct_lead_reminder1(self, professional: User, lead: Lead, hours_remaining: int) -> SendResult:
        content = email_templates.direct_lead_reminder(
            professional_name=professional.first_name,
            lead_title=lead.title,
            time_remaining=f"{hours_remaining} hour{'s' if hours_remaining != 1 else ''}",
            lead_url=f"{self.client_url}/pro/dashboard/leads/{lead.id}",
        )
        return await self._send(professional.email, content)

    async def send_direct_lead_reminder2(self, professional: User, lead: Lead, minutes_remaining: int) -> SendResult:
        content = email_templates.direct_lead_reminder(
            professional_name=professional.first_name,
            lead_title=lead.title,
            time_remaining=f"{minutes_remaining} minute{'s' if minutes_remaining != 1 else ''}",
            lead_url=f"{self.client_url}/pro/dashboard/leads/{lead.id}",
            final=True,
        )
        return await self._send(professional.email, content)

    async def send_direct_lead_accepted(self, homeowner: User, professional: User, lead: Lead) -> SendResult:
        content = email_templates.direct_lead_accepted(
            homeowner_name=homeowner.first_name,
            professional_name=professional.display_name,
            lead_title=lead.title,
            lead_url=f"{self.client_url}/dashboard/requests/{lead.id}",
        )
        return await self._send(homeowner.email, content)

    async def send_direct_lead_declined(self, homeowner: User, professional: User, lead: Lead) -> SendResult:
        content = email_templates.direct_lead_declined(
            homeowner_name=homeowner.first_name,
            professional_name=professional.display_name,
            lead_title=lead.title,
            lead_url=f"{self.client_url}/dashboard/requests/{lead.id}",
        )
        return await self._send(homeowner.email, content)

    async def send_direct_lead_converted(self, homeowner: User, professional_name: str, lead: Lead) -> SendResult:
        content = email_templates.direct_lead_converted(
            homeowner_name=homeowner.first_name,
            professional_name=professional_name,
            lead_title=lead.title,
            lead_url=f"{self.client_url}/dashboard/requests/{lead.id}",
        )
        return await self._send(homeowner.email, content)

    # =========================================================================
    # Service reminders
    # =========================================================================

    async def send_service_reminder(
        self,
        homeowner: User,
        reminder: ServiceReminder,
        days_before_due: int,
        property_name: str = "your property",
    ) -> SendResult:
        content = email_templates.service_reminder(
            homeowner_name=homeowner.first_name,
            reminder_title=reminder.title,
            category=category_label(reminder.category),
            due_date=local_date(reminder.next_due_date),
            days_before_due=days_before_due,
            property_name=property_name,
            reminders_url=f"{self.client_url}/dashboard/my-home/reminders",
        )
        return await self._send(homeowner.email, content)

    # =========================================================================
    # Trade licenses
    # =========================================================================

    async def send_trade_license_expiry_warning(self, professional: User, days_until_expiry: int) -> SendResult:
        content = email_templates.trade_license_expiry_warning(
            professional_name=professional.first_name,
            business_name=professional.display_name,
            expiry_date=professional.trade_license_expiry,
            days_until_expiry=days_until_expiry,
            settings_url=f"{self.client_url}/pro/dashboard/settings",
        )
        return await self._send(professional.email, content)

    async def send_trade_license_expired_reminder(self, professional: User, days_since_expiry: int) -> SendResult:
        content = email_templates.trade_license_expired(
            professional_name=professional.first_name,
            business_name=professional.display_name,
            expiry_date=professional.trade_license_expiry,
            days_since_expiry=days_since_expiry,
            settings_url=f"{self.client_url}/pro/dashboard/settings",
        )
        return await self._send(professional.email, content)

    async def send_admin_trade_license_alert(
        self, admin: User, professional: User, expired: bool, days: int
    ) -> SendResult:
        expiry: date = professional.trade_license_expiry
        content = email_templates.admin_trade_license_alert(
            admin_name=admin.first_name,
            business_name=professional.display_name,
            professional_email=professional.email or "-",
            expiry_date=expiry,
            expired=expired,
            days=days,
            admin_url=f"{self.client_url}/admin/professionals/{professional.id}",
        )
        return await self._send(admin.email, content)
