"""
Pydantic models validated at the service boundary.

Inputs for reminder and lead operations, and the typed payloads carried by
notifications. Notification payloads are a tagged union discriminated by
`kind`, so every consumer sees a concrete model rather than a free-form map.
"""

from datetime import UTC, date, datetime
from decimal import Decimal
from typing import Annotated, Literal
from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator

from database.models import (
    HomeServiceCategory,
    NotificationCategory,
    NotificationPriority,
    NotificationType,
    ReminderFrequency,
    ReminderTriggerType,
    UserRole,
)
from homezy.constants import MAX_SNOOZE_DAYS


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _normalize_lead_days(value: list[int] | None) -> list[int] | None:
    if value is None:
        return None
    if any(d < 0 or d > 365 for d in value):
        raise ValueError("reminder lead days must be between 0 and 365")
    return sorted(set(value), reverse=True)


# ============================================================================
# Service Reminders
# ============================================================================


class ServiceReminderCreate(BaseModel):
    """Input for creating a service reminder."""

    category: HomeServiceCategory
    title: str = Field(min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=1000)
    property_id: UUID | None = None
    trigger_type: ReminderTriggerType = ReminderTriggerType.CUSTOM
    frequency: ReminderFrequency
    custom_interval_days: int | None = Field(default=None, ge=1, le=3650)
    last_service_date: datetime | None = None
    next_due_date: datetime | None = None
    reminder_lead_days: list[int] | None = None

    @field_validator("last_service_date", "next_due_date")
    @classmethod
    def ensure_utc(cls, v: datetime | None) -> datetime | None:
        return _as_utc(v)

    @field_validator("reminder_lead_days")
    @classmethod
    def normalize_lead_days(cls, v: list[int] | None) -> list[int] | None:
        return _normalize_lead_days(v)

    @model_validator(mode="after")
    def check_custom_interval(self) -> "ServiceReminderCreate":
        if self.frequency == ReminderFrequency.CUSTOM and self.custom_interval_days is None:
            raise ValueError("custom_interval_days is required when frequency is custom")
        if self.frequency != ReminderFrequency.CUSTOM:
            self.custom_interval_days = None
        return self


class ServiceReminderUpdate(BaseModel):
    """
    Partial update of a reminder's mutable fields.

    Only fields explicitly provided are applied (see `model_fields_set`).
    """

    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=1000)
    frequency: ReminderFrequency | None = None
    custom_interval_days: int | None = Field(default=None, ge=1, le=3650)
    reminder_lead_days: list[int] | None = None
    next_due_date: datetime | None = None

    @field_validator("next_due_date")
    @classmethod
    def ensure_utc(cls, v: datetime | None) -> datetime | None:
        return _as_utc(v)

    @field_validator("reminder_lead_days")
    @classmethod
    def normalize_lead_days(cls, v: list[int] | None) -> list[int] | None:
        return _normalize_lead_days(v)


class ReminderSnooze(BaseModel):
    days: int = Field(ge=1, le=MAX_SNOOZE_DAYS)


class ReminderComplete(BaseModel):
    service_date: datetime | None = None

    @field_validator("service_date")
    @classmethod
    def ensure_utc(cls, v: datetime | None) -> datetime | None:
        return _as_utc(v)


class ReminderConvert(BaseModel):
    lead_id: UUID


class ServiceHistoryCreate(BaseModel):
    """A completed service reported by the homeowner."""

    category: HomeServiceCategory
    title: str = Field(min_length=1, max_length=200)
    completed_at: datetime
    property_id: UUID | None = None
    cost: Decimal | None = Field(default=None, ge=0, max_digits=10, decimal_places=2)

    @field_validator("completed_at")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        return _as_utc(v)


# ============================================================================
# Leads
# ============================================================================


class LeadCreate(BaseModel):
    """Homeowner service request (public or direct)."""

    title: str = Field(min_length=3, max_length=200)
    description: str = Field(min_length=10, max_length=5000)
    category: str = Field(min_length=1, max_length=100)
    emirate: str | None = Field(default=None, max_length=50)
    budget_bracket: str | None = Field(default=None, max_length=50)
    urgency: str | None = Field(default=None, max_length=50)


class DirectLeadCreate(LeadCreate):
    professional_id: UUID


class DirectLeadDecline(BaseModel):
    reason: str | None = Field(default=None, max_length=500)


# ============================================================================
# Notification Payloads
# ============================================================================


class LeadNotificationData(BaseModel):
    kind: Literal["lead"] = "lead"
    lead_id: UUID
    lead_title: str | None = None
    category: str | None = None
    homeowner_name: str | None = None
    professional_name: str | None = None
    reason: str | None = None


class QuoteNotificationData(BaseModel):
    kind: Literal["quote"] = "quote"
    quote_id: UUID
    lead_id: UUID | None = None
    lead_title: str | None = None
    professional_name: str | None = None
    amount: float | None = None


class VerificationNotificationData(BaseModel):
    kind: Literal["verification"] = "verification"
    professional_id: UUID
    business_name: str | None = None
    document_type: str | None = None
    reason: str | None = None


class TradeLicenseNotificationData(BaseModel):
    kind: Literal["trade_license"] = "trade_license"
    professional_id: UUID
    business_name: str | None = None
    expiry_date: date
    days_until_expiry: int | None = None
    days_since_expiry: int | None = None


class SystemNotificationData(BaseModel):
    kind: Literal["system"] = "system"
    reference: str | None = None


NotificationData = Annotated[
    LeadNotificationData
    | QuoteNotificationData
    | VerificationNotificationData
    | TradeLicenseNotificationData
    | SystemNotificationData,
    Field(discriminator="kind"),
]


class NotificationCreate(BaseModel):
    """Input for NotificationService.create_notification()."""

    recipient_id: UUID
    recipient_role: UserRole
    type: NotificationType
    category: NotificationCategory
    priority: NotificationPriority = NotificationPriority.MEDIUM
    title: str = Field(min_length=1, max_length=200)
    message: str = Field(min_length=1, max_length=500)
    data: NotificationData | None = None
    action_url: str | None = Field(default=None, max_length=500)
