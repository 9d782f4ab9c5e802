"""Response models for the lifecycle API."""

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from database.models import (
    DirectLeadStatus,
    HomeServiceCategory,
    LeadStatus,
    LeadType,
    NotificationCategory,
    NotificationPriority,
    NotificationType,
    ReminderChannel,
    ReminderFrequency,
    ReminderStatus,
    ReminderTriggerType,
)


class ReminderSendResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    sent_at: datetime
    channel: ReminderChannel
    days_before_due: int


class ServiceReminderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    homeowner_id: UUID
    property_id: UUID | None
    category: HomeServiceCategory
    title: str
    description: str | None
    trigger_type: ReminderTriggerType
    frequency: ReminderFrequency
    custom_interval_days: int | None
    last_service_date: datetime | None
    next_due_date: datetime
    reminder_lead_days: list[int]
    status: ReminderStatus
    snooze_until: datetime | None
    lead_id: UUID | None
    reminders_sent: list[ReminderSendResponse]
    created_at: datetime
    updated_at: datetime


class ServiceReminderListResponse(BaseModel):
    items: list[ServiceReminderResponse]
    total: int
    limit: int
    offset: int


class ServiceHistoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    homeowner_id: UUID
    property_id: UUID | None
    category: HomeServiceCategory
    title: str
    completed_at: datetime
    cost: Decimal | None


class SyncResponse(BaseModel):
    created: int
    updated: int


class LeadResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    homeowner_id: UUID
    title: str
    description: str
    category: str
    emirate: str | None
    budget_bracket: str | None
    urgency: str | None
    status: LeadStatus
    lead_type: LeadType
    claim_count: int
    max_claims: int
    expires_at: datetime
    target_professional_id: UUID | None
    direct_lead_status: DirectLeadStatus | None
    direct_lead_expires_at: datetime | None
    converted_to_public_at: datetime | None
    created_at: datetime


class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    type: NotificationType
    category: NotificationCategory
    priority: NotificationPriority
    title: str
    message: str
    data: dict[str, Any] | None
    action_url: str | None
    is_read: bool
    read_at: datetime | None
    created_at: datetime


class NotificationListResponse(BaseModel):
    items: list[NotificationResponse]
    total: int
    unread_count: int
    page: int
    limit: int
    has_more: bool


class CountResponse(BaseModel):
    count: int


class JobRunResponse(BaseModel):
    job_name: str
    results: dict[str, Any]
