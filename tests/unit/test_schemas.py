"""Validation rules for service-boundary inputs."""

from datetime import UTC, datetime, timedelta, timezone
from uuid import uuid4

import pytest
from pydantic import TypeAdapter, ValidationError

from database.models import (
    HomeServiceCategory,
    NotificationCategory,
    NotificationType,
    ReminderFrequency,
    UserRole,
)
from homezy.schemas import (
    LeadNotificationData,
    NotificationCreate,
    NotificationData,
    ReminderSnooze,
    ServiceReminderCreate,
    ServiceReminderUpdate,
    TradeLicenseNotificationData,
)


class TestServiceReminderCreate:
    def test_custom_frequency_requires_interval(self):
        with pytest.raises(ValidationError, match="custom_interval_days"):
            ServiceReminderCreate(
                category=HomeServiceCategory.POOL,
                title="Pool clean",
                frequency=ReminderFrequency.CUSTOM,
            )

    def test_interval_dropped_for_fixed_frequency(self):
        data = ServiceReminderCreate(
            category=HomeServiceCategory.HVAC,
            title="AC service",
            frequency=ReminderFrequency.QUARTERLY,
            custom_interval_days=20,
        )
        assert data.custom_interval_days is None

    def test_lead_days_deduplicated_and_sorted_descending(self):
        data = ServiceReminderCreate(
            category=HomeServiceCategory.HVAC,
            title="AC service",
            frequency=ReminderFrequency.ANNUAL,
            reminder_lead_days=[1, 30, 7, 7],
        )
        assert data.reminder_lead_days == [30, 7, 1]

    def test_lead_days_out_of_range(self):
        with pytest.raises(ValidationError):
            ServiceReminderUpdate(reminder_lead_days=[400])

    def test_naive_and_offset_datetimes_normalized_to_utc(self):
        data = ServiceReminderCreate(
            category=HomeServiceCategory.HVAC,
            title="AC service",
            frequency=ReminderFrequency.ANNUAL,
            last_service_date=datetime(2024, 1, 1, 10, 0),
            next_due_date=datetime(2024, 6, 1, 12, 0, tzinfo=timezone(timedelta(hours=4))),
        )
        assert data.last_service_date == datetime(2024, 1, 1, 10, 0, tzinfo=UTC)
        assert data.next_due_date == datetime(2024, 6, 1, 8, 0, tzinfo=UTC)

    def test_update_tracks_provided_fields(self):
        update = ServiceReminderUpdate(title="New title")
        assert update.model_fields_set == {"title"}


class TestReminderSnooze:
    @pytest.mark.parametrize("days", [0, -3, 91])
    def test_out_of_range(self, days):
        with pytest.raises(ValidationError):
            ReminderSnooze(days=days)

    def test_in_range(self):
        assert ReminderSnooze(days=14).days == 14


class TestNotificationData:
    """Payloads are discriminated by `kind`."""

    def test_parses_concrete_model(self):
        adapter = TypeAdapter(NotificationData)
        lead_id = uuid4()
        parsed = adapter.validate_python({"kind": "lead", "lead_id": str(lead_id), "lead_title": "AC"})
        assert isinstance(parsed, LeadNotificationData)
        assert parsed.lead_id == lead_id

    def test_unknown_kind_rejected(self):
        with pytest.raises(ValidationError):
            TypeAdapter(NotificationData).validate_python({"kind": "marketing"})

    def test_trade_license_requires_expiry_date(self):
        with pytest.raises(ValidationError):
            TradeLicenseNotificationData(professional_id=uuid4())

    def test_notification_create_accepts_payload_dict(self):
        data = NotificationCreate(
            recipient_id=uuid4(),
            recipient_role=UserRole.PRO,
            type=NotificationType.LEAD_ASSIGNED,
            category=NotificationCategory.LEAD,
            title="New direct request",
            message="A homeowner sent you a request",
            data={"kind": "lead", "lead_id": str(uuid4())},
        )
        assert isinstance(data.data, LeadNotificationData)
