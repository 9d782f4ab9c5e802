"""
SQLAlchemy ORM models for the Homezy lifecycle tables.

This module defines:
- users: homeowners, professionals and admins (pro trade-license tracking)
- properties: homeowner properties (one may be primary)
- service_history: completed services, input to pattern detection
- service_reminders: scheduled maintenance prompts
- service_reminder_sends: append-only log of reminder notifications sent
- leads: marketplace and direct leads
- notifications: in-app notification center

All models use:
- UUID primary keys (auto-generated)
- Timezone-aware UTC timestamps (UTCDateTime)
- JSONB on PostgreSQL / JSON elsewhere for list and payload columns
- Enum columns stored as their string values
"""

from datetime import UTC, date, datetime, timedelta
from decimal import Decimal
from enum import Enum as PyEnum
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Uuid,
)
from sqlalchemy import (
    Enum as SQLEnum,
)
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.dialects.postgresql import JSONB as PG_JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship, validates
from sqlalchemy.types import TypeDecorator

# ============================================================================
# Column Types
# ============================================================================


class PortableJSON(TypeDecorator):
    """JSONB on PostgreSQL, JSON on SQLite and others."""

    impl = JSON
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(PG_JSONB())
        return dialect.type_descriptor(JSON())


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware datetime stored in UTC.

    Naive values are rejected on write; values read back from backends that
    drop the offset (SQLite) are re-tagged as UTC.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError(f"Naive datetime not allowed: {value!r}")
        value = value.astimezone(UTC)
        if dialect.name == "sqlite":
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)


def utcnow() -> datetime:
    return datetime.now(UTC)


def enum_column(enum_cls: type[PyEnum], name: str) -> SQLEnum:
    return SQLEnum(
        enum_cls,
        name=name,
        native_enum=False,
        values_callable=lambda x: [e.value for e in x],
    )


# ============================================================================
# Base Class
# ============================================================================


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


# ============================================================================
# Enums
# ============================================================================


class HomeServiceCategory(str, PyEnum):
    """Home service categories a reminder or service record can belong to."""

    HVAC = "hvac"
    PLUMBING = "plumbing"
    ELECTRICAL = "electrical"
    PAINTING = "painting"
    FLOORING = "flooring"
    CARPENTRY = "carpentry"
    ROOFING = "roofing"
    LANDSCAPING = "landscaping"
    POOL = "pool"
    PEST_CONTROL = "pest-control"
    CLEANING = "cleaning"
    SECURITY = "security"
    APPLIANCE_REPAIR = "appliance-repair"
    GENERAL_MAINTENANCE = "general-maintenance"
    RENOVATION = "renovation"
    OTHER = "other"


class ReminderTriggerType(str, PyEnum):
    PATTERN_BASED = "pattern-based"
    SEASONAL = "seasonal"
    CUSTOM = "custom"


class ReminderFrequency(str, PyEnum):
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    BIANNUAL = "biannual"
    ANNUAL = "annual"
    CUSTOM = "custom"


class ReminderStatus(str, PyEnum):
    """Service reminder lifecycle status."""

    ACTIVE = "active"
    SNOOZED = "snoozed"                        # snooze_until is set
    PAUSED = "paused"
    CONVERTED_TO_QUOTE = "converted-to-quote"  # terminal, lead_id is set


class ReminderChannel(str, PyEnum):
    EMAIL = "email"
    PUSH = "push"
    SMS = "sms"


class UserRole(str, PyEnum):
    HOMEOWNER = "homeowner"
    PRO = "pro"
    ADMIN = "admin"


class VerificationStatus(str, PyEnum):
    """Professional verification status."""

    PENDING = "pending"
    BASIC = "basic"
    COMPREHENSIVE = "comprehensive"
    REJECTED = "rejected"


class LeadType(str, PyEnum):
    DIRECT = "direct"      # Routed privately to one professional
    INDIRECT = "indirect"  # Public marketplace


class DirectLeadStatus(str, PyEnum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    EXPIRED = "expired"


class LeadStatus(str, PyEnum):
    OPEN = "open"
    FULL = "full"
    QUOTED = "quoted"
    ACCEPTED = "accepted"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class NotificationType(str, PyEnum):
    """Type of in-app notification."""

    # Verification
    VERIFICATION_DOC_UPLOADED = "verification_doc_uploaded"
    NEW_PRO_REGISTRATION = "new_pro_registration"
    VERIFICATION_APPROVED = "verification_approved"
    VERIFICATION_REJECTED = "verification_rejected"

    # Leads
    NEW_LEAD_SUBMITTED = "new_lead_submitted"
    LEAD_ASSIGNED = "lead_assigned"
    LEAD_CLAIMED = "lead_claimed"
    LEAD_MATCHED = "lead_matched"

    # Quotes
    QUOTE_RECEIVED = "quote_received"
    QUOTE_ACCEPTED = "quote_accepted"
    QUOTE_REJECTED = "quote_rejected"

    # Trade license
    TRADE_LICENSE_EXPIRING = "trade_license_expiring"
    TRADE_LICENSE_EXPIRED = "trade_license_expired"

    PRO_MESSAGED = "pro_messaged"
    SYSTEM_ALERT = "system_alert"


class NotificationCategory(str, PyEnum):
    VERIFICATION = "verification"
    LEAD = "lead"
    QUOTE = "quote"
    MESSAGE = "message"
    SYSTEM = "system"


class NotificationPriority(str, PyEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# ============================================================================
# Users and Properties
# ============================================================================


class User(Base):
    """
    User model - homeowners, professionals and admins.

    Professionals carry a trade license expiry date plus two markers used by
    the license-expiry job to send each warning at most once. Changing the
    expiry date clears both markers.
    """

    __tablename__ = "users"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    email: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    role: Mapped[UserRole] = mapped_column(enum_column(UserRole, "user_role"), nullable=False)

    # Professional profile
    business_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    verification_status: Mapped[VerificationStatus | None] = mapped_column(
        enum_column(VerificationStatus, "verification_status"), nullable=True
    )
    trade_license_expiry: Mapped[date | None] = mapped_column(Date, nullable=True)
    trade_license_expiry_notification_7days_sent: Mapped[datetime | None] = mapped_column(
        UTCDateTime, nullable=True
    )
    trade_license_expiry_notification_daily_sent: Mapped[datetime | None] = mapped_column(
        UTCDateTime, nullable=True
    )

    # Notification preferences
    seasonal_reminders_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    service_reminder_emails_enabled: Mapped[bool] = mapped_column(
        Boolean, default=True, nullable=False
    )
    push_tokens: Mapped[list[str]] = mapped_column(PortableJSON, default=list, nullable=False)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False
    )

    properties: Mapped[list["Property"]] = relationship(
        back_populates="homeowner", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("idx_users_role", "role"),
        Index("idx_users_trade_license_expiry", "trade_license_expiry"),
    )

    @validates("trade_license_expiry")
    def _reset_license_markers(self, key: str, value: date | None) -> date | None:
        if sa_inspect(self).has_identity and value != self.trade_license_expiry:
            self.trade_license_expiry_notification_7days_sent = None
            self.trade_license_expiry_notification_daily_sent = None
        return value

    @property
    def full_name(self) -> str:
        return " ".join(p for p in (self.first_name, self.last_name) if p)

    @property
    def display_name(self) -> str:
        return self.business_name or self.full_name

    def __repr__(self) -> str:
        return f"<User(id={self.id}, role='{self.role.value}', email='{self.email}')>"


class Property(Base):
    """Homeowner property. Jobs target the primary property when one exists."""

    __tablename__ = "properties"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    homeowner_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    emirate: Mapped[str | None] = mapped_column(String(50), nullable=True)
    is_primary: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)

    homeowner: Mapped[User] = relationship(back_populates="properties")

    __table_args__ = (Index("idx_properties_homeowner", "homeowner_id", "is_primary"),)

    def __repr__(self) -> str:
        return f"<Property(id={self.id}, name='{self.name}', is_primary={self.is_primary})>"


# ============================================================================
# Service History and Reminders
# ============================================================================


class ServiceHistory(Base):
    """A completed home service, used to detect recurring service patterns."""

    __tablename__ = "service_history"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    homeowner_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    property_id: Mapped[UUID | None] = mapped_column(
        Uuid, ForeignKey("properties.id", ondelete="SET NULL"), nullable=True
    )
    category: Mapped[HomeServiceCategory] = mapped_column(
        enum_column(HomeServiceCategory, "home_service_category"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    completed_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    cost: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)

    __table_args__ = (
        Index("idx_service_history_lookup", "homeowner_id", "category", "completed_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<ServiceHistory(id={self.id}, category='{self.category.value}', "
            f"completed_at={self.completed_at})>"
        )


class ServiceReminder(Base):
    """
    ServiceReminder model - scheduled maintenance prompt for a homeowner.

    next_due_date is always set. snooze_until is set only while the reminder
    is snoozed. reminders_sent is append-only within a service cycle and is
    emptied when the reminder is completed.
    """

    __tablename__ = "service_reminders"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    homeowner_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    property_id: Mapped[UUID | None] = mapped_column(
        Uuid, ForeignKey("properties.id", ondelete="SET NULL"), nullable=True
    )
    category: Mapped[HomeServiceCategory] = mapped_column(
        enum_column(HomeServiceCategory, "home_service_category"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Schedule
    trigger_type: Mapped[ReminderTriggerType] = mapped_column(
        enum_column(ReminderTriggerType, "reminder_trigger_type"),
        default=ReminderTriggerType.CUSTOM,
        nullable=False,
    )
    frequency: Mapped[ReminderFrequency] = mapped_column(
        enum_column(ReminderFrequency, "reminder_frequency"), nullable=False
    )
    custom_interval_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    last_service_date: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    next_due_date: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    reminder_lead_days: Mapped[list[int]] = mapped_column(
        PortableJSON, default=lambda: [30, 7, 1], nullable=False
    )

    # Status
    status: Mapped[ReminderStatus] = mapped_column(
        enum_column(ReminderStatus, "reminder_status"),
        default=ReminderStatus.ACTIVE,
        nullable=False,
    )
    snooze_until: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    lead_id: Mapped[UUID | None] = mapped_column(
        Uuid, ForeignKey("leads.id", ondelete="SET NULL"), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False
    )

    reminders_sent: Mapped[list["ReminderSend"]] = relationship(
        back_populates="reminder",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="ReminderSend.sent_at",
    )

    __table_args__ = (
        CheckConstraint(
            "custom_interval_days IS NULL OR (custom_interval_days >= 1 AND custom_interval_days <= 3650)",
            name="check_custom_interval_range",
        ),
        CheckConstraint(
            "frequency != 'custom' OR custom_interval_days IS NOT NULL",
            name="check_custom_interval_required",
        ),
        Index("idx_reminders_homeowner_due", "homeowner_id", "next_due_date"),
        Index("idx_reminders_homeowner_category", "homeowner_id", "category", "trigger_type"),
        Index("idx_reminders_status_due", "status", "next_due_date"),
    )

    def was_sent_for(self, days_before_due: int) -> bool:
        return any(s.days_before_due == days_before_due for s in self.reminders_sent)

    def __repr__(self) -> str:
        return (
            f"<ServiceReminder(id={self.id}, category='{self.category.value}', "
            f"status='{self.status.value}', next_due_date={self.next_due_date})>"
        )


class ReminderSend(Base):
    """One reminder notification sent for a service reminder (remindersSent)."""

    __tablename__ = "service_reminder_sends"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    reminder_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("service_reminders.id", ondelete="CASCADE"), nullable=False
    )
    sent_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
    channel: Mapped[ReminderChannel] = mapped_column(
        enum_column(ReminderChannel, "reminder_channel"), nullable=False
    )
    days_before_due: Mapped[int] = mapped_column(Integer, nullable=False)

    reminder: Mapped[ServiceReminder] = relationship(back_populates="reminders_sent")

    __table_args__ = (Index("idx_reminder_sends_reminder", "reminder_id", "days_before_due"),)

    def __repr__(self) -> str:
        return (
            f"<ReminderSend(reminder_id={self.reminder_id}, channel='{self.channel.value}', "
            f"days_before_due={self.days_before_due})>"
        )


# ============================================================================
# Leads
# ============================================================================


class Lead(Base):
    """
    Lead model - a homeowner's service request.

    Indirect leads are visible in the public marketplace up to max_claims.
    Direct leads are routed to target_professional_id with an exclusive
    response window ending at direct_lead_expires_at; an unanswered direct
    lead is converted to an indirect one exactly once.
    """

    __tablename__ = "leads"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    homeowner_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    emirate: Mapped[str | None] = mapped_column(String(50), nullable=True)
    budget_bracket: Mapped[str | None] = mapped_column(String(50), nullable=True)
    urgency: Mapped[str | None] = mapped_column(String(50), nullable=True)

    status: Mapped[LeadStatus] = mapped_column(
        enum_column(LeadStatus, "lead_status"), default=LeadStatus.OPEN, nullable=False
    )
    claim_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    max_claims: Mapped[int] = mapped_column(Integer, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    # Direct lead fields
    lead_type: Mapped[LeadType] = mapped_column(
        enum_column(LeadType, "lead_type"), default=LeadType.INDIRECT, nullable=False
    )
    target_professional_id: Mapped[UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    direct_lead_expires_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    direct_lead_status: Mapped[DirectLeadStatus | None] = mapped_column(
        enum_column(DirectLeadStatus, "direct_lead_status"), nullable=True
    )
    reminder1_sent: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    reminder2_sent: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    converted_to_public_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    decline_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False
    )

    __table_args__ = (
        CheckConstraint("claim_count >= 0", name="check_claim_count_non_negative"),
        Index(
            "idx_leads_direct_pending",
            "lead_type",
            "direct_lead_status",
            "direct_lead_expires_at",
        ),
        Index("idx_leads_target_professional", "target_professional_id"),
        Index("idx_leads_homeowner", "homeowner_id"),
    )

    def hours_until_direct_expiry(self, now: datetime) -> float | None:
        if self.direct_lead_expires_at is None:
            return None
        return (self.direct_lead_expires_at - now) / timedelta(hours=1)

    def __repr__(self) -> str:
        return (
            f"<Lead(id={self.id}, lead_type='{self.lead_type.value}', "
            f"status='{self.status.value}')>"
        )


# ============================================================================
# Notifications
# ============================================================================


class Notification(Base):
    """
    Notification model - in-app notification center.

    Notifications expire after NOTIFICATION_TTL_DAYS and are then excluded
    from listings. `data` holds a typed payload validated at the service
    boundary (see homezy.schemas.NotificationData).
    """

    __tablename__ = "notifications"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    recipient_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    recipient_role: Mapped[UserRole] = mapped_column(
        enum_column(UserRole, "user_role"), nullable=False
    )

    type: Mapped[NotificationType] = mapped_column(
        enum_column(NotificationType, "notification_type"), nullable=False
    )
    category: Mapped[NotificationCategory] = mapped_column(
        enum_column(NotificationCategory, "notification_category"), nullable=False
    )
    priority: Mapped[NotificationPriority] = mapped_column(
        enum_column(NotificationPriority, "notification_priority"),
        default=NotificationPriority.MEDIUM,
        nullable=False,
    )

    # Content
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    message: Mapped[str] = mapped_column(String(500), nullable=False)
    data: Mapped[dict[str, Any] | None] = mapped_column(PortableJSON, nullable=True)
    action_url: Mapped[str | None] = mapped_column(String(500), nullable=True)

    # Read status
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    read_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    expires_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)

    __table_args__ = (
        Index("idx_notifications_recipient_read", "recipient_id", "is_read", "created_at"),
        Index("idx_notifications_expires_at", "expires_at"),
    )

    def __repr__(self) -> str:
        return f"<Notification(id={self.id}, type='{self.type.value}', is_read={self.is_read})>"
