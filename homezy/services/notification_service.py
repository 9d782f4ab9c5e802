"""
Notification Dispatcher.

create_notification() is the single entry point for in-app notifications:

1. Persist the notification record (expires after NOTIFICATION_TTL_DAYS)
2. Emit `notification:new` to the recipient's real-time channel
3. Schedule a mobile push (fire-and-forget) when the priority is high or the
   type is one users expect on their phone

Emit and push failures are logged and never fail the call. Email is not sent
from here; callers send it explicitly through EmailService.

The notify_* wrappers build typed payloads for each event and swallow their
own errors (logged), so a notification failure never aborts the business
operation that triggered it.
"""

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any, Protocol
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from database.connection import get_session_factory
from database.models import (
    Lead,
    Notification,
    NotificationCategory,
    NotificationPriority,
    NotificationType,
    User,
    UserRole,
)
from homezy.schemas import (
    LeadNotificationData,
    NotificationCreate,
    QuoteNotificationData,
    TradeLicenseNotificationData,
    VerificationNotificationData,
)
from homezy.services.push_service import PushService
from homezy.utils.date_utils import utc_now
from shared.config import get_settings

logger = logging.getLogger(__name__)

NEW_NOTIFICATION_EVENT = "notification:new"

PUSH_ENABLED_TYPES = frozenset({
    NotificationType.QUOTE_RECEIVED,
    NotificationType.QUOTE_ACCEPTED,
    NotificationType.QUOTE_REJECTED,
    NotificationType.LEAD_ASSIGNED,
    NotificationType.PRO_MESSAGED,
    NotificationType.VERIFICATION_APPROVED,
    NotificationType.VERIFICATION_REJECTED,
})

PUSH_CHANNELS = {
    NotificationCategory.QUOTE: "leads",
    NotificationCategory.LEAD: "leads",
    NotificationCategory.MESSAGE: "messages",
}


class RealtimeEmitter(Protocol):
    async def emit_to_user(self, user_id: Any, event: str, payload: dict[str, Any]) -> None: ...


def should_push(notification: NotificationCreate) -> bool:
    return (
        notification.priority == NotificationPriority.HIGH
        or notification.type in PUSH_ENABLED_TYPES
    )


def push_channel(category: NotificationCategory) -> str:
    return PUSH_CHANNELS.get(category, "default")


def serialize_notification(notification: Notification) -> dict[str, Any]:
    return {
        "id": str(notification.id),
        "type": notification.type.value,
        "category": notification.category.value,
        "priority": notification.priority.value,
        "title": notification.title,
        "message": notification.message,
        "data": notification.data,
        "action_url": notification.action_url,
        "is_read": notification.is_read,
        "read_at": notification.read_at.isoformat() if notification.read_at else None,
        "created_at": notification.created_at.isoformat(),
        "expires_at": notification.expires_at.isoformat(),
    }


class NotificationService:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        push_service: PushService | None = None,
        realtime_emitter: RealtimeEmitter | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.session_factory = session_factory or get_session_factory()
        self.push_service = push_service
        self.realtime_emitter = realtime_emitter
        self.clock = clock
        self._push_tasks: set[asyncio.Task] = set()

    # =========================================================================
    # Dispatch
    # =========================================================================

    async def create_notification(self, data: NotificationCreate) -> Notification:
        """
        Persist a notification and fan it out to real-time and push.

        Raises:
            SQLAlchemyError: If the record cannot be stored
        """
        now = self.clock()
        notification = Notification(
            recipient_id=data.recipient_id,
            recipient_role=data.recipient_role,
            type=data.type,
            category=data.category,
            priority=data.priority,
            title=data.title,
            message=data.message,
            data=data.data.model_dump(mode="json") if data.data is not None else None,
            action_url=data.action_url,
            is_read=False,
            expires_at=now + timedelta(days=get_settings().NOTIFICATION_TTL_DAYS),
            created_at=now,
        )
        async with self.session_factory() as session:
            session.add(notification)
            await session.commit()

        logger.info(
            f"Notification created: {data.type.value} for {data.recipient_role.value} {data.recipient_id}",
            extra={"notification_id": notification.id},
        )

        await self._emit(notification)

        if self.push_service is not None and should_push(data):
            self._schedule_push(notification)

        return notification

    async def _emit(self, notification: Notification) -> None:
        if self.realtime_emitter is None:
            return
        try:
            await self.realtime_emitter.emit_to_user(
                notification.recipient_id,
                NEW_NOTIFICATION_EVENT,
                serialize_notification(notification),
            )
        except Exception as e:
            logger.warning(
                f"Real-time emit failed for notification {notification.id}: {e}",
                extra={"notification_id": notification.id},
            )

    def _schedule_push(self, notification: Notification) -> None:
        task = asyncio.create_task(self._send_push(notification))
        self._push_tasks.add(task)
        task.add_done_callback(self._push_tasks.discard)

    async def _send_push(self, notification: Notification) -> None:
        try:
            result = await self.push_service.send_to_user(
                notification.recipient_id,
                title=notification.title,
                body=notification.message,
                data={
                    "notificationId": str(notification.id),
                    "type": notification.type.value,
                    "actionUrl": notification.action_url,
                    **(notification.data or {}),
                },
                channel_id=push_channel(notification.category),
                priority="high" if notification.priority == NotificationPriority.HIGH else "default",
            )
        except Exception as e:
            logger.warning(f"Push failed for notification {notification.id}: {e}")
            return
        if not result.ok:
            logger.warning(f"Push not delivered for notification {notification.id}: {result.error}")

    async def drain(self) -> None:
        """Wait for scheduled pushes (shutdown and tests)."""
        if self._push_tasks:
            await asyncio.gather(*list(self._push_tasks), return_exceptions=True)

    # =========================================================================
    # Read side
    # =========================================================================

    def _visible(self, user_id: UUID) -> list:
        return [
            Notification.recipient_id == user_id,
            Notification.expires_at > self.clock(),
        ]

    async def list_notifications(
        self,
        user_id: UUID,
        page: int = 1,
        limit: int = 20,
        is_read: bool | None = None,
        category: NotificationCategory | None = None,
    ) -> tuple[list[Notification], int, int]:
        """
        Page through a user's unexpired notifications, newest first.

        Returns:
            (notifications, total matching, unread count)
        """
        filters = self._visible(user_id)
        if is_read is not None:
            filters.append(Notification.is_read == is_read)
        if category is not None:
            filters.append(Notification.category == category)

        async with self.session_factory() as session:
            total = await session.scalar(select(func.count()).select_from(Notification).where(*filters))
            unread = await session.scalar(
                select(func.count())
                .select_from(Notification)
                .where(*self._visible(user_id), Notification.is_read.is_(False))
            )
            result = await session.execute(
                select(Notification)
                .where(*filters)
                .order_by(Notification.created_at.desc())
                .limit(limit)
                .offset((page - 1) * limit)
            )
            return list(result.scalars().all()), total or 0, unread or 0

    async def unread_count(self, user_id: UUID) -> int:
        async with self.session_factory() as session:
            count = await session.scalar(
                select(func.count())
                .select_from(Notification)
                .where(*self._visible(user_id), Notification.is_read.is_(False))
            )
            return count or 0

    async def mark_as_read(self, notification_id: UUID, user_id: UUID) -> Notification | None:
        async with self.session_factory() as session:
            notification = await session.scalar(
                select(Notification).where(
                    Notification.id == notification_id,
                    Notification.recipient_id == user_id,
                )
            )
            if notification is None:
                return None
            if not notification.is_read:
                notification.is_read = True
                notification.read_at = self.clock()
                await session.commit()
            return notification

    async def mark_all_as_read(self, user_id: UUID) -> int:
        async with self.session_factory() as session:
            result = await session.execute(
                update(Notification)
                .where(Notification.recipient_id == user_id, Notification.is_read.is_(False))
                .values(is_read=True, read_at=self.clock())
            )
            await session.commit()
            return result.rowcount

    async def delete_notification(self, notification_id: UUID, user_id: UUID) -> bool:
        async with self.session_factory() as session:
            result = await session.execute(
                delete(Notification).where(
                    Notification.id == notification_id,
                    Notification.recipient_id == user_id,
                )
            )
            await session.commit()
            return result.rowcount > 0

    async def delete_all_read(self, user_id: UUID) -> int:
        async with self.session_factory() as session:
            result = await session.execute(
                delete(Notification).where(
                    Notification.recipient_id == user_id,
                    Notification.is_read.is_(True),
                )
            )
            await session.commit()
            return result.rowcount

    # =========================================================================
    # Event wrappers
    # =========================================================================

    async def _safe_create(self, data: NotificationCreate) -> Notification | None:
        try:
            return await self.create_notification(data)
        except Exception as e:
            logger.error(
                f"Failed to create {data.type.value} notification for {data.recipient_id}: {e}",
                exc_info=True,
            )
            return None

    async def _admin_ids(self) -> list[UUID]:
        async with self.session_factory() as session:
            result = await session.execute(select(User.id).where(User.role == UserRole.ADMIN))
            return list(result.scalars().all())

    async def _notify_admins(self, build: Callable[[UUID], NotificationCreate]) -> int:
        try:
            admin_ids = await self._admin_ids()
        except Exception as e:
            logger.error(f"Failed to load admins for notification: {e}", exc_info=True)
            return 0
        created = 0
        for admin_id in admin_ids:
            if await self._safe_create(build(admin_id)) is not None:
                created += 1
        return created

    async def notify_admins_verification_uploaded(self, professional: User, document_type: str) -> int:
        payload = VerificationNotificationData(
            professional_id=professional.id,
            business_name=professional.display_name,
            document_type=document_type,
        )
        return await self._notify_admins(
            lambda admin_id: NotificationCreate(
                recipient_id=admin_id,
                recipient_role=UserRole.ADMIN,
                type=NotificationType.VERIFICATION_DOC_UPLOADED,
                category=NotificationCategory.VERIFICATION,
                priority=NotificationPriority.MEDIUM,
                title="Verification document uploaded",
                message=f"{professional.display_name} uploaded a {document_type} document for review.",
                data=payload,
                action_url=f"/admin/professionals/{professional.id}",
            )
        )

    async def notify_pro_verification_approved(self, professional_id: UUID) -> Notification | None:
        return await self._safe_create(
            NotificationCreate(
                recipient_id=professional_id,
                recipient_role=UserRole.PRO,
                type=NotificationType.VERIFICATION_APPROVED,
                category=NotificationCategory.VERIFICATION,
                priority=NotificationPriority.HIGH,
                title="Verification approved",
                message="Your profile is verified. You can now receive and claim leads.",
                data=VerificationNotificationData(professional_id=professional_id),
                action_url="/pro/dashboard",
            )
        )

    async def notify_pro_verification_rejected(self, professional_id: UUID, reason: str) -> Notification | None:
        return await self._safe_create(
            NotificationCreate(
                recipient_id=professional_id,
                recipient_role=UserRole.PRO,
                type=NotificationType.VERIFICATION_REJECTED,
                category=NotificationCategory.VERIFICATION,
                priority=NotificationPriority.HIGH,
                title="Verification needs attention",
                message=f"Your verification was not approved: {reason}"[:500],
                data=VerificationNotificationData(professional_id=professional_id, reason=reason),
                action_url="/pro/dashboard/verification",
            )
        )

    async def notify_pro_lead_assigned(
        self, professional_id: UUID, lead: Lead, homeowner_name: str
    ) -> Notification | None:
        return await self._safe_create(
            NotificationCreate(
                recipient_id=professional_id,
                recipient_role=UserRole.PRO,
                type=NotificationType.LEAD_ASSIGNED,
                category=NotificationCategory.LEAD,
                priority=NotificationPriority.HIGH,
                title="New direct request",
                message=f"{homeowner_name} sent you a request: {lead.title}"[:500],
                data=LeadNotificationData(
                    lead_id=lead.id,
                    lead_title=lead.title,
                    category=lead.category,
                    homeowner_name=homeowner_name,
                ),
                action_url=f"/pro/dashboard/leads/{lead.id}",
            )
        )

    async def notify_pro_direct_lead_expired(self, professional_id: UUID, lead: Lead) -> Notification | None:
        return await self._safe_create(
            NotificationCreate(
                recipient_id=professional_id,
                recipient_role=UserRole.PRO,
                type=NotificationType.SYSTEM_ALERT,
                category=NotificationCategory.LEAD,
                priority=NotificationPriority.LOW,
                title="Direct request expired",
                message=f"The response window for \"{lead.title}\" has closed and it is now on the marketplace."[:500],
                data=LeadNotificationData(lead_id=lead.id, lead_title=lead.title, category=lead.category),
                action_url=f"/pro/dashboard/leads/{lead.id}",
            )
        )

    async def notify_homeowner_quote_received(
        self,
        homeowner_id: UUID,
        quote_id: UUID,
        lead_id: UUID,
        lead_title: str,
        professional_name: str,
        amount: float | None = None,
    ) -> Notification | None:
        return await self._safe_create(
            NotificationCreate(
                recipient_id=homeowner_id,
                recipient_role=UserRole.HOMEOWNER,
                type=NotificationType.QUOTE_RECEIVED,
                category=NotificationCategory.QUOTE,
                priority=NotificationPriority.HIGH,
                title="New quote received",
                message=f"{professional_name} sent a quote for {lead_title}"[:500],
                data=QuoteNotificationData(
                    quote_id=quote_id,
                    lead_id=lead_id,
                    lead_title=lead_title,
                    professional_name=professional_name,
                    amount=amount,
                ),
                action_url=f"/dashboard/requests/{lead_id}/quotes",
            )
        )

    async def notify_pro_quote_accepted(
        self, professional_id: UUID, quote_id: UUID, lead_id: UUID, lead_title: str
    ) -> Notification | None:
        return await self._safe_create(
            NotificationCreate(
                recipient_id=professional_id,
                recipient_role=UserRole.PRO,
                type=NotificationType.QUOTE_ACCEPTED,
                category=NotificationCategory.QUOTE,
                priority=NotificationPriority.HIGH,
                title="Quote accepted",
                message=f"Your quote for {lead_title} was accepted."[:500],
                data=QuoteNotificationData(quote_id=quote_id, lead_id=lead_id, lead_title=lead_title),
                action_url=f"/pro/dashboard/quotes/{quote_id}",
            )
        )

    async def notify_pro_quote_rejected(
        self, professional_id: UUID, quote_id: UUID, lead_id: UUID, lead_title: str
    ) -> Notification | None:
        return await self._safe_create(
            NotificationCreate(
                recipient_id=professional_id,
                recipient_role=UserRole.PRO,
                type=NotificationType.QUOTE_REJECTED,
                category=NotificationCategory.QUOTE,
                priority=NotificationPriority.MEDIUM,
                title="Quote not selected",
                message=f"The homeowner chose another quote for {lead_title}."[:500],
                data=QuoteNotificationData(quote_id=quote_id, lead_id=lead_id, lead_title=lead_title),
                action_url=f"/pro/dashboard/quotes/{quote_id}",
            )
        )

    async def notify_pro_trade_license_expiring(
        self, professional: User, days_until_expiry: int
    ) -> Notification | None:
        return await self._safe_create(
            NotificationCreate(
                recipient_id=professional.id,
                recipient_role=UserRole.PRO,
                type=NotificationType.TRADE_LICENSE_EXPIRING,
                category=NotificationCategory.VERIFICATION,
                priority=NotificationPriority.HIGH,
                title="Trade license expiring soon",
                message=f"Your trade license expires in {days_until_expiry} days. Upload your renewed license.",
                data=TradeLicenseNotificationData(
                    professional_id=professional.id,
                    business_name=professional.display_name,
                    expiry_date=professional.trade_license_expiry,
                    days_until_expiry=days_until_expiry,
                ),
                action_url="/pro/dashboard/settings",
            )
        )

    async def notify_pro_trade_license_expired(
        self, professional: User, days_since_expiry: int
    ) -> Notification | None:
        return await self._safe_create(
            NotificationCreate(
                recipient_id=professional.id,
                recipient_role=UserRole.PRO,
                type=NotificationType.TRADE_LICENSE_EXPIRED,
                category=NotificationCategory.VERIFICATION,
                priority=NotificationPriority.HIGH,
                title="Trade license expired",
                message=f"Your trade license expired {days_since_expiry} day(s) ago. Upload a valid license.",
                data=TradeLicenseNotificationData(
                    professional_id=professional.id,
                    business_name=professional.display_name,
                    expiry_date=professional.trade_license_expiry,
                    days_since_expiry=days_since_expiry,
                ),
                action_url="/pro/dashboard/settings",
            )
        )

    async def notify_admins_trade_license_expiry(
        self, professional: User, expired: bool, days: int
    ) -> int:
        if expired:
            notification_type = NotificationType.TRADE_LICENSE_EXPIRED
            title = "Professional trade license expired"
            message = f"{professional.display_name}'s trade license expired {days} day(s) ago."
            payload = TradeLicenseNotificationData(
                professional_id=professional.id,
                business_name=professional.display_name,
                expiry_date=professional.trade_license_expiry,
                days_since_expiry=days,
            )
        else:
            notification_type = NotificationType.TRADE_LICENSE_EXPIRING
            title = "Professional trade license expiring"
            message = f"{professional.display_name}'s trade license expires in {days} days."
            payload = TradeLicenseNotificationData(
                professional_id=professional.id,
                business_name=professional.display_name,
                expiry_date=professional.trade_license_expiry,
                days_until_expiry=days,
            )

        return await self._notify_admins(
            lambda admin_id: NotificationCreate(
                recipient_id=admin_id,
                recipient_role=UserRole.ADMIN,
                type=notification_type,
                category=NotificationCategory.VERIFICATION,
                priority=NotificationPriority.HIGH if expired else NotificationPriority.MEDIUM,
                title=title,
                message=message[:500],
                data=payload,
                action_url=f"/admin/professionals/{professional.id}",
            )
        )

    async def _notify_homeowner_lead_update(
        self,
        lead: Lead,
        professional_name: str,
        title: str,
        message: str,
        reason: str | None = None,
    ) -> Notification | None:
        return await self._safe_create(
            NotificationCreate(
                recipient_id=lead.homeowner_id,
                recipient_role=UserRole.HOMEOWNER,
                type=NotificationType.SYSTEM_ALERT,
                category=NotificationCategory.LEAD,
                priority=NotificationPriority.MEDIUM,
                title=title,
                message=message[:500],
                data=LeadNotificationData(
                    lead_id=lead.id,
                    lead_title=lead.title,
                    category=lead.category,
                    professional_name=professional_name,
                    reason=reason,
                ),
                action_url=f"/dashboard/requests/{lead.id}",
            )
        )

    async def notify_homeowner_direct_lead_accepted(
        self, lead: Lead, professional_name: str
    ) -> Notification | None:
        return await self._notify_homeowner_lead_update(
            lead,
            professional_name,
            "Request accepted",
            f"{professional_name} accepted your request \"{lead.title}\".",
        )

    async def notify_homeowner_direct_lead_declined(
        self, lead: Lead, professional_name: str, reason: str | None = None
    ) -> Notification | None:
        return await self._notify_homeowner_lead_update(
            lead,
            professional_name,
            "Request shared with more professionals",
            f"{professional_name} declined \"{lead.title}\". It is now open to other professionals.",
            reason=reason,
        )

    async def notify_homeowner_direct_lead_converted(
        self, lead: Lead, professional_name: str
    ) -> Notification | None:
        return await self._notify_homeowner_lead_update(
            lead,
            professional_name,
            "Request opened to the marketplace",
            f"{professional_name} didn't respond in time, so \"{lead.title}\" is now open to other professionals.",
        )
