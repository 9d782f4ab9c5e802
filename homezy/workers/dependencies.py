"""
Worker dependency container.

Built once at process start and passed to every job, so jobs never reach for
module-level singletons.
"""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

import httpx
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from database.connection import get_session_factory
from homezy.services.direct_lead_service import DirectLeadService
from homezy.services.email_service import EmailService
from homezy.services.notification_service import NotificationService, RealtimeEmitter
from homezy.services.pattern_sync_service import PatternSyncService
from homezy.services.push_service import PushService
from homezy.services.reminder_service import ReminderService
from homezy.services.seasonal_service import SeasonalReminderService
from homezy.services.service_history_service import ServiceHistoryService
from homezy.utils.date_utils import utc_now
from shared.email_client import BrevoEmailClient
from shared.push_client import ExpoPushClient


@dataclass
class WorkerDependencies:
    session_factory: async_sessionmaker[AsyncSession]
    clock: Callable[[], datetime]
    reminders: ReminderService
    service_history: ServiceHistoryService
    pattern_sync: PatternSyncService
    seasonal: SeasonalReminderService
    notifications: NotificationService
    email: EmailService
    direct_leads: DirectLeadService
    http_transport: httpx.AsyncBaseTransport | None = None


def build_worker_dependencies(
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    clock: Callable[[], datetime] = utc_now,
    email_client: BrevoEmailClient | None = None,
    push_client: ExpoPushClient | None = None,
    realtime_emitter: RealtimeEmitter | None = None,
    http_transport: httpx.AsyncBaseTransport | None = None,
) -> WorkerDependencies:
    """Wire services together around one session factory and one clock."""
    session_factory = session_factory or get_session_factory()

    history = ServiceHistoryService(session_factory)
    email = EmailService(email_client)
    notifications = NotificationService(
        session_factory,
        push_service=PushService(push_client, session_factory),
        realtime_emitter=realtime_emitter,
        clock=clock,
    )
    return WorkerDependencies(
        session_factory=session_factory,
        clock=clock,
        reminders=ReminderService(session_factory, clock),
        service_history=history,
        pattern_sync=PatternSyncService(history, session_factory, clock),
        seasonal=SeasonalReminderService(session_factory, clock),
        notifications=notifications,
        email=email,
        direct_leads=DirectLeadService(notifications, email, session_factory, clock),
        http_transport=http_transport,
    )
