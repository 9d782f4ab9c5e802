"""
Homezy lifecycle services.

Services:
- reminder_service: service reminder store and lifecycle transitions
- service_history_service / pattern_sync_service: pattern-based reminders
- seasonal_service: UAE seasonal reminder calendar
- direct_lead_service: direct lead state machine
- notification_service: in-app notifications with real-time and push fan-out
- email_service / push_service: outbound delivery
"""

from homezy.services.direct_lead_service import DirectLeadService
from homezy.services.email_service import EmailService
from homezy.services.notification_service import NotificationService
from homezy.services.pattern_sync_service import PatternSyncService, SyncResult
from homezy.services.push_service import PushService
from homezy.services.reminder_service import ReminderService
from homezy.services.seasonal_service import SeasonalReminderService
from homezy.services.service_history_service import ServiceHistoryService, ServicePattern

__all__ = [
    "DirectLeadService",
    "EmailService",
    "NotificationService",
    "PatternSyncService",
    "PushService",
    "ReminderService",
    "SeasonalReminderService",
    "ServiceHistoryService",
    "ServicePattern",
    "SyncResult",
]
