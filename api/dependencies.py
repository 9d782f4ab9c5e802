"""
Request dependencies: caller identity and service providers.

The caller identity comes from headers set by the upstream gateway after it
authenticated the request. Services are built once per process; tests swap
them through `app.dependency_overrides`.
"""

from dataclasses import dataclass
from functools import lru_cache
from typing import Annotated
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status

from database.models import UserRole
from homezy.services.direct_lead_service import DirectLeadService
from homezy.services.notification_service import NotificationService
from homezy.services.pattern_sync_service import PatternSyncService
from homezy.services.reminder_service import ReminderService
from homezy.services.service_history_service import ServiceHistoryService
from homezy.workers.dependencies import WorkerDependencies, build_worker_dependencies
from shared.redis_client import RedisRealtimeEmitter


@dataclass(frozen=True)
class CurrentUser:
    id: UUID
    role: UserRole


async def get_current_user(
    x_user_id: Annotated[str | None, Header()] = None,
    x_user_role: Annotated[str | None, Header()] = None,
) -> CurrentUser:
    if not x_user_id or not x_user_role:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    try:
        return CurrentUser(id=UUID(x_user_id), role=UserRole(x_user_role))
    except ValueError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid identity headers")


def require_role(*roles: UserRole):
    async def checker(user: Annotated[CurrentUser, Depends(get_current_user)]) -> CurrentUser:
        if user.role not in roles:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
        return user

    return checker


HomeownerUser = Annotated[CurrentUser, Depends(require_role(UserRole.HOMEOWNER))]
ProfessionalUser = Annotated[CurrentUser, Depends(require_role(UserRole.PRO))]
AdminUser = Annotated[CurrentUser, Depends(require_role(UserRole.ADMIN))]
AnyUser = Annotated[CurrentUser, Depends(get_current_user)]


@lru_cache
def get_services() -> WorkerDependencies:
    return build_worker_dependencies(realtime_emitter=RedisRealtimeEmitter())


def get_reminder_service() -> ReminderService:
    return get_services().reminders


def get_pattern_sync_service() -> PatternSyncService:
    return get_services().pattern_sync


def get_service_history_service() -> ServiceHistoryService:
    return get_services().service_history


def get_direct_lead_service() -> DirectLeadService:
    return get_services().direct_leads


def get_notification_service() -> NotificationService:
    return get_services().notifications
