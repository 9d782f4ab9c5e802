"""
API routes for homeowner service reminders.

Every route is scoped to the calling homeowner: a reminder that does not
exist and one owned by someone else both return 404.
"""

import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status

from api.dependencies import (
    HomeownerUser,
    get_pattern_sync_service,
    get_reminder_service,
    get_service_history_service,
)
from api.models.responses import (
    ServiceHistoryResponse,
    ServiceReminderListResponse,
    ServiceReminderResponse,
    SyncResponse,
)
from database.models import HomeServiceCategory, ReminderStatus, ServiceReminder
from homezy.schemas import (
    ReminderComplete,
    ReminderConvert,
    ReminderSnooze,
    ServiceHistoryCreate,
    ServiceReminderCreate,
    ServiceReminderUpdate,
)
from homezy.services.pattern_sync_service import PatternSyncService
from homezy.services.reminder_service import ReminderService
from homezy.services.service_history_service import ServiceHistoryService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/service-reminders", tags=["service-reminders"])

Reminders = Annotated[ReminderService, Depends(get_reminder_service)]


async def _found_or_conflict(
    reminders: ReminderService,
    reminder_id: UUID,
    homeowner_id: UUID,
    result: ServiceReminder | None,
    action: str,
) -> ServiceReminder:
    """Map a refused operation to 404 (missing) or 409 (wrong state)."""
    if result is not None:
        return result
    if await reminders.get_by_id(reminder_id, homeowner_id) is None:
        raise HTTPException(status_code=404, detail="Reminder not found")
    raise HTTPException(status_code=409, detail=f"Reminder cannot be {action} in its current state")


@router.post("", response_model=ServiceReminderResponse, status_code=status.HTTP_201_CREATED)
async def create_reminder(data: ServiceReminderCreate, user: HomeownerUser, reminders: Reminders):
    return await reminders.create(user.id, data)


@router.get("", response_model=ServiceReminderListResponse)
async def list_reminders(
    user: HomeownerUser,
    reminders: Reminders,
    property_id: UUID | None = None,
    category: HomeServiceCategory | None = None,
    status_filter: Annotated[ReminderStatus | None, Query(alias="status")] = None,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
    offset: Annotated[int, Query(ge=0)] = 0,
):
    items, total = await reminders.list_for_homeowner(
        user.id,
        property_id=property_id,
        category=category,
        status=status_filter,
        limit=limit,
        offset=offset,
    )
    return {"items": items, "total": total, "limit": limit, "offset": offset}


@router.get("/upcoming", response_model=list[ServiceReminderResponse])
async def upcoming_reminders(
    user: HomeownerUser,
    reminders: Reminders,
    property_id: UUID | None = None,
    days_ahead: Annotated[int, Query(ge=1, le=365)] = 30,
    limit: Annotated[int, Query(ge=1, le=100)] = 10,
):
    return await reminders.get_upcoming(user.id, property_id, days_ahead=days_ahead, limit=limit)


@router.get("/overdue", response_model=list[ServiceReminderResponse])
async def overdue_reminders(
    user: HomeownerUser,
    reminders: Reminders,
    property_id: UUID | None = None,
    limit: Annotated[int, Query(ge=1, le=100)] = 10,
):
    return await reminders.get_overdue(user.id, property_id, limit=limit)


@router.post("/sync", response_model=SyncResponse)
async def sync_from_history(
    user: HomeownerUser,
    sync_service: Annotated[PatternSyncService, Depends(get_pattern_sync_service)],
    property_id: UUID | None = None,
):
    """Create or refresh pattern-based reminders from the caller's service history."""
    result = await sync_service.sync_reminders_from_service_history(user.id, property_id)
    return {"created": result.created, "updated": result.updated}


@router.post("/history", response_model=ServiceHistoryResponse, status_code=status.HTTP_201_CREATED)
async def record_completed_service(
    data: ServiceHistoryCreate,
    user: HomeownerUser,
    history: Annotated[ServiceHistoryService, Depends(get_service_history_service)],
):
    """Record a completed service; the next sync picks it up for pattern detection."""
    return await history.record_service(
        user.id,
        data.category,
        data.title,
        data.completed_at,
        property_id=data.property_id,
        cost=data.cost,
    )


@router.get("/{reminder_id}", response_model=ServiceReminderResponse)
async def get_reminder(reminder_id: UUID, user: HomeownerUser, reminders: Reminders):
    reminder = await reminders.get_by_id(reminder_id, user.id)
    if reminder is None:
        raise HTTPException(status_code=404, detail="Reminder not found")
    return reminder


@router.patch("/{reminder_id}", response_model=ServiceReminderResponse)
async def update_reminder(
    reminder_id: UUID, data: ServiceReminderUpdate, user: HomeownerUser, reminders: Reminders
):
    try:
        result = await reminders.update(reminder_id, user.id, data)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return await _found_or_conflict(reminders, reminder_id, user.id, result, "updated")


@router.delete("/{reminder_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_reminder(reminder_id: UUID, user: HomeownerUser, reminders: Reminders):
    if not await reminders.delete(reminder_id, user.id):
        raise HTTPException(status_code=404, detail="Reminder not found")


@router.post("/{reminder_id}/snooze", response_model=ServiceReminderResponse)
async def snooze_reminder(
    reminder_id: UUID, data: ReminderSnooze, user: HomeownerUser, reminders: Reminders
):
    result = await reminders.snooze(reminder_id, user.id, data.days)
    return await _found_or_conflict(reminders, reminder_id, user.id, result, "snoozed")


@router.post("/{reminder_id}/pause", response_model=ServiceReminderResponse)
async def pause_reminder(reminder_id: UUID, user: HomeownerUser, reminders: Reminders):
    result = await reminders.pause(reminder_id, user.id)
    return await _found_or_conflict(reminders, reminder_id, user.id, result, "paused")


@router.post("/{reminder_id}/resume", response_model=ServiceReminderResponse)
async def resume_reminder(reminder_id: UUID, user: HomeownerUser, reminders: Reminders):
    result = await reminders.resume(reminder_id, user.id)
    return await _found_or_conflict(reminders, reminder_id, user.id, result, "resumed")


@router.post("/{reminder_id}/complete", response_model=ServiceReminderResponse)
async def complete_reminder(
    reminder_id: UUID, user: HomeownerUser, reminders: Reminders, data: ReminderComplete | None = None
):
    service_date = data.service_date if data is not None else None
    result = await reminders.complete(reminder_id, user.id, service_date)
    return await _found_or_conflict(reminders, reminder_id, user.id, result, "completed")


@router.post("/{reminder_id}/convert-to-quote", response_model=ServiceReminderResponse)
async def convert_reminder(
    reminder_id: UUID, data: ReminderConvert, user: HomeownerUser, reminders: Reminders
):
    result = await reminders.convert_to_quote(reminder_id, user.id, data.lead_id)
    return await _found_or_conflict(reminders, reminder_id, user.id, result, "converted")
