"""API routes for direct leads (homeowner -> one professional)."""

import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status

from api.dependencies import HomeownerUser, ProfessionalUser, get_direct_lead_service
from api.models.responses import LeadResponse
from database.models import DirectLeadStatus
from homezy.schemas import DirectLeadCreate, DirectLeadDecline
from homezy.services.direct_lead_service import (
    DirectLeadService,
    InvalidLeadStateError,
    LeadForbiddenError,
    LeadNotFoundError,
    ProfessionalUnavailableError,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/leads/direct", tags=["direct-leads"])

DirectLeads = Annotated[DirectLeadService, Depends(get_direct_lead_service)]


def _http_error(e: Exception) -> HTTPException:
    if isinstance(e, LeadNotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, LeadForbiddenError):
        return HTTPException(status_code=403, detail=str(e))
    if isinstance(e, (InvalidLeadStateError, ProfessionalUnavailableError)):
        return HTTPException(status_code=409, detail=str(e))
    return HTTPException(status_code=500, detail="Internal server error")


@router.post("", response_model=LeadResponse, status_code=status.HTTP_201_CREATED)
async def create_direct_lead(data: DirectLeadCreate, user: HomeownerUser, leads: DirectLeads):
    """
    Send a request privately to one professional.

    **Errors:**
    - **404**: Professional not found
    - **409**: Professional is not verified
    """
    try:
        return await leads.create_direct_lead(user.id, data)
    except (LeadNotFoundError, ProfessionalUnavailableError) as e:
        raise _http_error(e)


@router.get("/mine", response_model=list[LeadResponse])
async def list_received(
    user: ProfessionalUser,
    leads: DirectLeads,
    status_filter: Annotated[DirectLeadStatus | None, Query(alias="status")] = None,
):
    return await leads.list_direct_leads_for_professional(user.id, status_filter)


@router.get("/sent", response_model=list[LeadResponse])
async def list_sent(user: HomeownerUser, leads: DirectLeads):
    return await leads.list_direct_leads_for_homeowner(user.id)


@router.post("/{lead_id}/accept", response_model=LeadResponse)
async def accept_direct_lead(lead_id: UUID, user: ProfessionalUser, leads: DirectLeads):
    """
    Accept a pending direct lead inside its response window.

    **Errors:**
    - **403**: Lead was sent to another professional
    - **404**: Lead not found
    - **409**: Lead already answered, expired or past its window
    """
    try:
        return await leads.accept_direct_lead(lead_id, user.id)
    except (LeadNotFoundError, LeadForbiddenError, InvalidLeadStateError) as e:
        raise _http_error(e)


@router.post("/{lead_id}/decline", response_model=LeadResponse)
async def decline_direct_lead(
    lead_id: UUID,
    user: ProfessionalUser,
    leads: DirectLeads,
    data: DirectLeadDecline | None = None,
):
    try:
        return await leads.decline_direct_lead(lead_id, user.id, data.reason if data else None)
    except (LeadNotFoundError, LeadForbiddenError, InvalidLeadStateError) as e:
        raise _http_error(e)
