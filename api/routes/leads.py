"""API routes for public marketplace leads."""

import logging

from fastapi import APIRouter, status

from api.dependencies import HomeownerUser
from api.models.responses import LeadResponse
from api.routes.direct_leads import DirectLeads
from homezy.schemas import LeadCreate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/leads", tags=["leads"])


@router.post("", response_model=LeadResponse, status_code=status.HTTP_201_CREATED)
async def create_public_lead(data: LeadCreate, user: HomeownerUser, leads: DirectLeads):
    """Post a request to the marketplace, open to any verified professional."""
    return await leads.create_public_lead(user.id, data)
