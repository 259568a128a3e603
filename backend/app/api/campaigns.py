"""
Notification campaigns.

``tracking_router`` holds the click / close beacons fired from the service
worker; they carry no bearer token.
"""
import logging
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.database import get_db
from backend.app.core.security import CurrentUser, get_current_user
from backend.app.schemas.campaigns import (
    CampaignAnalytics,
    CampaignCreate,
    CampaignExecuteResponse,
    CampaignResponse,
    CampaignUpdate,
    DeliveryTrackRequest,
)
from backend.app.schemas.common import DeleteResponse
from backend.app.services import campaign_service
from backend.app.services.push_service import PushSender, get_push_sender

logger = logging.getLogger(__name__)
router = APIRouter()
tracking_router = APIRouter()


@router.get("", response_model=List[CampaignResponse])
async def list_campaigns(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return [CampaignResponse.model_validate(c) for c in await campaign_service.list_campaigns(db, current_user)]


@router.post("", response_model=CampaignResponse, status_code=201)
async def create_campaign(
    payload: CampaignCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return CampaignResponse.model_validate(await campaign_service.create_campaign(db, current_user, payload))


@router.get("/{campaign_id}", response_model=CampaignResponse)
async def get_campaign(
    campaign_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return CampaignResponse.model_validate(await campaign_service.get_campaign(db, current_user, campaign_id))


@router.put("/{campaign_id}", response_model=CampaignResponse)
async def update_campaign(
    campaign_id: str,
    payload: CampaignUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    campaign = await campaign_service.update_campaign(db, current_user, campaign_id, payload)
    return CampaignResponse.model_validate(campaign)


@router.delete("/{campaign_id}", response_model=DeleteResponse)
async def delete_campaign(
    campaign_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    await campaign_service.delete_campaign(db, current_user, campaign_id)
    return DeleteResponse(id=campaign_id)


@router.post("/{campaign_id}/execute", response_model=CampaignExecuteResponse)
async def execute_campaign(
    campaign_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
    push_sender: PushSender = Depends(get_push_sender),
):
    """Send the campaign once. Sent or completed campaigns answer 409."""
    return CampaignExecuteResponse(**await campaign_service.execute_campaign(db, current_user, campaign_id, push_sender))


@router.get("/{campaign_id}/analytics", response_model=CampaignAnalytics)
async def campaign_analytics(
    campaign_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return CampaignAnalytics(**await campaign_service.campaign_analytics(db, current_user, campaign_id))


@tracking_router.post("/track-click")
async def track_click(payload: DeliveryTrackRequest, db: AsyncSession = Depends(get_db)):
    delivery = await campaign_service.track_delivery(db, payload.campaign_id, payload.user_id, "click")
    return {"success": True, "status": delivery.status}


@tracking_router.post("/track-close")
async def track_close(payload: DeliveryTrackRequest, db: AsyncSession = Depends(get_db)):
    delivery = await campaign_service.track_delivery(db, payload.campaign_id, payload.user_id, "close")
    return {"success": True, "status": delivery.status}
