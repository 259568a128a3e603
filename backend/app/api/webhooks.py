"""
Outbound webhook registration.
"""
import logging
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.database import get_db
from backend.app.core.security import CurrentUser, get_current_user
from backend.app.schemas.common import DeleteResponse
from backend.app.schemas.webhooks import WebhookCreate, WebhookCreatedResponse, WebhookResponse, WebhookUpdate
from backend.app.services import webhook_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("", response_model=List[WebhookResponse])
async def list_webhooks(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return [WebhookResponse.model_validate(w) for w in await webhook_service.list_webhooks(db, current_user)]


@router.post("", response_model=WebhookCreatedResponse, status_code=201)
async def create_webhook(
    payload: WebhookCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    """The signing secret is only returned here."""
    return WebhookCreatedResponse.model_validate(await webhook_service.create_webhook(db, current_user, payload))


@router.get("/{webhook_id}", response_model=WebhookResponse)
async def get_webhook(
    webhook_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return WebhookResponse.model_validate(await webhook_service.get_webhook(db, current_user, webhook_id))


@router.put("/{webhook_id}", response_model=WebhookResponse)
async def update_webhook(
    webhook_id: str,
    payload: WebhookUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return WebhookResponse.model_validate(await webhook_service.update_webhook(db, current_user, webhook_id, payload))


@router.delete("/{webhook_id}", response_model=DeleteResponse)
async def delete_webhook(
    webhook_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    await webhook_service.delete_webhook(db, current_user, webhook_id)
    return DeleteResponse(id=webhook_id)
