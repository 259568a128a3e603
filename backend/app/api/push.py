"""
Push subscriptions and test sends.
"""
import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.database import get_db
from backend.app.core.security import CurrentUser, get_current_user
from backend.app.schemas.campaigns import (
    PushSendSummary,
    PushSubscribeRequest,
    PushSubscriptionResponse,
    PushTestRequest,
    PushUnsubscribeRequest,
)
from backend.app.services import push_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/subscribe", response_model=PushSubscriptionResponse, status_code=201)
async def subscribe(
    payload: PushSubscribeRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    subscription = await push_service.subscribe(
        db,
        current_user,
        endpoint=payload.endpoint,
        p256dh=payload.keys.p256dh,
        auth=payload.keys.auth,
        user_id=payload.user_id,
        user_agent=request.headers.get("user-agent"),
    )
    return PushSubscriptionResponse.model_validate(subscription)


@router.post("/unsubscribe")
async def unsubscribe(
    payload: PushUnsubscribeRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return {"success": await push_service.unsubscribe(db, payload.endpoint)}


@router.post("/test", response_model=PushSendSummary)
async def send_test_push(
    payload: PushTestRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
    sender: push_service.PushSender = Depends(push_service.get_push_sender),
):
    """Send a test notification to the given users, or to the caller."""
    subscriptions = await push_service.active_subscriptions(
        db,
        user_ids=payload.user_ids or [current_user.id],
        organization_id=current_user.organization_id,
        owner_id=current_user.id,
    )
    message = push_service.build_payload(payload.title, payload.body, url=payload.url)
    summary = await push_service.send_to_subscriptions(sender, subscriptions, message)
    return PushSendSummary(sent=summary["sent"], failed=summary["failed"], errors=summary["errors"], payload=message)
