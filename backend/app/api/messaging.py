"""
Channel test endpoints: WhatsApp, SMS and Slack.

Each sends one real message through the organization's configured
provider so integrations can be verified from the dashboard.
"""
import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.database import get_db
from backend.app.core.exceptions import ValidationError
from backend.app.core.security import CurrentUser, get_current_user
from backend.app.schemas.credentials import SlackChannel, SlackChannelsResponse
from backend.app.schemas.messaging import (
    OutboundMessage,
    SendResult,
    SlackTestRequest,
    SmsTestRequest,
    WhatsAppTestRequest,
)
from backend.app.services.messaging_service import MessagingService
from backend.app.services.provider_adapters import get_provider_transport

logger = logging.getLogger(__name__)
router = APIRouter()


def _require_org(user: CurrentUser) -> str:
    if not user.organization_id:
        raise ValidationError("An organization is required to send messages")
    return user.organization_id


@router.post("/whatsapp/test", response_model=SendResult)
async def test_whatsapp(
    payload: WhatsAppTestRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
    transport=Depends(get_provider_transport),
):
    message = OutboundMessage(
        to=payload.to_phone,
        template_name=payload.template_name,
        namespace=payload.namespace,
        language=payload.language,
        params=payload.params,
    )
    return await MessagingService(db, transport).send(
        _require_org(current_user), "whatsapp", message, credential_id=payload.credential_id
    )


@router.post("/sms/test", response_model=SendResult)
async def test_sms(
    payload: SmsTestRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
    transport=Depends(get_provider_transport),
):
    message = OutboundMessage(to=payload.to_phone, text=payload.message, from_=payload.from_phone)
    return await MessagingService(db, transport).send(
        _require_org(current_user), "sms", message, credential_id=payload.credential_id
    )


@router.get("/slack/channels", response_model=SlackChannelsResponse)
async def list_slack_channels(
    credential_id: str = Query(..., alias="credentialId"),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
    transport=Depends(get_provider_transport),
):
    _, adapter = await MessagingService(db, transport).adapter_for(current_user.organization_id, "slack", credential_id)
    channels = await adapter.list_channels()
    return SlackChannelsResponse(channels=[SlackChannel(**c) for c in channels])


@router.post("/slack/test", response_model=SendResult)
async def test_slack(
    payload: SlackTestRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
    transport=Depends(get_provider_transport),
):
    message = OutboundMessage(to=payload.channel, channel=payload.channel, text=payload.text)
    return await MessagingService(db, transport).send(
        current_user.organization_id, "slack", message, credential_id=payload.credential_id
    )
