"""
Channel messaging: picks the organization's provider credential for a
channel and sends through the matching adapter.
"""

import logging
from typing import Optional

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import NotFoundError, ProviderError
from backend.app.schemas.messaging import OutboundMessage, SendResult
from backend.app.services.credential_service import decrypted_config, get_channel_credential, log_operation
from backend.app.services.provider_adapters import ProviderAdapter, get_adapter

logger = logging.getLogger(__name__)

CHANNEL_LABELS = {"whatsapp": "WhatsApp", "sms": "SMS", "slack": "Slack"}


class MessagingService:
    """Sends WhatsApp / SMS / Slack messages on behalf of an organization."""

    def __init__(self, session: AsyncSession, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.session = session
        self.transport = transport

    async def adapter_for(
        self, organization_id: str, channel: str, credential_id: Optional[str] = None
    ) -> tuple:
        credential = await get_channel_credential(self.session, organization_id, channel, credential_id)
        if credential is None:
            label = CHANNEL_LABELS.get(channel, channel)
            raise NotFoundError(f"No active {label} provider configured for this organization")
        adapter: ProviderAdapter = get_adapter(credential.provider, decrypted_config(credential), self.transport)
        return credential, adapter

    async def send(
        self,
        organization_id: str,
        channel: str,
        message: OutboundMessage,
        credential_id: Optional[str] = None,
    ) -> SendResult:
        """
        Send and log. A provider-side rejection raises ProviderError so
        callers (workflow actions, test endpoints) see it as a failure.
        """
        credential, adapter = await self.adapter_for(organization_id, channel, credential_id)
        result = await adapter.send(message)

        await log_operation(
            self.session,
            credential.id,
            "send",
            "success" if result.success else "failed",
            details={"channel": channel, "to": message.to, "messageId": result.message_id},
            error_message=result.error,
        )
        if not result.success:
            logger.warning(f"{credential.provider} send failed for org {organization_id}: {result.error}")
            raise ProviderError(result.error or "Provider rejected the message", provider=credential.provider)

        logger.info(f"{CHANNEL_LABELS.get(channel, channel)} message sent via {credential.provider} ({result.message_id})")
        return result
