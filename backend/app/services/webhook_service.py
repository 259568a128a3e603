"""
Outbound webhooks.

Each tracked event that passes a webhook's filters is POSTed to its URL as
``{"event": "event.created", "data": <event>, "timestamp": ...}``. The body
is signed with HMAC-SHA256 using the webhook secret and the hex digest sent
in ``X-Webhook-Signature``. Delivery failures bump ``failure_count`` and
are never raised to the ingestion path.
"""

import hashlib
import hmac
import json
import logging
import secrets
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.config import get_settings
from backend.app.core.exceptions import NotFoundError
from backend.app.core.resilience import CircuitBreakerOpenException, get_circuit_breaker
from backend.app.core.security import CurrentUser
from backend.app.models.webhook_orm import WebhookORM
from backend.app.schemas.webhooks import WebhookCreate, WebhookUpdate
from backend.app.services.trigger_matching import filters_match

logger = logging.getLogger(__name__)

EVENT_CREATED = "event.created"
SIGNATURE_HEADER = "X-Webhook-Signature"


def generate_secret() -> str:
    return secrets.token_hex(32)


def sign_payload(secret: str, body: bytes) -> str:
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


def _scope(stmt, user: CurrentUser):
    if user.organization_id:
        return stmt.where(WebhookORM.organization_id == user.organization_id)
    return stmt.where(WebhookORM.user_id == user.id)


async def create_webhook(session: AsyncSession, user: CurrentUser, data: WebhookCreate) -> WebhookORM:
    webhook = WebhookORM(
        url=str(data.url),
        secret=generate_secret(),
        events=list(data.events),
        event_name=data.event_name,
        filter_item_name=data.filter_item_name,
        filter_item_category=data.filter_item_category,
        filter_item_id=data.filter_item_id,
        filter_value=data.filter_value,
        is_active=data.is_active,
        user_id=user.id,
        organization_id=user.organization_id,
    )
    session.add(webhook)
    await session.flush()
    logger.info(f"Webhook registered: {webhook.url} (id={webhook.id})")
    return webhook


async def list_webhooks(session: AsyncSession, user: CurrentUser) -> List[WebhookORM]:
    stmt = _scope(select(WebhookORM), user).order_by(WebhookORM.created_at.desc())
    return list((await session.execute(stmt)).scalars().all())


async def get_webhook(session: AsyncSession, user: CurrentUser, webhook_id: str) -> WebhookORM:
    stmt = _scope(select(WebhookORM).where(WebhookORM.id == webhook_id), user)
    webhook = (await session.execute(stmt)).scalar_one_or_none()
    if webhook is None:
        raise NotFoundError("Webhook not found")
    return webhook


async def update_webhook(
    session: AsyncSession, user: CurrentUser, webhook_id: str, data: WebhookUpdate
) -> WebhookORM:
    webhook = await get_webhook(session, user, webhook_id)
    for key, value in data.model_dump(exclude_unset=True).items():
        if key == "url" and value is not None:
            value = str(value)
        setattr(webhook, key, value)
    await session.flush()
    return webhook


async def delete_webhook(session: AsyncSession, user: CurrentUser, webhook_id: str) -> None:
    webhook = await get_webhook(session, user, webhook_id)
    await session.delete(webhook)
    await session.flush()


async def matching_webhooks(session: AsyncSession, event: Dict[str, Any]) -> List[WebhookORM]:
    """
    Active webhooks whose filters accept the event: the event's organization,
    or for an event without one, the webhooks its user owns outside any
    organization.
    """
    stmt = select(WebhookORM).where(WebhookORM.is_active.is_(True))
    org_id = event.get("organizationId")
    if org_id:
        stmt = stmt.where(WebhookORM.organization_id == org_id)
    else:
        stmt = stmt.where(WebhookORM.organization_id.is_(None), WebhookORM.user_id == event["userId"])
    candidates = (await session.execute(stmt)).scalars().all()
    return [
        w for w in candidates
        if EVENT_CREATED in (w.events or []) and filters_match(w.filters(), event)
    ]


async def _post(webhook: WebhookORM, body: bytes, transport: Optional[httpx.AsyncBaseTransport]) -> httpx.Response:
    headers = {
        "Content-Type": "application/json",
        SIGNATURE_HEADER: sign_payload(webhook.secret, body),
        "X-Webhook-Event": EVENT_CREATED,
    }
    async with httpx.AsyncClient(transport=transport, timeout=get_settings().webhook_timeout_seconds) as client:
        response = await client.post(webhook.url, content=body, headers=headers)
        response.raise_for_status()
        return response


async def deliver_event(
    session: AsyncSession,
    event: Dict[str, Any],
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Dict[str, int]:
    """Fire ``event.created`` to every matching webhook. Returns delivered / failed counts."""
    webhooks = await matching_webhooks(session, event)
    if not webhooks:
        return {"delivered": 0, "failed": 0}

    body = json.dumps(
        {"event": EVENT_CREATED, "data": event, "timestamp": datetime.now(timezone.utc).isoformat()},
        default=str,
    ).encode()

    delivered, failed = 0, 0
    for webhook in webhooks:
        try:
            await get_circuit_breaker(f"webhook:{webhook.id}").call(_post, webhook, body, transport)
            webhook.last_triggered = datetime.now(timezone.utc)
            delivered += 1
        except (httpx.HTTPError, CircuitBreakerOpenException) as e:
            webhook.failure_count = (webhook.failure_count or 0) + 1
            failed += 1
            logger.warning(
                f"Webhook delivery failed: {webhook.url}: {e}",
                extra={"extra_data": {"webhook_id": webhook.id, "failure_count": webhook.failure_count}},
            )
    await session.flush()
    return {"delivered": delivered, "failed": failed}
