"""
Push notification delivery.

Subscriptions are Web Push endpoints registered by browsers. Delivery goes
through a PushSender; the HTTP sender hands each message to the configured
push gateway, the logging sender is used when no gateway is configured.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.config import get_settings
from backend.app.core.exceptions import ProviderError
from backend.app.core.resilience import CircuitBreakerOpenException, get_circuit_breaker
from backend.app.core.security import CurrentUser
from backend.app.models.campaign_orm import PushSubscriptionORM

logger = logging.getLogger(__name__)


class PushSender(ABC):
    @abstractmethod
    async def send(self, subscription: PushSubscriptionORM, payload: Dict[str, Any]) -> None:
        """Deliver one payload. Raises on failure."""
        ...


class LoggingPushSender(PushSender):
    """Used when no push gateway is configured."""

    async def send(self, subscription: PushSubscriptionORM, payload: Dict[str, Any]) -> None:
        logger.info(
            f"Push (no gateway configured) to user {subscription.user_id}: {payload.get('title')}",
            extra={"extra_data": {"endpoint": subscription.endpoint[:60], "payload": payload}},
        )


class HttpPushSender(PushSender):
    """Posts subscription + payload to a push gateway that performs Web Push."""

    def __init__(self, gateway_url: str, token: Optional[str] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.gateway_url = gateway_url
        self.token = token
        self.transport = transport

    async def send(self, subscription: PushSubscriptionORM, payload: Dict[str, Any]) -> None:
        headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}
        body = {
            "subscription": {
                "endpoint": subscription.endpoint,
                "keys": {"p256dh": subscription.p256dh, "auth": subscription.auth},
            },
            "payload": payload,
        }

        async def _post():
            async with httpx.AsyncClient(transport=self.transport, timeout=get_settings().provider_timeout_seconds) as client:
                response = await client.post(self.gateway_url, json=body, headers=headers)
                response.raise_for_status()
                return response

        try:
            await get_circuit_breaker("push_gateway").call(_post)
        except CircuitBreakerOpenException as e:
            raise ProviderError(str(e), provider="push") from e
        except httpx.HTTPError as e:
            raise ProviderError(f"Push gateway error: {e}", provider="push") from e


def get_push_sender() -> PushSender:
    """FastAPI dependency; tests override it with a recording sender."""
    settings = get_settings()
    if settings.push_gateway_url:
        return HttpPushSender(settings.push_gateway_url, settings.push_gateway_token)
    return LoggingPushSender()


def build_payload(title: str, body: str, url: Optional[str] = None, icon: Optional[str] = None, **extra) -> Dict[str, Any]:
    payload = {"title": title, "body": body}
    if url:
        payload["url"] = url
    if icon:
        payload["icon"] = icon
    payload.update({k: v for k, v in extra.items() if v is not None})
    return payload


async def active_subscriptions(
    session: AsyncSession,
    user_ids: Optional[Sequence[str]] = None,
    organization_id: Optional[str] = None,
    owner_id: Optional[str] = None,
) -> List[PushSubscriptionORM]:
    """
    Active subscriptions inside one tenant, optionally narrowed to user_ids.

    The tenant is the organization; a caller without one only reaches its
    own subscriptions. With neither, nothing matches.
    """
    stmt = select(PushSubscriptionORM).where(PushSubscriptionORM.is_active.is_(True))
    if organization_id:
        stmt = stmt.where(PushSubscriptionORM.organization_id == organization_id)
    elif owner_id:
        stmt = stmt.where(
            PushSubscriptionORM.organization_id.is_(None),
            PushSubscriptionORM.user_id == owner_id,
        )
    else:
        return []
    if user_ids is not None:
        if not user_ids:
            return []
        stmt = stmt.where(PushSubscriptionORM.user_id.in_(list(user_ids)))
    result = await session.execute(stmt.order_by(PushSubscriptionORM.created_at))
    return list(result.scalars().all())


async def send_to_subscriptions(
    sender: PushSender,
    subscriptions: Sequence[PushSubscriptionORM],
    payload: Dict[str, Any],
) -> Dict[str, Any]:
    """
    Deliver to every subscription. Individual failures are counted and
    reported, never raised.
    """
    sent, failed, errors = 0, 0, []
    results = []
    for sub in subscriptions:
        try:
            await sender.send(sub, payload)
            sent += 1
            results.append((sub, None))
        except Exception as e:
            failed += 1
            errors.append(f"{sub.user_id}: {e}")
            results.append((sub, str(e)))
            logger.warning(f"Push to user {sub.user_id} failed: {e}")
    return {"sent": sent, "failed": failed, "errors": errors, "results": results}


async def subscribe(
    session: AsyncSession,
    user: CurrentUser,
    endpoint: str,
    p256dh: str,
    auth: str,
    user_id: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> PushSubscriptionORM:
    """Upsert by endpoint."""
    existing = (
        await session.execute(select(PushSubscriptionORM).where(PushSubscriptionORM.endpoint == endpoint))
    ).scalar_one_or_none()
    if existing is not None:
        existing.p256dh = p256dh
        existing.auth = auth
        existing.user_id = user_id or user.id
        existing.organization_id = user.organization_id
        existing.is_active = True
        existing.user_agent = user_agent or existing.user_agent
        await session.flush()
        return existing

    subscription = PushSubscriptionORM(
        endpoint=endpoint,
        p256dh=p256dh,
        auth=auth,
        user_id=user_id or user.id,
        organization_id=user.organization_id,
        user_agent=user_agent,
    )
    session.add(subscription)
    await session.flush()
    logger.info(f"Push subscription registered for user {subscription.user_id}")
    return subscription


async def unsubscribe(session: AsyncSession, endpoint: str) -> bool:
    subscription = (
        await session.execute(select(PushSubscriptionORM).where(PushSubscriptionORM.endpoint == endpoint))
    ).scalar_one_or_none()
    if subscription is None:
        return False
    subscription.is_active = False
    subscription.updated_at = datetime.now(timezone.utc)
    await session.flush()
    return True
