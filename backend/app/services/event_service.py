"""
Event Store service.

Ingestion normalizes the tracking payload, appends one Event row and hands
the event to webhooks and workflows, either inline or via the event bus.
"""

import logging
import math
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

import httpx
from sqlalchemy import distinct, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import NotFoundError
from backend.app.core.security import CurrentUser
from backend.app.models.event_orm import EventORM
from backend.app.models.workflow_orm import WorkflowExecutionORM
from backend.app.schemas.events import EventCreate
from backend.app.services.push_service import PushSender
from backend.app.services.webhook_service import deliver_event
from backend.app.services.workflow_engine import WorkflowEngine

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY = "engagement"


def parse_value(value: Any) -> Optional[float]:
    """Numbers and numeric strings become floats; anything else is dropped."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def _str_or_none(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


def normalize_event(
    data: EventCreate,
    user: CurrentUser,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
    referrer: Optional[str] = None,
) -> EventORM:
    props = dict(data.properties or {})
    value = data.value if data.value is not None else props.get("value")

    event = EventORM(
        name=data.name,
        category=data.category or DEFAULT_CATEGORY,
        properties=props,
        # Without an organization the caller is the only user it can track
        user_id=(data.user_id or user.id) if user.organization_id else user.id,
        organization_id=user.organization_id,
        path=data.path,
        action=data.action,
        value=parse_value(value),
        item_name=data.item_name or _str_or_none(props.get("name")),
        item_id=data.item_id or _str_or_none(props.get("id")),
        item_category=data.item_category or _str_or_none(props.get("category")),
        page_title=data.page_title,
        plan_id=data.plan_id,
        user_phone=data.user_phone or _str_or_none(props.get("userPhone")),
        ip_address=ip_address,
        user_agent=user_agent,
        referrer=referrer or props.get("referrer"),
    )
    if data.timestamp is not None:
        event.timestamp = data.timestamp
    return event


async def record_event(session: AsyncSession, event: EventORM) -> EventORM:
    session.add(event)
    await session.flush()
    logger.info(
        f"Event tracked: {event.category}/{event.name}",
        extra={"extra_data": {"event_id": event.id, "user_id": event.user_id}},
    )
    return event


async def dispatch_event(
    session: AsyncSession,
    payload: Dict[str, Any],
    transport: Optional[httpx.AsyncBaseTransport] = None,
    push_sender: Optional[PushSender] = None,
) -> List[WorkflowExecutionORM]:
    """Webhooks first, then matching workflows, one after the other."""
    await deliver_event(session, payload, transport=transport)
    engine = WorkflowEngine(session, transport=transport, push_sender=push_sender)
    return await engine.trigger_workflows(payload)


def _scope(stmt, user: CurrentUser):
    if user.organization_id:
        return stmt.where(EventORM.organization_id == user.organization_id)
    return stmt.where(EventORM.user_id == user.id)


async def list_events(
    session: AsyncSession,
    user: CurrentUser,
    page: int = 1,
    limit: int = 50,
    name: Optional[str] = None,
    category: Optional[str] = None,
    plan_id: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
) -> Tuple[List[EventORM], int]:
    stmt = _scope(select(EventORM), user)
    if name:
        stmt = stmt.where(EventORM.name.ilike(f"%{name}%"))
    if category:
        stmt = stmt.where(EventORM.category.ilike(f"%{category}%"))
    if plan_id:
        stmt = stmt.where(EventORM.plan_id == plan_id)
    if start_date:
        stmt = stmt.where(EventORM.timestamp >= start_date)
    if end_date:
        stmt = stmt.where(EventORM.timestamp <= end_date)

    total = (await session.execute(select(func.count()).select_from(stmt.subquery()))).scalar_one()
    rows = await session.execute(
        stmt.order_by(EventORM.timestamp.desc()).limit(limit).offset((page - 1) * limit)
    )
    return list(rows.scalars().all()), total


async def event_names(session: AsyncSession, user: CurrentUser) -> Dict[str, List[str]]:
    names = await session.execute(_scope(select(distinct(EventORM.name)), user).order_by(EventORM.name))
    categories = await session.execute(_scope(select(distinct(EventORM.category)), user).order_by(EventORM.category))
    return {"names": list(names.scalars().all()), "categories": list(categories.scalars().all())}


async def get_event(session: AsyncSession, user: CurrentUser, event_id: str) -> EventORM:
    event = (await session.execute(_scope(select(EventORM).where(EventORM.id == event_id), user))).scalar_one_or_none()
    if event is None:
        raise NotFoundError("Event not found")
    return event
