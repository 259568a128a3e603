"""
Event tracking API.

POST records one analytics event and runs the webhooks and workflows it
triggers (inline, or through the event bus when dispatch is queued).
"""
import logging
import math
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.config import get_settings
from backend.app.core.database import get_db
from backend.app.core.logging import correlation_id_ctx
from backend.app.core.security import CurrentUser, get_current_user
from backend.app.events.bus import publish_event
from backend.app.events.schemas import EventTrackedEvent
from backend.app.middleware.request_capture import RequestCaptureStore, client_ip, get_request_capture
from backend.app.schemas.events import (
    EventCreate,
    EventListResponse,
    EventNamesResponse,
    EventResponse,
    EventTrackResponse,
    ExecutionSummary,
)
from backend.app.services import event_service
from backend.app.services.provider_adapters import get_provider_transport
from backend.app.services.push_service import PushSender, get_push_sender

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("", response_model=EventTrackResponse, status_code=201)
async def track_event(
    payload: EventCreate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
    capture: RequestCaptureStore = Depends(get_request_capture),
    transport=Depends(get_provider_transport),
    push_sender: PushSender = Depends(get_push_sender),
):
    await capture.capture_request(request, current_user.id, payload.model_dump(by_alias=True, mode="json"))

    event = event_service.normalize_event(
        payload,
        current_user,
        ip_address=client_ip(request),
        user_agent=request.headers.get("user-agent"),
        referrer=request.headers.get("referer"),
    )
    await event_service.record_event(db, event)
    event_payload = event.to_payload()

    if get_settings().workflow_dispatch_mode == "queued":
        queued = publish_event(EventTrackedEvent(
            organization_id=event.organization_id,
            tracked_event_id=event.id,
            payload=event_payload,
            correlation_id=correlation_id_ctx.get(),
        ))
        if queued:
            return EventTrackResponse(event=EventResponse.model_validate(event), queued=True)
        # Bus full: run inline for this event

    executions = await event_service.dispatch_event(db, event_payload, transport=transport, push_sender=push_sender)
    return EventTrackResponse(
        event=EventResponse.model_validate(event),
        executions=[ExecutionSummary(id=e.id, workflow_id=e.workflow_id, status=e.status) for e in executions],
    )


@router.get("", response_model=EventListResponse)
async def list_events(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=500),
    name: Optional[str] = None,
    category: Optional[str] = None,
    plan_id: Optional[str] = Query(None, alias="planId"),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    events, total = await event_service.list_events(
        db, current_user, page=page, limit=limit, name=name, category=category,
        plan_id=plan_id, start_date=start_date, end_date=end_date,
    )
    return EventListResponse(
        events=[EventResponse.model_validate(e) for e in events],
        total=total,
        page=page,
        limit=limit,
        total_pages=math.ceil(total / limit) if total else 0,
    )


@router.get("/names", response_model=EventNamesResponse)
async def list_event_names(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return EventNamesResponse(**await event_service.event_names(db, current_user))


@router.get("/{event_id}", response_model=EventResponse)
async def get_event(
    event_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return EventResponse.model_validate(await event_service.get_event(db, current_user, event_id))
