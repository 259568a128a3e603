"""
Webhook schemas.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import Field, HttpUrl, field_validator

from backend.app.schemas.common import CamelModel

WEBHOOK_EVENTS = ("event.created",)


def _check_events(events: Optional[List[str]]) -> Optional[List[str]]:
    if events is None:
        return None
    unknown = [e for e in events if e not in WEBHOOK_EVENTS]
    if unknown:
        raise ValueError(f"Unsupported webhook events: {', '.join(unknown)}")
    return events


def _blank_to_none(v):
    if isinstance(v, str) and not v.strip():
        return None
    return v


class WebhookFilters(CamelModel):
    event_name: Optional[str] = None
    filter_item_name: Optional[str] = None
    filter_item_category: Optional[str] = None
    filter_item_id: Optional[str] = None
    filter_value: Optional[float] = None

    _blank_value = field_validator("filter_value", mode="before")(_blank_to_none)


class WebhookCreate(WebhookFilters):
    url: HttpUrl
    events: List[str] = Field(default_factory=lambda: ["event.created"])
    is_active: bool = True

    _known_events = field_validator("events")(_check_events)


class WebhookUpdate(WebhookFilters):
    url: Optional[HttpUrl] = None
    events: Optional[List[str]] = None
    is_active: Optional[bool] = None

    _known_events = field_validator("events")(_check_events)


class WebhookResponse(CamelModel):
    id: str
    url: str
    events: List[str]
    event_name: Optional[str] = None
    filter_item_name: Optional[str] = None
    filter_item_category: Optional[str] = None
    filter_item_id: Optional[str] = None
    filter_value: Optional[float] = None
    is_active: bool
    failure_count: int
    last_triggered: Optional[datetime] = None
    created_at: datetime


class WebhookCreatedResponse(WebhookResponse):
    """Only returned once, at creation: the signing secret."""
    secret: str
