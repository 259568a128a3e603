"""
Event tracking schemas.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import Field

from backend.app.schemas.common import CamelModel


class EventCreate(CamelModel):
    """
    Payload sent by the tracking SDK. Only ``name`` is required; the
    organization always comes from the caller's token, and ``userId`` is
    honored only for callers that belong to one.
    """
    name: str = Field(..., min_length=1, max_length=255)
    category: Optional[str] = None
    properties: Dict[str, Any] = Field(default_factory=dict)
    user_id: Optional[str] = None
    path: Optional[str] = None
    action: Optional[str] = None
    value: Any = None
    item_name: Optional[str] = None
    item_id: Optional[str] = None
    item_category: Optional[str] = None
    page_title: Optional[str] = None
    plan_id: Optional[str] = None
    user_phone: Optional[str] = None
    timestamp: Optional[datetime] = None


class EventResponse(CamelModel):
    id: str
    name: str
    category: str
    properties: Dict[str, Any] = Field(default_factory=dict)
    user_id: Optional[str] = None
    organization_id: Optional[str] = None
    timestamp: datetime
    path: Optional[str] = None
    action: Optional[str] = None
    value: Optional[float] = None
    item_name: Optional[str] = None
    item_id: Optional[str] = None
    item_category: Optional[str] = None
    page_title: Optional[str] = None
    plan_id: Optional[str] = None
    user_phone: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    referrer: Optional[str] = None


class ExecutionSummary(CamelModel):
    id: str
    workflow_id: str
    status: str


class EventTrackResponse(CamelModel):
    success: bool = True
    event: EventResponse
    executions: List[ExecutionSummary] = Field(default_factory=list)
    queued: bool = False


class EventListResponse(CamelModel):
    events: List[EventResponse]
    total: int
    page: int
    limit: int
    total_pages: int


class EventNamesResponse(CamelModel):
    names: List[str]
    categories: List[str]
