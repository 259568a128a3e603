"""
Event Schema Definitions for the in-process event bus.

Bus messages are internal envelopes, distinct from tracked analytics events.
Every message carries the organization it belongs to so consumers never
mix organizations.
"""
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class BaseEvent(BaseModel):
    """
    Base bus message.

    - event_id: unique message id
    - organization_id: owning organization (None for user-scoped data)
    - event_type: handler registry key
    - correlation_id: request correlation id, carried into worker logs
    """

    model_config = ConfigDict(use_enum_values=True)

    event_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    organization_id: Optional[str] = Field(default=None, description="Owning organization")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    event_type: str = Field(description="Handler registry key, e.g. 'event_tracked'")
    correlation_id: Optional[str] = None


class EventTrackedEvent(BaseEvent):
    """
    Published by ingestion when WORKFLOW_DISPATCH_MODE=queued.

    ``payload`` is the stored analytics event as workflows and webhooks see it.
    """

    event_type: str = Field(default="event_tracked", frozen=True)
    tracked_event_id: str = Field(description="Id of the stored Event row")
    payload: Dict[str, Any]
