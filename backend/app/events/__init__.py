"""
Event bus and message schemas.

Ingestion can hand tracked events to a background consumer instead of
running webhooks and workflows inside the request. The bus is an
in-process asyncio.Queue.
"""

from backend.app.events.schemas import BaseEvent, EventTrackedEvent

__all__ = [
    "BaseEvent",
    "EventTrackedEvent",
]
