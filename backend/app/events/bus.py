"""
In-memory event bus for queued workflow dispatch.

A single asyncio.Queue between event ingestion and the background consumer,
created at application startup. Task-safe, not thread-safe, and not
durable: messages still queued at shutdown are lost.
"""
import asyncio
import logging
from typing import Optional

from backend.app.events.schemas import BaseEvent

logger = logging.getLogger(__name__)

_event_bus: Optional[asyncio.Queue] = None


def get_event_bus() -> asyncio.Queue:
    """Raises RuntimeError until initialize_event_bus() has run."""
    if _event_bus is None:
        raise RuntimeError("Event bus not initialized. Call initialize_event_bus() on app startup.")
    return _event_bus


def initialize_event_bus(maxsize: int = 10000) -> asyncio.Queue:
    """Create (or replace) the bus. ``maxsize=0`` means unbounded."""
    global _event_bus
    _event_bus = asyncio.Queue(maxsize=maxsize)
    logger.info(f"Event bus initialized with maxsize={maxsize}")
    return _event_bus


def publish_event(event: BaseEvent) -> bool:
    """
    Enqueue without waiting.

    Returns False when the bus is full so the caller can handle the message
    itself instead of dropping it.
    """
    bus = get_event_bus()
    try:
        bus.put_nowait(event)
    except asyncio.QueueFull:
        logger.warning(
            f"Event bus full, not queued: {event.event_type}",
            extra={"extra_data": {"event_id": event.event_id, "queue_size": bus.qsize()}},
        )
        return False
    logger.debug(f"Event queued: {event.event_type} (id={event.event_id[:8]}..., queue_size={bus.qsize()})")
    return True
