"""
Handler Registry for the event bus.

Maps event types to coroutine handlers. The consumer loop looks handlers up
here; handlers open their own database session.
"""
import logging
from typing import Callable, Dict, Optional

from backend.app.core.database import get_db_context
from backend.app.core.logging import correlation_id_ctx
from backend.app.events.schemas import BaseEvent
from backend.app.services.event_service import dispatch_event
from backend.app.services.push_service import get_push_sender

logger = logging.getLogger(__name__)

# event_type -> handler
_handlers: Dict[str, Callable] = {}


def register_handler(event_type: str, handler: Callable) -> None:
    _handlers[event_type] = handler
    logger.info(f"Handler registered: {event_type} → {handler.__name__}")


def get_handler(event_type: str) -> Optional[Callable]:
    return _handlers.get(event_type)


def has_handler(event_type: str) -> bool:
    return event_type in _handlers


async def handle_event(event: BaseEvent) -> None:
    """Dispatch event to registered handler."""
    handler = get_handler(event.event_type)
    if not handler:
        logger.debug(f"No handler for event type: {event.event_type}")
        return

    token = correlation_id_ctx.set(event.correlation_id or event.event_id)
    try:
        await handler(event)
        logger.debug(f"Event handled: {event.event_type} (id={event.event_id[:8]}...)")
    except Exception as e:
        logger.error(f"Handler failed for {event.event_type}: {e}", exc_info=True)
    finally:
        correlation_id_ctx.reset(token)


async def event_tracked_handler(event: BaseEvent) -> None:
    """Run webhooks and workflows for a tracked event outside the request."""
    async with get_db_context() as session:
        executions = await dispatch_event(session, event.payload, push_sender=get_push_sender())
    logger.info(
        f"Queued event {event.tracked_event_id} dispatched: {len(executions)} workflow execution(s)",
        extra={"extra_data": {"execution_ids": [e.id for e in executions]}},
    )


register_handler("event_tracked", event_tracked_handler)
