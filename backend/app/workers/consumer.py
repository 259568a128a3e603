"""
Queued workflow dispatch.

With WORKFLOW_DISPATCH_MODE=queued, event ingestion only stores the event and
publishes an ``event_tracked`` message; this task drains the bus and hands
each message to its registered handler.
"""
import asyncio
import logging

from backend.app.events.bus import get_event_bus
from backend.app.events.schemas import BaseEvent
from backend.app.workers.handlers import handle_event

logger = logging.getLogger(__name__)


async def _process(bus: asyncio.Queue, message: BaseEvent) -> None:
    logger.debug(
        f"Dispatching {message.event_type} for org {message.organization_id} "
        f"({bus.qsize()} waiting)"
    )
    try:
        await handle_event(message)
    except Exception as e:
        logger.error(f"Dispatch of {message.event_id} failed: {e}", exc_info=True)
    finally:
        bus.task_done()


async def event_consumer_loop() -> None:
    """Drain the bus until cancelled. A failing message never stops the loop."""
    bus = get_event_bus()
    logger.info(f"Queued dispatch consumer running (bus capacity={bus.maxsize})")
    try:
        while True:
            await _process(bus, await bus.get())
    except asyncio.CancelledError:
        logger.info("Queued dispatch consumer stopped")
        raise


async def start_event_consumer() -> asyncio.Task:
    task = asyncio.create_task(event_consumer_loop(), name="flowless-event-consumer")
    await asyncio.sleep(0)
    return task
