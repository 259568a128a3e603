"""Simple asyncio scheduler for periodic tasks (execution cleanup)."""
import asyncio
import logging
from typing import Callable

from backend.app.core.database import get_db_context
from backend.app.services.workflow_service import cleanup_orphaned_steps

logger = logging.getLogger(__name__)


async def _periodic_task(interval_seconds: int, coro: Callable, *args, **kwargs):
    while True:
        try:
            await coro(*args, **kwargs)
        except Exception as e:
            logger.error(f"Scheduled task error: {e}", exc_info=True)
        await asyncio.sleep(interval_seconds)


def start_scheduler(interval_seconds: int, coro: Callable, *args, **kwargs) -> asyncio.Task:
    """Start periodic coro as background task and return the task."""
    return asyncio.create_task(_periodic_task(interval_seconds, coro, *args, **kwargs))


async def execution_cleanup_job() -> None:
    async with get_db_context() as session:
        await cleanup_orphaned_steps(session)
