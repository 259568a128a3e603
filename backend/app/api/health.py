"""Liveness and readiness probes."""

from fastapi import APIRouter, Response, status
from sqlalchemy import text

from backend.app.core.config import get_settings
from backend.app.core.database import engine
from backend.app.events.bus import get_event_bus

router = APIRouter()


@router.get("/health")
async def health_check():
    """The process is up."""
    return {"status": "healthy"}


@router.get("/ready")
async def readiness_check(response: Response):
    """
    Ready when the database answers and, in queued dispatch mode, the event
    bus exists and has room.
    """
    checks = {"database": "unknown"}

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception as e:
        checks["database"] = f"failed: {e}"

    if get_settings().workflow_dispatch_mode == "queued":
        try:
            bus = get_event_bus()
            checks["eventBus"] = "full" if bus.full() else "ok"
        except RuntimeError as e:
            checks["eventBus"] = f"failed: {e}"

    ready = all(value == "ok" for value in checks.values())
    if not ready:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return {"status": "ready" if ready else "not_ready", "checks": checks}
