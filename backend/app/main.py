"""
Flowless - marketing automation and analytics backend

FastAPI application entry point.
"""

import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from backend.app.core.config import get_settings
from backend.app.core.exceptions import FlowlessError
from backend.app.core.logging import setup_logging, get_logger, correlation_id_ctx
from backend.app.api import (
    campaigns,
    credentials,
    debug,
    events,
    health,
    messaging,
    promocodes,
    push,
    segments,
    webhooks,
    workflows,
)
from backend.app.middleware.request_capture import RequestCaptureStore
from backend.app.middleware.trace import TracingMiddleware

settings = get_settings()

# Initialize logging
setup_logging(level=settings.log_level)
logger = get_logger(__name__)


async def _cancel(task):
    if task and not task.done():
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    logger.info(f"🚀 Starting {settings.app_name} v{settings.app_version}")

    from backend.app.events.bus import initialize_event_bus
    initialize_event_bus(maxsize=settings.event_bus_maxsize)

    consumer_task = None
    if settings.workflow_dispatch_mode == "queued":
        from backend.app.workers.consumer import start_event_consumer
        consumer_task = await start_event_consumer()
        logger.info("Workflow dispatch mode: queued")

    from backend.app.workers.scheduled import execution_cleanup_job, start_scheduler
    cleanup_task = start_scheduler(settings.execution_cleanup_interval_seconds, execution_cleanup_job)
    logger.info(f"Execution cleanup scheduler started (interval={settings.execution_cleanup_interval_seconds}s)")

    yield

    logger.info(f"👋 Shutting down {settings.app_name}")
    await _cancel(cleanup_task)
    await _cancel(consumer_task)


app = FastAPI(
    title=settings.app_name,
    description="Event tracking, segments, campaigns and workflow automation",
    version=settings.app_version,
    lifespan=lifespan,
)

# Debug request capture, owned by the app
app.state.request_capture = RequestCaptureStore(settings.request_capture_limit)

app.add_middleware(TracingMiddleware)

# CORS middleware for the dashboard and tracking SDK
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Correlation-ID"],
)


def _register_exception_handlers(app: FastAPI) -> None:
    """Map errors to ``{"error": ..., "details": ...}`` bodies."""

    @app.exception_handler(FlowlessError)
    async def flowless_error_handler(request: Request, exc: FlowlessError) -> JSONResponse:
        log = logger.error if exc.status_code >= 500 else logger.warning
        log(
            f"{exc.__class__.__name__}: {exc.message}",
            extra={"extra_data": {"path": request.url.path, "status_code": exc.status_code}},
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=jsonable_encoder(exc.to_dict()),
            headers={"X-Correlation-ID": exc.correlation_id or ""},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"error": "Validation failed", "details": jsonable_encoder(exc.errors())},
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error", "details": {"correlationId": correlation_id_ctx.get()}},
        )


_register_exception_handlers(app)

# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(events.router, prefix=f"{settings.api_prefix}/events", tags=["Events"])
app.include_router(workflows.router, prefix=f"{settings.api_prefix}/workflows", tags=["Workflows"])
app.include_router(promocodes.router, prefix=f"{settings.api_prefix}/promocodes", tags=["Promo Codes"])
app.include_router(segments.router, prefix=f"{settings.api_prefix}/segments", tags=["Segments"])
app.include_router(credentials.router, prefix=f"{settings.api_prefix}/credentials", tags=["Credentials"])
app.include_router(
    campaigns.tracking_router,
    prefix=f"{settings.api_prefix}/campaigns",
    tags=["Campaign Tracking"],
)
app.include_router(campaigns.router, prefix=f"{settings.api_prefix}/campaigns", tags=["Campaigns"])
app.include_router(push.router, prefix=f"{settings.api_prefix}/push", tags=["Push"])
app.include_router(webhooks.router, prefix=f"{settings.api_prefix}/webhooks", tags=["Webhooks"])
app.include_router(messaging.router, prefix=settings.api_prefix, tags=["Messaging"])
app.include_router(debug.router, prefix=f"{settings.api_prefix}/debug", tags=["Debug"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
    }
