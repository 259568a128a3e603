"""
Request tracing.

Assigns each request a correlation id (taken from X-Correlation-ID when the
tracking SDK or dashboard sends one) and a request id, and writes one access
log line per request. Health probes are not logged.
"""
import logging
import time
import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from backend.app.core.logging import correlation_id_ctx, organization_id_ctx, request_id_ctx
from backend.app.middleware.request_capture import client_ip

logger = logging.getLogger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"
REQUEST_ID_HEADER = "X-Request-ID"
UNLOGGED_PATHS = ("/health", "/ready")


class TracingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())
        request_id = str(uuid.uuid4())

        tokens = (
            correlation_id_ctx.set(correlation_id),
            request_id_ctx.set(request_id),
            organization_id_ctx.set(None),
        )
        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                f"Request failed: {request.method} {request.url.path}",
                extra={"extra_data": {
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": 500,
                    "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                    "error": str(e),
                }},
                exc_info=True,
            )
            raise
        finally:
            for ctx, token in zip((correlation_id_ctx, request_id_ctx, organization_id_ctx), tokens):
                ctx.reset(token)

        if request.url.path not in UNLOGGED_PATHS:
            logger.info(
                f"{request.method} {request.url.path} {response.status_code}",
                extra={"extra_data": {
                    "correlation_id": correlation_id,
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": response.status_code,
                    "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                    "client_ip": client_ip(request),
                }},
            )

        response.headers[CORRELATION_HEADER] = correlation_id
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
