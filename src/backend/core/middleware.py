"""
HTTP middleware: request context for structured logs and response headers.
"""

import time
import uuid
from typing import Callable

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = structlog.get_logger(__name__)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Bind a request id to the structlog context and log each request.

    The id is taken from ``X-Request-ID`` when the caller (cron runner,
    Telegram) sends one and echoed back in the response.
    """

    # Polled by uptime checks; not worth a log line each
    QUIET_PATHS = {"/health"}

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:16]
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id, path=request.url.path)

        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = round((time.perf_counter() - started) * 1000, 1)

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Content-Type-Options"] = "nosniff"
        if "Cache-Control" not in response.headers:
            response.headers["Cache-Control"] = "no-store"

        if request.url.path not in self.QUIET_PATHS:
            logger.info(
                "request_completed",
                method=request.method,
                status_code=response.status_code,
                elapsed_ms=elapsed_ms,
            )
        return response
