"""
CareNotes Backend - Request Logging Middleware
===============================================

What:  One access log line per request: method, route, status, duration,
       request ID and client IP.
Who:   Logs to "carenotes.access"; uvicorn's own access log is turned down
       to WARNING in main.setup_logging().

Privacy:
    Request bodies are never logged. They carry children's personal data,
    safeguarding notes and financial details. Paths are logged as their
    route template (/api/children/{child_id}) so record IDs stay out of
    the access log.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from carenotes.middleware.request_id import request_id_var

logger = logging.getLogger("carenotes.access")

QUIET_PATHS = {"/health"}
SLOW_REQUEST_MS = 2000.0


def route_template(request: Request) -> str:
    """The matched route's path template, or the raw path when nothing matched."""
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


def level_for(status: int, duration_ms: float) -> int:
    """5xx → ERROR; 4xx or slow → WARNING; otherwise INFO."""
    if status >= 500:
        return logging.ERROR
    if status >= 400 or duration_ms >= SLOW_REQUEST_MS:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path in QUIET_PATHS:
            return await call_next(request)

        started = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - started) * 1000

        route = route_template(request)
        rid = request_id_var.get("")
        client_ip = request.client.host if request.client else "unknown"
        slow = " SLOW" if duration_ms >= SLOW_REQUEST_MS else ""

        logger.log(
            level_for(response.status_code, duration_ms),
            "%s %s %d %.1fms%s [%s] from %s",
            request.method, route, response.status_code, duration_ms, slow, rid, client_ip,
            extra={
                "request_id": rid,
                "method": request.method,
                "route": route,
                "status": response.status_code,
                "duration_ms": round(duration_ms, 2),
            },
        )
        return response
