"""
CareNotes Backend - Rate Limiting Middleware
=============================================

What:  Per-client sliding window rate limiter with two buckets.
How:   Each client IP has a general bucket (RATE_LIMIT_REQUESTS) and an
       upload bucket (RATE_LIMIT_UPLOAD_REQUESTS) for receipt uploads, both
       over RATE_LIMIT_WINDOW seconds. An upload counts against both.
       When a bucket is full the request gets a 429 whose Retry-After is
       the time until that bucket's oldest entry leaves the window.

Single-process only: the counters live in memory, so several uvicorn
workers each enforce their own limit.
"""

import logging
import time
from collections import defaultdict, deque
from typing import Deque, Dict, Optional, Tuple

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from carenotes.config import settings
from carenotes.exceptions import RateLimitExceededError
from carenotes.middleware.request_id import request_id_var

logger = logging.getLogger(__name__)

Bucket = Tuple[str, str]


def is_upload(request: Request) -> bool:
    return request.method == "POST" and request.url.path.endswith("/receipt")


class RateLimitMiddleware(BaseHTTPMiddleware):

    EXCLUDED_PATHS = {"/health", "/docs", "/openapi.json", "/redoc"}

    def __init__(self, app, **kwargs):
        super().__init__(app, **kwargs)
        self._hits: Dict[Bucket, Deque[float]] = defaultdict(deque)
        self._seen = 0

    def _limits_for(self, request: Request) -> Dict[str, int]:
        limits = {"general": settings.rate_limit_requests}
        if is_upload(request):
            limits["upload"] = settings.rate_limit_upload_requests
        return limits

    def _retry_after(self, bucket: Bucket, limit: int, now: float) -> Optional[int]:
        """Seconds until the bucket has room, or None if it has room now."""
        hits = self._hits[bucket]
        window_start = now - settings.rate_limit_window
        while hits and hits[0] <= window_start:
            hits.popleft()
        if len(hits) < limit:
            return None
        return int(hits[0] + settings.rate_limit_window - now) + 1

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path in self.EXCLUDED_PATHS:
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        now = time.time()
        limits = self._limits_for(request)

        for name, limit in limits.items():
            retry_after = self._retry_after((client_ip, name), limit, now)
            if retry_after is not None:
                logger.warning(
                    "Rate limit exceeded for IP %s (%s bucket, %d per %ds)",
                    client_ip, name, limit, settings.rate_limit_window,
                )
                return self._reject(RateLimitExceededError(retry_after=retry_after))

        for name in limits:
            self._hits[(client_ip, name)].append(now)

        self._seen += 1
        if self._seen % 1000 == 0:
            self._drop_idle_clients(now - settings.rate_limit_window)

        return await call_next(request)

    @staticmethod
    def _reject(exc: RateLimitExceededError) -> JSONResponse:
        # Middleware runs outside the app's exception handlers
        return JSONResponse(
            status_code=429,
            content={
                "error": "rate_limit_exceeded",
                "message": exc.message,
                "details": exc.context,
                "request_id": request_id_var.get(""),
            },
            headers={"Retry-After": str(exc.retry_after)},
        )

    def _drop_idle_clients(self, window_start: float) -> None:
        idle = [bucket for bucket, hits in self._hits.items() if not hits or hits[-1] <= window_start]
        for bucket in idle:
            del self._hits[bucket]
        if idle:
            logger.debug("Dropped %d idle rate limit buckets", len(idle))
