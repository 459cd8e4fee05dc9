"""
ScentMatch Backend — Access Logging Middleware
================================================

What:  One access line per request: method, route, status, duration, request ID.
How:   Times the downstream call and picks the level from the status class.

Never logged: request bodies (emails, phone numbers, login codes) and cookies
(session tokens). Paths are logged as route templates when a route matched,
e.g. `/perfumes/{perfume_id}`, so lines group by endpoint.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from scentmatch.middleware.request_id import request_id_var

logger = logging.getLogger("scentmatch.access")

QUIET_PATHS = frozenset({"/health"})


def _level_for(status_code: int) -> int:
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400:
        return logging.WARNING
    return logging.INFO


def _route_label(request: Request) -> str:
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


class RequestLoggingMiddleware(BaseHTTPMiddleware):

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path in QUIET_PATHS:
            return await call_next(request)

        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000

        rid = request_id_var.get("")
        label = _route_label(request)
        logger.log(
            _level_for(response.status_code),
            "[%s] %s %s -> %d (%.1fms)",
            rid,
            request.method,
            label,
            response.status_code,
            elapsed_ms,
            extra={"request_id": rid, "route": label, "status": response.status_code},
        )
        return response
