"""
ScentMatch Backend — Request ID Middleware
============================================

What:  Assigns a short correlation ID to each request and echoes it back.
Why:   Error bodies carry `requestId`, so a user report can be matched to the
       server log line that holds the full (never client-visible) detail.
How:   Reuses a client-sent X-Request-ID or generates one, stores it in a
       ContextVar for loggers and exception handlers, returns it as a header.
"""

import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# Coroutine-local: concurrent requests on one event loop each see their own ID
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

MAX_CLIENT_ID_LENGTH = 64


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Behavior:
        1. Use the client's X-Request-ID if present (truncated to 64 chars)
        2. Otherwise generate an 8-char ID from a UUID4
        3. Store it in request_id_var and request.state.request_id
        4. Add X-Request-ID to the response
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = request.headers.get("X-Request-ID", "")[:MAX_CLIENT_ID_LENGTH] or str(uuid.uuid4())[:8]

        # Not reset afterwards: the catch-all 500 handler runs outside this
        # middleware and still needs the ID
        request_id_var.set(rid)
        request.state.request_id = rid

        response = await call_next(request)

        response.headers["X-Request-ID"] = rid
        return response
