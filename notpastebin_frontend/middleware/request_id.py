"""
NotPasteBin Frontend — Request ID Middleware
==============================================

What:  Gives every request a short correlation ID and returns it in X-Request-ID.
Why:   A 500 page says only "internal error"; the ID is how an operator finds
       the matching log line with the backend's error detail.
How:   Reuses a client-sent X-Request-ID (e.g. from a reverse proxy) or makes
       an 8-character one; stores it in a ContextVar for the exception handlers.
"""

import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# Coroutine-local: concurrent requests on one event loop each see their own ID
request_id_var: ContextVar[str] = ContextVar("request_id", default="")


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Assigns request.state.request_id and echoes it as X-Request-ID."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:8]

        request_id_var.set(rid)
        request.state.request_id = rid

        response = await call_next(request)
        response.headers["X-Request-ID"] = rid
        return response
