"""
NotPasteBin Frontend — Request Logging Middleware
===================================================

What:  One access-log line per request: method, route, status, duration, client.
Why:   Replaces uvicorn's access log (silenced in main.setup_logging) with a
       line that carries the request ID and a status-dependent level.

Level by status:
    5xx → ERROR   (something for an operator)
    499 → INFO    (client left; its RPC was cancelled)
    4xx → WARNING (bad links, deleted notes)
    else → INFO

Privacy:
    A note hash is a bearer credential: anyone holding an admin hash can edit
    the note. Paths are logged as their route (/edit/{hash}), never with the
    hash itself. Note text never appears here; form bodies are not read.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from notpastebin_frontend.middleware.request_id import request_id_var

logger = logging.getLogger("notpastebin.access")

SKIPPED_PATHS = {"/health", "/style.css"}

# First path segment of every route that carries a note hash
HASH_ROUTES = frozenset({"note", "edit", "update", "delete"})

CLIENT_CLOSED_REQUEST = 499


def route_label(path: str) -> str:
    """
    The path with any note hash replaced by a placeholder.

    >>> route_label("/edit/0123456789abcdef0123456789abcdef")
    '/edit/{hash}'
    """
    segment = path.lstrip("/").split("/", 1)[0]
    if segment in HASH_ROUTES:
        return f"/{segment}/{{hash}}"
    return path


def level_for(status: int) -> int:
    if status >= 500:
        return logging.ERROR
    if status == CLIENT_CLOSED_REQUEST:
        return logging.INFO
    if status >= 400:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs each completed request on the notpastebin.access logger."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path in SKIPPED_PATHS:
            return await call_next(request)

        start_time = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start_time) * 1000

        # Set by RequestIDMiddleware, which always runs before this one
        rid = getattr(request.state, "request_id", None) or request_id_var.get("")
        route = route_label(request.url.path)
        client_ip = request.client.host if request.client else "unknown"
        status = response.status_code

        logger.log(
            level_for(status),
            "[%s] %s %s %d %.1fms from %s",
            rid,
            request.method,
            route,
            status,
            duration_ms,
            client_ip,
            extra={
                "request_id": rid,
                "method": request.method,
                "route": route,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "client_ip": client_ip,
            },
        )
        return response
