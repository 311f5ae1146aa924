"""
NotPasteBin Frontend — Request Deadline Middleware
====================================================

What:  Stamps every request with an absolute deadline.
Why:   The outbound RPC must not outlive the inbound request. The gRPC client
       reads the deadline and shrinks its own timeout to what is left.
How:   ContextVar holding a time.monotonic() timestamp, set before the route runs.

Cancellation:
    If the request task itself is cancelled (server shutdown past the grace
    period), the awaiting grpc.aio call is cancelled with it.
"""

import time
from contextvars import ContextVar
from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

request_deadline_var: ContextVar[Optional[float]] = ContextVar("request_deadline", default=None)


def remaining_time() -> Optional[float]:
    """Seconds left until the current request's deadline, or None outside a request."""
    deadline = request_deadline_var.get()
    if deadline is None:
        return None
    return deadline - time.monotonic()


class RequestDeadlineMiddleware(BaseHTTPMiddleware):
    """Sets request_deadline_var to now + timeout for each request."""

    def __init__(self, app, timeout: float = 30.0, **kwargs):
        super().__init__(app, **kwargs)
        self.timeout = timeout

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_deadline_var.set(time.monotonic() + self.timeout)
        return await call_next(request)
