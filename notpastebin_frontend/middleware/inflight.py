"""
NotPasteBin Frontend — In-Flight Request Tracking
===================================================

What:  Counts running requests and remembers any that were cut off.
Why:   On SIGTERM uvicorn waits up to the grace period, then cancels whatever
       is still running. server.py reads this tracker afterwards: a cancelled
       request means graceful shutdown failed, and the process exits non-zero.
"""

import asyncio

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response


class InFlightTracker:
    """Event-loop-local counters; only touched from request tasks."""

    def __init__(self):
        self.active = 0
        self.cancelled = 0


class InFlightMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, tracker: InFlightTracker, **kwargs):
        super().__init__(app, **kwargs)
        self.tracker = tracker

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        self.tracker.active += 1
        try:
            return await call_next(request)
        except asyncio.CancelledError:
            self.tracker.cancelled += 1
            raise
        finally:
            self.tracker.active -= 1
