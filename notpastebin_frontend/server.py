"""
NotPasteBin Frontend — Server Entry Point
===========================================

What:  `notpastebin-frontend` console script: serve the app with uvicorn.
How:   uvicorn.Server handles SIGTERM/SIGINT: it stops accepting connections,
       lets in-flight requests finish for up to SHUTDOWN_GRACE_PERIOD seconds,
       then cancels the rest.

Exit status:
    0  clean shutdown
    1  bad configuration, startup failure, or requests cut off at shutdown
"""

import asyncio
import logging
import sys

import uvicorn

from notpastebin_frontend.config import settings
from notpastebin_frontend.main import app, setup_logging

logger = logging.getLogger(__name__)


def main() -> None:
    setup_logging(settings.log_level)

    try:
        settings.validate_required()
    except ValueError as e:
        logger.critical("Configuration error: %s", str(e))
        sys.exit(1)

    config = uvicorn.Config(
        app,
        host=settings.http_host,
        port=settings.http_port,
        timeout_graceful_shutdown=settings.shutdown_grace_period,
        log_config=None,     # keep the handlers from setup_logging
        access_log=False,    # RequestLoggingMiddleware writes the access log
        lifespan="on",
    )
    server = uvicorn.Server(config)
    asyncio.run(server.serve())

    if not server.started:
        logger.critical("Server failed to start")
        sys.exit(1)

    tracker = app.state.inflight
    if tracker.cancelled or tracker.active:
        logger.critical(
            "Graceful shutdown failed: %d request(s) cancelled, %d still active after %ds",
            tracker.cancelled,
            tracker.active,
            settings.shutdown_grace_period,
        )
        sys.exit(1)

    logger.info("Server stopped")


if __name__ == "__main__":
    main()
