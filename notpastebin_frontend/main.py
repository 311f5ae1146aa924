"""
NotPasteBin Frontend — FastAPI Application Factory
====================================================

What:  Creates and configures the FastAPI application instance.
Why:   Centralizes middleware registration, route mounting, error mapping,
       and lifecycle management in one place.
How:   Factory pattern: create_app() returns a configured FastAPI instance.
       The backend client and the template renderer are passed in (tests) or
       built from settings (production); handlers read them from app.state.
Who:   server.py runs the module-level `app` under uvicorn.

Application Architecture:
    ┌──────────────────────────────────────────────────────────┐
    │                      FastAPI App                         │
    │                                                          │
    │  Middleware Chain:                                       │
    │  ┌──────────┐ ┌────────┐ ┌──────────┐ ┌─────────┐       │
    │  │In-Flight │→│ Req ID │→│ Deadline │→│ Logging │→ GZip │
    │  └──────────┘ └────────┘ └──────────┘ └─────────┘       │
    │                                                          │
    │  Routes:                                                 │
    │  ┌──────────────────────────────┐ ┌──────────────────┐  │
    │  │ / /note /edit /create        │ │ GET /health      │  │
    │  │ /update /delete /style.css   │ │                  │  │
    │  └──────────────────────────────┘ └──────────────────┘  │
    │                                                          │
    │  Exception Handlers (plain text bodies):                 │
    │  ┌────────────────────────────────────────────────────┐ │
    │  │ InvalidHash→404 │ NotFound→404 │ Validation→400    │ │
    │  │ Backend/Form/Render/unexpected→500 "internal error"│ │
    │  └────────────────────────────────────────────────────┘ │
    └──────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:
    1. Initialize logging
    2. Validate configuration (fatal on missing BACKEND_ADDR)
    3. Open the gRPC channel (optionally wait until READY)
    4. Parse the page template (fatal if missing or broken)

    Shutdown:
    1. uvicorn stops accepting connections and drains in-flight requests
    2. Close the gRPC channel
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from notpastebin_frontend import __version__
from notpastebin_frontend.config import Settings, settings as default_settings
from notpastebin_frontend.exceptions import (
    BackendError,
    ClientDisconnectedError,
    FormParseError,
    InvalidHashError,
    NoteNotFoundError,
    NotPasteBinError,
    RenderError,
    ValidationError,
)
from notpastebin_frontend.middleware.deadline import RequestDeadlineMiddleware
from notpastebin_frontend.middleware.inflight import InFlightMiddleware, InFlightTracker
from notpastebin_frontend.middleware.logging import RequestLoggingMiddleware
from notpastebin_frontend.middleware.request_id import RequestIDMiddleware, request_id_var
from notpastebin_frontend.routes import health, pages
from notpastebin_frontend.services.backend_base import NoteBackend
from notpastebin_frontend.services.grpc_backend import GrpcNoteBackend
from notpastebin_frontend.services.note_service import NoteService
from notpastebin_frontend.services.templates import PageRenderer

logger = logging.getLogger(__name__)

INTERNAL_ERROR_BODY = "internal error"


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging(level: str = "INFO") -> None:
    """
    Configure logging for the entire process.

    What:    One stdout handler on the root logger, consistent format.
    When:    Called by server.py before uvicorn starts, and again in the
             lifespan so `uvicorn notpastebin_frontend.main:app` behaves the same.
             force=True makes the second call a no-op in effect.

    Format: 2024-01-01T12:00:00 [ERROR] notpastebin_frontend.main: [a1b2c3d4] ...
    """
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[
            logging.StreamHandler(sys.stdout),  # Docker captures stdout
        ],
        force=True,
    )

    # Our own access log replaces uvicorn's
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("grpc").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Startup and shutdown of the shared resources on app.state.

    Every startup failure propagates: uvicorn reports "Application startup
    failed" and exits non-zero before binding traffic to a half-built app.
    """
    # ── Startup ───────────────────────────────────────────────────────────
    settings: Settings = app.state.settings
    setup_logging(settings.log_level)
    logger.info("=" * 60)
    logger.info("NotPasteBin Frontend %s starting up...", __version__)

    if app.state.backend is None:
        try:
            settings.validate_required()
        except ValueError as e:
            logger.critical("Configuration error: %s", str(e))
            raise

        backend = GrpcNoteBackend.from_settings(settings)
        if settings.backend_wait_ready:
            logger.info(
                "Waiting up to %.1fs for backend at %s",
                settings.backend_connect_timeout,
                settings.backend_addr,
            )
            try:
                await backend.wait_ready(settings.backend_connect_timeout)
            except NotPasteBinError as e:
                logger.critical("%s: %s", e.message, settings.backend_addr)
                await backend.close()
                raise
        app.state.backend = backend
        app.state.note_service = NoteService(backend, site_url=settings.site_url)

    try:
        app.state.renderer.verify()
    except Exception as e:
        logger.critical("Can't load page template from %s: %s", settings.template_dir, str(e))
        await app.state.backend.close()
        raise

    logger.info("Listening on http://%s:%d", settings.http_host, settings.http_port)
    logger.info("=" * 60)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("NotPasteBin Frontend shutting down...")
    await app.state.backend.close()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def register_exception_handlers(app: FastAPI) -> None:
    """
    Map exceptions to status codes and plain-text bodies.

    Handler hierarchy:
        InvalidHashError        → 404 "invalid hash"    (debug log)
        NoteNotFoundError       → 404 "note not found"  (info log)
        ValidationError         → 400 <message>         (warning log)
        ClientDisconnectedError → 499                   (info log; RPC already cancelled)
        BackendError            → 500 "internal error"  (one error log with detail)
        FormParseError          → 500 "internal error"
        RenderError             → 500 "internal error"
        HTTPException           → 404 "not found", 405 ...
        Exception (fallback)    → 500 "internal error"  (traceback logged)

    Security: backend details (gRPC codes, messages) go to the log only.
    The request ID in every line ties the 500 a user saw to its cause.
    """

    @app.exception_handler(InvalidHashError)
    async def handle_invalid_hash(request: Request, exc: InvalidHashError):
        rid = request_id_var.get("")
        logger.debug("[%s] Invalid hash in path %s", rid, request.url.path)
        return PlainTextResponse(exc.message, status_code=404)

    @app.exception_handler(NoteNotFoundError)
    async def handle_note_not_found(request: Request, exc: NoteNotFoundError):
        rid = request_id_var.get("")
        logger.info("[%s] Note not found: %s", rid, request.url.path)
        return PlainTextResponse(exc.message, status_code=404)

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        """Client sent a form we can't act on; tell them what's wrong."""
        rid = request_id_var.get("")
        logger.warning("[%s] Validation error: %s", rid, exc.message)
        return PlainTextResponse(exc.message, status_code=400)

    @app.exception_handler(ClientDisconnectedError)
    async def handle_client_disconnected(request: Request, exc: ClientDisconnectedError):
        rid = request_id_var.get("")
        logger.info("[%s] Client disconnected, cancelled %s", rid, exc.operation)
        return PlainTextResponse(exc.message, status_code=499)

    @app.exception_handler(BackendError)
    async def handle_backend_error(request: Request, exc: BackendError):
        rid = request_id_var.get("")
        logger.error(
            "[%s] %s: operation=%s | Context: %s",
            rid,
            exc.message,
            exc.operation,
            exc.context,
        )
        return PlainTextResponse(INTERNAL_ERROR_BODY, status_code=500)

    @app.exception_handler(FormParseError)
    async def handle_form_parse_error(request: Request, exc: FormParseError):
        rid = request_id_var.get("")
        logger.error("[%s] %s | Context: %s", rid, exc.message, exc.context)
        return PlainTextResponse(INTERNAL_ERROR_BODY, status_code=500)

    @app.exception_handler(RenderError)
    async def handle_render_error(request: Request, exc: RenderError):
        rid = request_id_var.get("")
        logger.error("[%s] %s | Context: %s", rid, exc.message, exc.context)
        return PlainTextResponse(INTERNAL_ERROR_BODY, status_code=500)

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        """Unknown paths and wrong methods; Allow header kept for 405."""
        body = "not found" if exc.status_code == 404 else str(exc.detail).lower()
        return PlainTextResponse(body, status_code=exc.status_code, headers=exc.headers)

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        """
        Catch-all for truly unexpected errors.

        Security: Stack trace is logged server-side ONLY (never in response).
        """
        rid = request_id_var.get("")
        logger.error(
            "[%s] Unexpected error: %s",
            rid,
            str(exc),
            exc_info=True,
        )
        return PlainTextResponse(INTERNAL_ERROR_BODY, status_code=500)


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(
    settings: Optional[Settings] = None,
    backend: Optional[NoteBackend] = None,
    renderer: Optional[PageRenderer] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings:  defaults to the process-wide Settings()
        backend:   NoteBackend to use; None → GrpcNoteBackend built in the lifespan
        renderer:  PageRenderer to use; None → one over settings.template_dir

    Returns: Fully configured FastAPI instance ready to receive requests.
    """
    settings = settings or default_settings

    app = FastAPI(
        title="NotPasteBin Frontend",
        description="Server-rendered web frontend for the NotPasteBin note service.",
        version=__version__,
        docs_url=None,       # the URL space belongs to notes; unknown paths are plain 404s
        redoc_url=None,
        openapi_url=None,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.backend = backend
    app.state.note_service = (
        NoteService(backend, site_url=settings.site_url) if backend is not None else None
    )
    app.state.renderer = renderer or PageRenderer(settings.template_dir)
    app.state.inflight = InFlightTracker()

    # ── Register Middleware ───────────────────────────────────────────────
    # Middleware executes in REVERSE order of addition (last added = outermost):
    # In-Flight → Request ID → Deadline → Logging → GZip → route

    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestDeadlineMiddleware, timeout=settings.request_timeout)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(InFlightMiddleware, tracker=app.state.inflight)

    # ── Register Exception Handlers ───────────────────────────────────────
    register_exception_handlers(app)

    # ── Register Routes ───────────────────────────────────────────────────
    app.include_router(health.router)
    app.include_router(pages.router)

    return app


# ── Application Instance ─────────────────────────────────────────────────
# uvicorn expects `notpastebin_frontend.main:app` to be importable
app = create_app()
