"""
NotPasteBin Frontend — Application Package Initializer
========================================================

What: HTML front-end for the NotPasteBin note-sharing service.
Why:  Browsers speak HTTP and HTML; the note backend speaks gRPC. This package
      sits between them.
Who:  Started by uvicorn (``notpastebin-frontend`` console script), imported by pytest.

Architecture Note:

    ┌─────────────────────────────────────┐
    │        Routes (HTTP Layer)          │  ← path parsing, redirects, status codes
    ├─────────────────────────────────────┤
    │     NoteService (Backend Adapter)   │  ← one RPC per request, error policy
    ├─────────────────────────────────────┤
    │   NoteBackend (gRPC client)         │  ← retries, circuit breaker, deadlines
    └─────────────────────────────────────┘

    The frontend owns no note state. Everything durable lives behind the
    backend RPC interface.
"""

__version__ = "1.0.0"
