"""
NotPasteBin Frontend — Custom Exception Hierarchy
===================================================

What:  Application-specific exceptions for every way a request can fail.
Why:   Routes and services raise; the handlers registered in main.py decide the
       status code, the body, and how loudly to log. That keeps the error policy
       in one place, so /note/* and /edit/* cannot drift apart.
How:   Each exception carries a message and an optional context dict.
       Context is logged server-side and never sent to the client.

Exception Hierarchy:
    NotPasteBinError (base)
    ├── InvalidHashError             → 404 "invalid hash"     (expected, not logged as error)
    ├── NoteNotFoundError            → 404 "note not found"
    ├── ValidationError              → 400
    ├── FormParseError               → 500 "internal error"
    ├── RenderError                  → 500 "internal error"
    ├── ClientDisconnectedError      → 499 "client closed request" (RPC already cancelled)
    └── BackendError                 → 500 "internal error"   (logged once, with detail)
        ├── BackendUnavailableError
        │   └── CircuitBreakerOpenError
        └── BackendInternalError
"""

from typing import Any, Dict, Optional


class NotPasteBinError(Exception):
    """
    Base exception for all frontend errors.

    Attributes:
        message:  Short description (safe to log; only some subclasses show it to clients)
        context:  Additional debug info (logged but NOT returned to client)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class InvalidHashError(NotPasteBinError):
    """
    Raised when a URL path does not carry a well-formed note hash.

    HTTP:    404 Not Found, body "invalid hash"
    When:    Wrong length after the route prefix and trailing slash are removed.

    This is the most common failure (typos, truncated links, crawlers), so it is
    logged at DEBUG only. No backend call has been made when it is raised.
    """

    def __init__(self, path: str = "", context: Optional[Dict[str, Any]] = None):
        ctx = context or {}
        if path:
            ctx["path"] = path
        super().__init__(message="invalid hash", context=ctx)


class NoteNotFoundError(NotPasteBinError):
    """
    Raised when the backend reports that the referenced note does not exist.

    HTTP:    404 Not Found, body "note not found"
    """

    def __init__(self, context: Optional[Dict[str, Any]] = None):
        super().__init__(message="note not found", context=context)


class ValidationError(NotPasteBinError):
    """
    Raised when the client sends a form the frontend cannot act on.

    HTTP:    400 Bad Request
    When:    The `text` field is missing from a create or update form.
    """

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class FormParseError(NotPasteBinError):
    """
    Raised when the request body cannot be parsed as a form.

    HTTP:    500 Internal Server Error (logged as "parse form error")
    """

    def __init__(
        self,
        message: str = "parse form error",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class RenderError(NotPasteBinError):
    """
    Raised when the page template fails to render.

    HTTP:    500 Internal Server Error (logged as "execute template error")
    """

    def __init__(
        self,
        message: str = "execute template error",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class ClientDisconnectedError(NotPasteBinError):
    """
    Raised when the browser went away while its backend call was running.

    HTTP:    499 (nginx's "client closed request"); nobody receives it, but the
             access log records how the request ended.
    When:    The in-flight RPC has already been cancelled.
    """

    def __init__(
        self,
        operation: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if operation:
            ctx["operation"] = operation
        super().__init__(message="client closed request", context=ctx)
        self.operation = operation


class BackendError(NotPasteBinError):
    """
    Base for backend failures other than "not found".

    HTTP:    500 Internal Server Error, body "internal error"

    Security Note:
        The gRPC status code and details live in `context` and go to the
        server log only. They may mention internal hostnames or storage errors.

    Attributes:
        operation: Which RPC failed (CreateNote, GetNote, UpdateNote, DeleteNote)
    """

    def __init__(
        self,
        message: str = "got internal error from backend",
        operation: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if operation:
            ctx["operation"] = operation
        super().__init__(message=message, context=ctx)
        self.operation = operation


class BackendUnavailableError(BackendError):
    """
    The backend could not be reached in time: transport failure, timeout,
    cancellation, overload, or an open circuit breaker.
    """


class BackendInternalError(BackendError):
    """The backend answered, but with an error other than "not found"."""


class CircuitBreakerOpenError(BackendUnavailableError):
    """
    Raised instead of calling the backend while the circuit breaker is OPEN.

    How circuit breaker works:
        CLOSED (normal) → transport failures increment counter
        → After N failures → OPEN (reject all calls for M seconds)
        → After M seconds → HALF-OPEN (allow one trial call)
        → Trial succeeds → CLOSED; trial fails → OPEN again
    """

    def __init__(
        self,
        recovery_time: int = 30,
        operation: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["recovery_time"] = recovery_time
        super().__init__(
            message=f"backend circuit open, retrying in about {recovery_time}s",
            operation=operation,
            context=ctx,
        )
        self.recovery_time = recovery_time
