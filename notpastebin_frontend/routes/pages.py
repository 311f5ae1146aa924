"""
NotPasteBin Frontend — Page Route Handlers
============================================

What:  The six note routes plus the stylesheet.
How:   Parse the hash out of the raw path, read the form if there is one,
       hand off to NoteService, and turn its answer into a rendered page or
       a 307 redirect. Errors are raised, never formatted here; main.py owns
       the mapping to status codes.

Route Inventory:
    GET|POST  /                 main (create) page
    GET|POST  /note/<hash>      read view, or 307 → /edit/<hash> for an admin hash
    GET|POST  /edit/<hash>      edit view, or 307 → /note/<reader hash>
    POST      /create           CreateNote, 307 → /edit/<admin hash>
    POST      /update/<hash>    UpdateNote, 307 → /edit/<hash>
    GET|POST  /delete/<hash>    DeleteNote, 307 → /
    GET       /style.css

Client disconnects:
    Every backend call runs next to a watcher on the ASGI receive channel.
    When the browser goes away mid-call the RPC is cancelled (grpc.aio cancels
    the call with its awaiting task) and the request ends with 499.

Why the read pages accept POST:
    307 keeps the method. After POST /create the browser POSTs to /edit/<hash>,
    and after POST /delete it POSTs to /. Both must render exactly like GET.
"""

import logging
from pathlib import Path
from typing import Awaitable, Optional, TypeVar

import anyio
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import FileResponse, RedirectResponse
from starlette.responses import Response

from notpastebin_frontend.exceptions import ClientDisconnectedError, FormParseError, ValidationError
from notpastebin_frontend.hashes import extract_hash
from notpastebin_frontend.schemas.note import PageContext, RedirectTo
from notpastebin_frontend.services.note_service import NoteService, PageOutcome
from notpastebin_frontend.services.templates import PageRenderer

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Pages"])

T = TypeVar("T")


# ── Dependencies ──────────────────────────────────────────────────────────
# Both objects are built once by the app factory/lifespan and stored on app.state

def get_note_service(request: Request) -> NoteService:
    return request.app.state.note_service


def get_renderer(request: Request) -> PageRenderer:
    return request.app.state.renderer


# ── Helpers ───────────────────────────────────────────────────────────────

def to_response(request: Request, renderer: PageRenderer, outcome: PageOutcome) -> Response:
    if isinstance(outcome, RedirectTo):
        return RedirectResponse(outcome.location, status_code=307)
    return renderer.render(request, outcome)


async def read_text_field(request: Request) -> str:
    """
    Returns the `text` form field.

    Raises:
        FormParseError: body is not a parseable form (→ 500, logged)
        ValidationError: form has no `text` field (→ 400)
    """
    try:
        form = await request.form()
    except Exception as e:
        raise FormParseError(context={"error": f"{type(e).__name__}: {e}"}) from e

    text = form.get("text")
    if text is None:
        raise ValidationError(message="missing text field", field="text")
    if not isinstance(text, str):
        raise ValidationError(message="text must be a plain form field", field="text")
    return text


async def wait_for_disconnect(request: Request) -> None:
    """Returns once the ASGI server reports http.disconnect for this request."""
    while True:
        message = await request.receive()
        if message["type"] == "http.disconnect":
            return


async def until_disconnect(request: Request, operation: str, call: Awaitable[T]) -> T:
    """
    Await a backend call, cancelling it if the client disconnects first.

    Only start this after the form has been read: the watcher consumes any
    request body messages that are still pending.

    Raises:
        ClientDisconnectedError: the client left and the call was cancelled (→ 499)
    """
    disconnected = False
    result: Optional[T] = None
    error: Optional[Exception] = None

    async with anyio.create_task_group() as task_group:

        async def watch() -> None:
            nonlocal disconnected
            await wait_for_disconnect(request)
            disconnected = True
            task_group.cancel_scope.cancel()

        task_group.start_soon(watch)
        try:
            result = await call
        except Exception as e:
            # re-raised outside the group so handlers see the bare exception
            error = e
        task_group.cancel_scope.cancel()

    if disconnected:
        raise ClientDisconnectedError(operation=operation)
    if error is not None:
        raise error
    return result


# ── Pages ─────────────────────────────────────────────────────────────────

@router.api_route("/", methods=["GET", "POST"], include_in_schema=False)
async def main_page(
    request: Request,
    renderer: PageRenderer = Depends(get_renderer),
) -> Response:
    return renderer.render(request, PageContext.main())


@router.api_route("/note/{note_path:path}", methods=["GET", "POST"], include_in_schema=False)
async def read_note(
    request: Request,
    service: NoteService = Depends(get_note_service),
    renderer: PageRenderer = Depends(get_renderer),
) -> Response:
    note_hash = extract_hash(request.url.path, "note")
    outcome = await until_disconnect(request, "GetNote", service.read_page(note_hash))
    return to_response(request, renderer, outcome)


@router.api_route("/edit/{note_path:path}", methods=["GET", "POST"], include_in_schema=False)
async def edit_note(
    request: Request,
    service: NoteService = Depends(get_note_service),
    renderer: PageRenderer = Depends(get_renderer),
) -> Response:
    admin_hash = extract_hash(request.url.path, "edit")
    outcome = await until_disconnect(request, "GetNote", service.edit_page(admin_hash))
    return to_response(request, renderer, outcome)


# ── Actions ───────────────────────────────────────────────────────────────

@router.post("/create", include_in_schema=False)
async def create_note(
    request: Request,
    service: NoteService = Depends(get_note_service),
) -> Response:
    text = await read_text_field(request)
    outcome = await until_disconnect(request, "CreateNote", service.create_note(text))
    return RedirectResponse(outcome.location, status_code=307)


@router.post("/update/{note_path:path}", include_in_schema=False)
async def update_note(
    request: Request,
    service: NoteService = Depends(get_note_service),
) -> Response:
    admin_hash = extract_hash(request.url.path, "update")
    text = await read_text_field(request)
    outcome = await until_disconnect(request, "UpdateNote", service.update_note(text, admin_hash))
    return RedirectResponse(outcome.location, status_code=307)


@router.api_route("/delete/{note_path:path}", methods=["GET", "POST"], include_in_schema=False)
async def delete_note(
    request: Request,
    service: NoteService = Depends(get_note_service),
) -> Response:
    admin_hash = extract_hash(request.url.path, "delete")
    outcome = await until_disconnect(request, "DeleteNote", service.delete_note(admin_hash))
    return RedirectResponse(outcome.location, status_code=307)


# ── Static ────────────────────────────────────────────────────────────────

@router.get("/style.css", include_in_schema=False)
async def stylesheet(request: Request) -> FileResponse:
    path = Path(request.app.state.settings.static_dir) / "style.css"
    if not path.is_file():
        logger.warning("Stylesheet missing at %s", path)
        raise HTTPException(status_code=404)
    return FileResponse(path, media_type="text/css")
