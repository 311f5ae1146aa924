"""
NotPasteBin Frontend — Note Service (Backend Adapter)
=======================================================

What:  Turns one page request into at most one backend RPC and decides what
       the browser gets back: a page to render or a redirect.
Why:   Keeps capability rules out of the HTTP layer. Routes only parse paths
       and forms; this service knows what an admin hash may see.
How:   Each method returns either a PageContext (render index.html) or a
       RedirectTo (send 307). Failures propagate as application exceptions
       to the handlers registered in main.py.

Capability Redirects:
    /note/<admin hash>   → /edit/<admin hash>     (the owner belongs on the edit page)
    /edit/<reader hash>  → /note/<reader hash>    (reader hash from the backend, never the admin hash)

Error Policy:
    Read pages (note, edit):  NoteNotFoundError → 404, BackendError → 500
    Write actions (create, update, delete):  every backend failure → 500,
    including "not found" (an admin form for a vanished note is a broken state,
    not a missing page).
"""

import logging
from typing import Union

from notpastebin_frontend.exceptions import BackendInternalError, NoteNotFoundError
from notpastebin_frontend.schemas.note import PageContext, RedirectTo
from notpastebin_frontend.services.backend_base import NoteBackend

logger = logging.getLogger(__name__)

PageOutcome = Union[PageContext, RedirectTo]


class NoteService:
    """
    Backend adapter for the page routes.

    Holds no per-request state; a single instance serves all requests.

    Args:
        backend:   NoteBackend implementation (gRPC in production, fake in tests)
        site_url:  Public origin prefixed to reader links ("" → relative links)
    """

    def __init__(self, backend: NoteBackend, site_url: str = ""):
        self.backend = backend
        self.site_url = site_url.rstrip("/")

    def reader_url(self, reader_hash: str) -> str:
        return f"{self.site_url}/note/{reader_hash}"

    # ── Read Pages ────────────────────────────────────────────────────────

    async def read_page(self, note_hash: str) -> PageOutcome:
        """
        What:    Read-only view of a note.

        Raises:
            NoteNotFoundError: backend has no such note (→ 404)
            BackendError: any other backend failure (→ 500)
        """
        note = await self.backend.get_note(note_hash)
        if note.is_admin:
            return RedirectTo(location=f"/edit/{note_hash}")
        return PageContext.read(
            note_text=note.text,
            reader_url=self.reader_url(note.reader_hash),
        )

    async def edit_page(self, admin_hash: str) -> PageOutcome:
        """
        What:    Edit view of a note; shows the shareable reader link.

        Raises:
            NoteNotFoundError: backend has no such note (→ 404)
            BackendError: any other backend failure (→ 500)
        """
        note = await self.backend.get_note(admin_hash)
        if not note.is_admin:
            return RedirectTo(location=f"/note/{note.reader_hash}")
        return PageContext.edit(
            note_text=note.text,
            reader_url=self.reader_url(note.reader_hash),
            admin_hash=admin_hash,
        )

    # ── Write Actions ─────────────────────────────────────────────────────

    async def create_note(self, text: str) -> RedirectTo:
        try:
            created = await self.backend.create_note(text)
        except NoteNotFoundError as e:
            raise self._write_failure("CreateNote", "create note error", e) from e
        logger.info("Note created (%d chars)", len(text))
        return RedirectTo(location=f"/edit/{created.admin_hash}")

    async def update_note(self, text: str, admin_hash: str) -> RedirectTo:
        try:
            await self.backend.update_note(text, admin_hash)
        except NoteNotFoundError as e:
            raise self._write_failure("UpdateNote", "update note error", e) from e
        return RedirectTo(location=f"/edit/{admin_hash}")

    async def delete_note(self, admin_hash: str) -> RedirectTo:
        try:
            await self.backend.delete_note(admin_hash)
        except NoteNotFoundError as e:
            raise self._write_failure("DeleteNote", "delete note error", e) from e
        return RedirectTo(location="/")

    @staticmethod
    def _write_failure(operation: str, message: str, error: NoteNotFoundError) -> BackendInternalError:
        return BackendInternalError(message=message, operation=operation, context=dict(error.context))
