"""
NotPasteBin Frontend — Abstract Note Backend Interface
========================================================

What:  The RPC contract the frontend consumes, as an abstract base class.
Why:   Routes and NoteService depend on this interface, not on gRPC. Tests plug
       in an in-memory fake; production plugs in GrpcNoteBackend.
How:   Implementations translate transport-specific failures into the
       exceptions below before they leave the method.

Design Decision:
    The note backend owns storage, hash issuance, and the admin/reader
    relationship. This interface mirrors its four RPCs one-to-one and adds
    only lifecycle hooks (health_check, close).
"""

from abc import ABC, abstractmethod

from notpastebin_frontend.schemas.note import CreatedNote, NoteRecord


class NoteBackend(ABC):
    """
    Abstract client for the note backend.

    Contract:
        - Each method performs at most one logical RPC.
        - "Note does not exist" raises NoteNotFoundError.
        - Every other failure raises a BackendError subclass
          (BackendUnavailableError or BackendInternalError).
        - Implementations must be safe for concurrent use by many requests.
    """

    @abstractmethod
    async def create_note(self, text: str) -> CreatedNote:
        """Store a new note and return its admin hash."""
        ...

    @abstractmethod
    async def get_note(self, note_hash: str) -> NoteRecord:
        """
        Fetch a note by either of its hashes.

        Returns:
            NoteRecord whose is_admin flag says which hash was used.

        Raises:
            NoteNotFoundError: no note answers to this hash
            BackendError: anything else went wrong
        """
        ...

    @abstractmethod
    async def update_note(self, text: str, admin_hash: str) -> None:
        """Replace the note body. Only the admin hash may do this."""
        ...

    @abstractmethod
    async def delete_note(self, admin_hash: str) -> None:
        """Delete the note. Only the admin hash may do this."""
        ...

    async def health_check(self) -> bool:
        """
        Lightweight reachability check for GET /health.

        Returns True if the backend is believed usable. Must not raise.
        """
        return True

    async def close(self) -> None:
        """Release connections. Called once at shutdown."""
        return None
