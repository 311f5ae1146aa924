"""
NotPasteBin Frontend — Pydantic Records
=========================================

What:  Typed records passed between layers.
Why:   The backend client returns these instead of raw protobuf messages, so the
       routes and templates never depend on generated gRPC code.

Records:
    NoteRecord      ← GetNote response
    CreatedNote     ← CreateNote response
    PageContext     → index.html (which page, and the fields that page shows)
    RedirectTo      → 307 Temporary Redirect
    HealthResponse  → GET /health
"""

from pydantic import BaseModel, Field


# ══════════════════════════════════════════════════════════════════════════
# Backend Results: what the RPC client hands back to the adapter
# ══════════════════════════════════════════════════════════════════════════


class NoteRecord(BaseModel):
    """
    What:  A note as seen through the hash it was requested with.

    is_admin tells which capability the requesting hash carries:
        True  → the hash is the admin hash; reader_hash is the note's reader hash
        False → the hash is the reader hash (reader_hash repeats it)
    """
    text: str = Field(description="Note body")
    is_admin: bool = Field(description="Whether the requesting hash is the admin hash")
    reader_hash: str = Field(description="Hash that grants read-only access")

    model_config = {"frozen": True}


class CreatedNote(BaseModel):
    """What: Result of CreateNote; the admin hash is the only handle the creator gets."""
    admin_hash: str = Field(description="Hash that grants read, update and delete access")

    model_config = {"frozen": True}


# ══════════════════════════════════════════════════════════════════════════
# Rendering Context: what index.html receives
# ══════════════════════════════════════════════════════════════════════════


class PageContext(BaseModel):
    """
    What:  Everything the single page template needs for one response.
    How:   Exactly one of the is_*_page flags is set. Build it with main(),
           read() or edit() rather than by hand.
    """
    is_main_page: bool = False
    is_edit_page: bool = False
    is_read_page: bool = False
    note_text: str = ""
    reader_url: str = ""
    admin_hash: str = ""

    model_config = {"frozen": True}

    @classmethod
    def main(cls) -> "PageContext":
        return cls(is_main_page=True)

    @classmethod
    def read(cls, note_text: str, reader_url: str) -> "PageContext":
        return cls(is_read_page=True, note_text=note_text, reader_url=reader_url)

    @classmethod
    def edit(cls, note_text: str, reader_url: str, admin_hash: str) -> "PageContext":
        return cls(
            is_edit_page=True,
            note_text=note_text,
            reader_url=reader_url,
            admin_hash=admin_hash,
        )


class RedirectTo(BaseModel):
    """What: The adapter's answer when the request belongs on another page (sent as 307)."""
    location: str

    model_config = {"frozen": True}


# ══════════════════════════════════════════════════════════════════════════
# Operational Responses
# ══════════════════════════════════════════════════════════════════════════


class HealthResponse(BaseModel):
    """
    What:  Health check response showing service and backend status.
    Who:   Returned by GET /health for container health checks and load balancers.
    """
    status: str = Field(description="Overall service status: healthy, degraded")
    version: str = Field(description="Application version")
    backend: str = Field(description="Backend status: available, unavailable")
    uptime_seconds: float = Field(description="Seconds since service started")
