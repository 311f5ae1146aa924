"""
NotPasteBin Frontend — Test Configuration (conftest.py)
=========================================================

What:  Shared pytest fixtures for the entire test suite.
Why:   Endpoint tests run the real app (middleware, handlers, templates)
       against an in-memory backend; no gRPC server is needed.
How:   create_app() takes the backend as an argument, so the fake slots in
       where GrpcNoteBackend would be built.

Fixture Hierarchy:
    Function-scoped (created fresh for each test):
    ├── test_settings: Settings pointing at the packaged templates/static
    ├── fake_backend: FakeNoteBackend recording every call
    ├── app: FastAPI app wired to fake_backend
    └── test_client: HTTPX AsyncClient for endpoint testing
"""

import os
from typing import Dict, List, Optional, Tuple

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Override settings for testing BEFORE any app imports
os.environ["BACKEND_ADDR"] = "localhost:50051"
os.environ["LOG_LEVEL"] = "WARNING"

from notpastebin_frontend.config import Settings  # noqa: E402
from notpastebin_frontend.exceptions import BackendInternalError, NoteNotFoundError  # noqa: E402
from notpastebin_frontend.main import create_app  # noqa: E402
from notpastebin_frontend.schemas.note import CreatedNote, NoteRecord  # noqa: E402
from notpastebin_frontend.services.backend_base import NoteBackend  # noqa: E402

ADMIN_HASH = "a" * 32
READER_HASH = "r" * 32
OTHER_HASH = "x" * 32


# ══════════════════════════════════════════════════════════════════════════
# Fake Backend
# ══════════════════════════════════════════════════════════════════════════

class FakeNoteBackend(NoteBackend):
    """
    In-memory NoteBackend.

    notes maps admin hash → (reader hash, text). Set `fail_with` to make every
    call raise that exception instead.
    """

    def __init__(self):
        self.notes: Dict[str, Tuple[str, str]] = {}
        self.calls: List[Tuple[str, tuple]] = []
        self.fail_with: Optional[Exception] = None
        self.next_admin_hash = ADMIN_HASH
        self.next_reader_hash = READER_HASH
        self.healthy = True
        self.closed = False

    def add_note(self, admin_hash: str, reader_hash: str, text: str) -> None:
        self.notes[admin_hash] = (reader_hash, text)

    def _record(self, name: str, *args) -> None:
        self.calls.append((name, args))
        if self.fail_with is not None:
            raise self.fail_with

    async def create_note(self, text: str) -> CreatedNote:
        self._record("CreateNote", text)
        self.add_note(self.next_admin_hash, self.next_reader_hash, text)
        return CreatedNote(admin_hash=self.next_admin_hash)

    async def get_note(self, note_hash: str) -> NoteRecord:
        self._record("GetNote", note_hash)
        if note_hash in self.notes:
            reader_hash, text = self.notes[note_hash]
            return NoteRecord(text=text, is_admin=True, reader_hash=reader_hash)
        for reader_hash, text in self.notes.values():
            if reader_hash == note_hash:
                return NoteRecord(text=text, is_admin=False, reader_hash=reader_hash)
        raise NoteNotFoundError(context={"hash": note_hash})

    async def update_note(self, text: str, admin_hash: str) -> None:
        self._record("UpdateNote", text, admin_hash)
        if admin_hash not in self.notes:
            raise NoteNotFoundError(context={"hash": admin_hash})
        reader_hash, _ = self.notes[admin_hash]
        self.notes[admin_hash] = (reader_hash, text)

    async def delete_note(self, admin_hash: str) -> None:
        self._record("DeleteNote", admin_hash)
        if self.notes.pop(admin_hash, None) is None:
            raise NoteNotFoundError(context={"hash": admin_hash})

    async def health_check(self) -> bool:
        return self.healthy

    async def close(self) -> None:
        self.closed = True


# ══════════════════════════════════════════════════════════════════════════
# Function-Scoped Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def test_settings():
    return Settings(
        backend_addr="localhost:50051",
        site_url="https://notes.example",
        log_level="DEBUG",
    )


@pytest.fixture
def fake_backend():
    return FakeNoteBackend()


@pytest.fixture
def backend_failure():
    """A generic backend error as the gRPC client would raise it."""
    return BackendInternalError(
        operation="GetNote",
        context={"grpc_code": "INTERNAL", "grpc_details": "disk quota exceeded on shard 7"},
    )


@pytest.fixture
def app(test_settings, fake_backend):
    return create_app(settings=test_settings, backend=fake_backend)


@pytest_asyncio.fixture
async def test_client(app):
    """
    HTTPX AsyncClient routed straight into the app.

    Redirects are not followed so tests can assert on 307 + Location.

    Usage:
        async def test_main_page(test_client):
            response = await test_client.get("/")
            assert response.status_code == 200
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
