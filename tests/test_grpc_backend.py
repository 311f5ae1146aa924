"""
NotPasteBin Frontend — gRPC Backend Unit Tests (Mocked)
=========================================================

What:  Tests for GrpcNoteBackend with a mocked stub.
Why:   Error translation, one-attempt calls and circuit breaking decide what the user sees
       when the backend misbehaves; none of it needs a live server.
How:   The stub's RPC attributes are AsyncMocks raising real
       grpc.aio.AioRpcError instances; request messages are a MagicMock.

What we test:
    ✅ gRPC status codes → application exceptions
    ✅ One RPC attempt per call, whatever the status code
    ✅ wait_ready polls the channel with backoff, then gives up
    ✅ A page request hitting UNAVAILABLE issues one RPC and logs once
    ✅ Circuit breaker opens on transport failures, not on NOT_FOUND
    ✅ Per-call timeout bounded by the request deadline
    ✅ Stubs generated from the bundled .proto
"""

import asyncio
import logging
import time
from unittest.mock import AsyncMock, MagicMock

import grpc
import pytest
from grpc import aio
from httpx import ASGITransport, AsyncClient

from conftest import READER_HASH
from notpastebin_frontend.config import Settings
from notpastebin_frontend.exceptions import (
    BackendInternalError,
    BackendUnavailableError,
    CircuitBreakerOpenError,
    NoteNotFoundError,
)
from notpastebin_frontend.main import create_app
from notpastebin_frontend.middleware.deadline import request_deadline_var
from notpastebin_frontend.services.grpc_backend import (
    CircuitBreaker,
    GrpcNoteBackend,
    translate_rpc_error,
)

HASH = "h" * 32


def rpc_error(code: grpc.StatusCode, details: str = "boom") -> aio.AioRpcError:
    return aio.AioRpcError(code, aio.Metadata(), aio.Metadata(), details=details)


def make_backend(**kwargs):
    stub = MagicMock()
    stub.CreateNote = AsyncMock()
    stub.GetNote = AsyncMock()
    stub.UpdateNote = AsyncMock()
    stub.DeleteNote = AsyncMock()
    messages = MagicMock()
    options = dict(connect_retry_min_wait=0.001, connect_retry_max_wait=0.01)
    options.update(kwargs)
    return GrpcNoteBackend(stub=stub, messages=messages, **options), stub, messages


class TestTranslateRpcError:
    """Status code → exception mapping."""

    def test_not_found(self):
        error = translate_rpc_error(rpc_error(grpc.StatusCode.NOT_FOUND, "no such note"), "GetNote")
        assert isinstance(error, NoteNotFoundError)
        assert error.context["grpc_details"] == "no such note"

    @pytest.mark.parametrize(
        "code",
        [
            grpc.StatusCode.UNAVAILABLE,
            grpc.StatusCode.DEADLINE_EXCEEDED,
            grpc.StatusCode.CANCELLED,
            grpc.StatusCode.RESOURCE_EXHAUSTED,
        ],
    )
    def test_transport_codes_are_unavailable(self, code):
        error = translate_rpc_error(rpc_error(code), "GetNote")
        assert isinstance(error, BackendUnavailableError)
        assert error.operation == "GetNote"
        assert error.context["grpc_code"] == code.name

    @pytest.mark.parametrize(
        "code",
        [
            grpc.StatusCode.INTERNAL,
            grpc.StatusCode.INVALID_ARGUMENT,
            grpc.StatusCode.PERMISSION_DENIED,
            grpc.StatusCode.UNKNOWN,
        ],
    )
    def test_other_codes_are_internal(self, code):
        error = translate_rpc_error(rpc_error(code), "UpdateNote")
        assert isinstance(error, BackendInternalError)
        assert not isinstance(error, BackendUnavailableError)


class TestCircuitBreaker:
    """Tests for the CircuitBreaker resilience pattern."""

    def test_initial_state_is_closed(self):
        cb = CircuitBreaker(failure_threshold=5, recovery_timeout=60)
        assert cb.state == "closed"
        assert cb.failure_count == 0

    def test_stays_closed_under_threshold(self):
        cb = CircuitBreaker(failure_threshold=5, recovery_timeout=60)
        for _ in range(4):
            cb.record_failure()
        assert cb.state == "closed"
        assert cb.can_execute()

    def test_open_circuit_rejects_calls(self):
        cb = CircuitBreaker(failure_threshold=2, recovery_timeout=60)
        cb.record_failure()
        cb.record_failure()
        assert cb.state == "open"

        with pytest.raises(CircuitBreakerOpenError) as exc_info:
            cb.can_execute("GetNote")
        assert exc_info.value.operation == "GetNote"

    def test_half_open_trial_success_closes(self):
        cb = CircuitBreaker(failure_threshold=1, recovery_timeout=1)
        cb.record_failure()
        cb.last_failure_time = time.monotonic() - 2  # recovery window elapsed

        assert cb.can_execute()
        assert cb.state == "half_open"

        cb.record_success()
        assert cb.state == "closed"
        assert cb.failure_count == 0

    def test_half_open_trial_failure_reopens(self):
        cb = CircuitBreaker(failure_threshold=3, recovery_timeout=1)
        for _ in range(3):
            cb.record_failure()
        cb.last_failure_time = time.monotonic() - 2

        cb.can_execute()
        cb.record_failure()
        assert cb.state == "open"


class TestGrpcNoteBackend:
    """Tests for GrpcNoteBackend with a mocked stub."""

    @pytest.mark.asyncio
    async def test_get_note_maps_response(self):
        backend, stub, messages = make_backend()
        stub.GetNote.return_value = MagicMock(text="hello", is_admin=True, reader_hash="r" * 32)

        note = await backend.get_note(HASH)

        messages.GetNoteRequest.assert_called_once_with(hash=HASH)
        assert note.text == "hello"
        assert note.is_admin is True
        assert note.reader_hash == "r" * 32

    @pytest.mark.asyncio
    async def test_create_note_returns_admin_hash(self):
        backend, stub, messages = make_backend()
        stub.CreateNote.return_value = MagicMock(admin_hash=HASH)

        created = await backend.create_note("text")

        messages.CreateNoteRequest.assert_called_once_with(text="text")
        assert created.admin_hash == HASH

    @pytest.mark.asyncio
    async def test_update_and_delete_build_requests(self):
        backend, stub, messages = make_backend()

        await backend.update_note("new", HASH)
        await backend.delete_note(HASH)

        messages.UpdateNoteRequest.assert_called_once_with(text="new", admin_hash=HASH)
        messages.DeleteNoteRequest.assert_called_once_with(admin_hash=HASH)
        stub.UpdateNote.assert_awaited_once()
        stub.DeleteNote.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_get_note_unavailable_is_one_attempt(self):
        backend, stub, _ = make_backend()
        stub.GetNote.side_effect = [
            rpc_error(grpc.StatusCode.UNAVAILABLE),
            MagicMock(text="ok", is_admin=False, reader_hash=HASH),
        ]

        with pytest.raises(BackendUnavailableError):
            await backend.get_note(HASH)

        assert stub.GetNote.await_count == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "code", [grpc.StatusCode.NOT_FOUND, grpc.StatusCode.INTERNAL, grpc.StatusCode.DEADLINE_EXCEEDED]
    )
    async def test_get_note_failure_is_not_retried(self, code):
        backend, stub, _ = make_backend()
        stub.GetNote.side_effect = rpc_error(code)

        with pytest.raises((NoteNotFoundError, BackendInternalError, BackendUnavailableError)):
            await backend.get_note(HASH)

        assert stub.GetNote.await_count == 1

    @pytest.mark.asyncio
    async def test_writes_are_not_retried(self):
        backend, stub, _ = make_backend()
        stub.CreateNote.side_effect = rpc_error(grpc.StatusCode.UNAVAILABLE)

        with pytest.raises(BackendUnavailableError):
            await backend.create_note("text")

        assert stub.CreateNote.await_count == 1

    @pytest.mark.asyncio
    async def test_transport_failures_open_circuit(self):
        backend, stub, _ = make_backend(circuit_breaker=CircuitBreaker(failure_threshold=2, recovery_timeout=60))
        stub.UpdateNote.side_effect = rpc_error(grpc.StatusCode.UNAVAILABLE)

        for _ in range(2):
            with pytest.raises(BackendUnavailableError):
                await backend.update_note("t", HASH)

        with pytest.raises(CircuitBreakerOpenError):
            await backend.update_note("t", HASH)
        assert stub.UpdateNote.await_count == 2
        assert await backend.health_check() is False

    @pytest.mark.asyncio
    async def test_not_found_does_not_count_against_circuit(self):
        backend, stub, _ = make_backend(circuit_breaker=CircuitBreaker(failure_threshold=1, recovery_timeout=60))
        stub.GetNote.side_effect = rpc_error(grpc.StatusCode.NOT_FOUND)

        for _ in range(3):
            with pytest.raises(NoteNotFoundError):
                await backend.get_note(HASH)

        assert backend.circuit_breaker.state == "closed"
        assert await backend.health_check() is True

    @pytest.mark.asyncio
    async def test_call_timeout_is_bounded_by_request_deadline(self):
        backend, stub, _ = make_backend(timeout=10.0)
        token = request_deadline_var.set(time.monotonic() + 2.0)
        try:
            await backend.delete_note(HASH)
        finally:
            request_deadline_var.reset(token)

        timeout = stub.DeleteNote.await_args.kwargs["timeout"]
        assert 0 < timeout <= 2.0

    @pytest.mark.asyncio
    async def test_call_timeout_without_request_uses_configured_bound(self):
        backend, stub, _ = make_backend(timeout=7.5)

        await backend.delete_note(HASH)

        assert stub.DeleteNote.await_args.kwargs["timeout"] == 7.5

    @pytest.mark.asyncio
    async def test_expired_deadline_skips_the_call(self):
        backend, stub, _ = make_backend()
        token = request_deadline_var.set(time.monotonic() - 1.0)
        try:
            with pytest.raises(BackendUnavailableError, match="deadline"):
                await backend.create_note("text")
        finally:
            request_deadline_var.reset(token)

        stub.CreateNote.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_from_settings_generates_stub_from_proto(self):
        backend = GrpcNoteBackend.from_settings(Settings(backend_addr="localhost:1", backend_timeout=3.0))
        try:
            assert backend.timeout == 3.0
            request = backend._messages.UpdateNoteRequest(text="t", admin_hash=HASH)
            assert request.admin_hash == HASH
            assert hasattr(backend._stub, "GetNote")
        finally:
            await backend.close()


class TestWaitReady:
    """Startup readiness polling."""

    @pytest.mark.asyncio
    async def test_without_channel_returns_immediately(self):
        backend, _, _ = make_backend()
        await backend.wait_ready(0.1)

    @pytest.mark.asyncio
    async def test_polls_until_channel_is_ready(self, caplog):
        channel = MagicMock()
        channel.channel_ready = AsyncMock(side_effect=[asyncio.TimeoutError(), None])
        backend, _, _ = make_backend(channel=channel)
        caplog.set_level(logging.DEBUG)

        await backend.wait_ready(5.0)

        assert channel.channel_ready.await_count == 2
        assert any(r.levelno == logging.WARNING for r in caplog.records)
        assert any("READY" in r.getMessage() for r in caplog.records)

    @pytest.mark.asyncio
    async def test_gives_up_after_timeout(self):
        channel = MagicMock()
        channel.channel_ready = AsyncMock(side_effect=asyncio.TimeoutError())
        backend, _, _ = make_backend(channel=channel)

        with pytest.raises(BackendUnavailableError, match="can't establish connection"):
            await backend.wait_ready(0.05)

        assert channel.channel_ready.await_count >= 1


class TestPageRequestAgainstGrpcBackend:
    """A page request over the real gRPC client with a failing stub."""

    @pytest.mark.asyncio
    async def test_unavailable_backend_gets_one_rpc_and_one_log(self, test_settings, caplog):
        backend, stub, _ = make_backend()
        stub.GetNote.side_effect = rpc_error(grpc.StatusCode.UNAVAILABLE, "connection refused xyz")
        app = create_app(settings=test_settings, backend=backend)
        caplog.set_level(logging.DEBUG)

        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.get(f"/note/{READER_HASH}")

        assert response.status_code == 500
        assert response.text == "internal error"
        assert stub.GetNote.await_count == 1

        logged = [r for r in caplog.records if "connection refused xyz" in r.getMessage()]
        assert len(logged) == 1
        assert logged[0].levelno == logging.ERROR
