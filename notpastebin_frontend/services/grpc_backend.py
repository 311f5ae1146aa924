"""
NotPasteBin Frontend — gRPC Note Backend
==========================================

What:  Concrete NoteBackend talking to the NotPasteBin gRPC service.
Why:   The note backend only speaks gRPC; this is the single place that knows it.
How:   grpc.aio channel + stub generated at runtime from protos/notpastebin.proto
       (grpc.protos_and_services, provided by grpcio-tools), wrapped with
       deadline propagation and a circuit breaker.
Who:   Built once in the app lifespan; shared read-only by all requests.

Resilience Strategy:
    1. Deadline: each call's timeout is min(backend_timeout, time left on the
       inbound request). A request already past its deadline never calls out.
    2. One RPC per request: calls are never retried. A failed call surfaces
       as one error, logged once by the exception handler.
    3. Circuit breaker: consecutive transport failures open the circuit and
       calls fail fast until the recovery timeout passes.
    4. Startup: wait_ready() polls the channel with tenacity backoff until it
       is READY or the connect timeout runs out.

Status Code Translation:
    NOT_FOUND                                   → NoteNotFoundError
    UNAVAILABLE, DEADLINE_EXCEEDED, CANCELLED,
    RESOURCE_EXHAUSTED                          → BackendUnavailableError
    anything else                               → BackendInternalError
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Optional

import grpc
from grpc import aio
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_delay,
    wait_exponential,
    wait_random,
)

from notpastebin_frontend.config import Settings
from notpastebin_frontend.exceptions import (
    BackendInternalError,
    BackendUnavailableError,
    CircuitBreakerOpenError,
    NoteNotFoundError,
)
from notpastebin_frontend.middleware.deadline import remaining_time
from notpastebin_frontend.schemas.note import CreatedNote, NoteRecord
from notpastebin_frontend.services.backend_base import NoteBackend

logger = logging.getLogger(__name__)

# Resolved against sys.path, so it works from a checkout and from site-packages
PROTO_PATH = "notpastebin_frontend/protos/notpastebin.proto"

UNAVAILABLE_CODES = frozenset({
    grpc.StatusCode.UNAVAILABLE,
    grpc.StatusCode.DEADLINE_EXCEEDED,
    grpc.StatusCode.CANCELLED,
    grpc.StatusCode.RESOURCE_EXHAUSTED,
})


def translate_rpc_error(error: aio.AioRpcError, operation: str) -> Exception:
    """Map a failed RPC onto the application exception hierarchy."""
    code = error.code()
    context = {"grpc_code": code.name, "grpc_details": error.details() or ""}
    if code == grpc.StatusCode.NOT_FOUND:
        context["operation"] = operation
        return NoteNotFoundError(context=context)
    if code in UNAVAILABLE_CODES:
        return BackendUnavailableError(operation=operation, context=context)
    return BackendInternalError(operation=operation, context=context)


# ══════════════════════════════════════════════════════════════════════════
# Circuit Breaker Implementation
# ══════════════════════════════════════════════════════════════════════════

class CircuitBreaker:
    """
    Stops calling a backend that keeps failing at the transport level.

    State Machine:
        CLOSED → failure_count reaches threshold → OPEN
        OPEN → recovery_timeout elapsed → HALF_OPEN (one trial call)
        HALF_OPEN → success → CLOSED; failure → OPEN

    Only transport-level failures count. A "not found" or an application
    error proves the backend is up, so it is recorded as a success.

    Thread Safety:
        All access happens on the event loop thread; no locking needed.
    """

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"

    def __init__(self, failure_threshold: int = 5, recovery_timeout: int = 30):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time: Optional[float] = None

    def can_execute(self, operation: Optional[str] = None) -> bool:
        """
        Returns True if a call may proceed.

        Raises:
            CircuitBreakerOpenError if OPEN and the recovery timeout hasn't elapsed.
        """
        if self.state == self.OPEN:
            elapsed = time.monotonic() - (self.last_failure_time or 0)
            if elapsed < self.recovery_timeout:
                remaining = max(int(self.recovery_timeout - elapsed), 1)
                raise CircuitBreakerOpenError(recovery_time=remaining, operation=operation)
            logger.info("Circuit breaker transitioning to HALF_OPEN after %.1fs", elapsed)
            self.state = self.HALF_OPEN
        return True

    def record_success(self) -> None:
        if self.state == self.HALF_OPEN:
            logger.info("Circuit breaker transitioning to CLOSED (backend recovered)")
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time = None

    def record_failure(self) -> None:
        self.failure_count += 1
        self.last_failure_time = time.monotonic()

        if self.state == self.HALF_OPEN:
            logger.warning("Circuit breaker returning to OPEN (trial call failed)")
            self.state = self.OPEN
        elif self.state == self.CLOSED and self.failure_count >= self.failure_threshold:
            logger.warning(
                "Circuit breaker OPENING after %d consecutive failures",
                self.failure_count,
            )
            self.state = self.OPEN


# ══════════════════════════════════════════════════════════════════════════
# gRPC Backend
# ══════════════════════════════════════════════════════════════════════════

class GrpcNoteBackend(NoteBackend):
    """
    NoteBackend over grpc.aio.

    Args:
        stub:      NotPasteBinStub (or anything with the four async RPC attributes)
        messages:  module providing the request message classes
        channel:   owning grpc.aio.Channel; None when the caller manages it
    """

    def __init__(
        self,
        stub: Any,
        messages: Any,
        channel: Optional[aio.Channel] = None,
        timeout: float = 10.0,
        connect_retry_min_wait: float = 0.2,
        connect_retry_max_wait: float = 2.0,
        circuit_breaker: Optional[CircuitBreaker] = None,
    ):
        self._stub = stub
        self._messages = messages
        self._channel = channel
        self.timeout = timeout
        self.connect_retry_min_wait = connect_retry_min_wait
        self.connect_retry_max_wait = connect_retry_max_wait
        self.circuit_breaker = circuit_breaker or CircuitBreaker()

    @classmethod
    def from_settings(cls, settings: Settings) -> "GrpcNoteBackend":
        """
        Open an insecure channel to settings.backend_addr.

        The channel connects lazily; use wait_ready() to fail fast at startup.
        """
        protos, services = grpc.protos_and_services(PROTO_PATH)
        channel = aio.insecure_channel(settings.backend_addr)
        logger.info(
            "GrpcNoteBackend targeting %s (timeout=%.1fs, circuit_breaker(threshold=%d, recovery=%ds))",
            settings.backend_addr,
            settings.backend_timeout,
            settings.cb_failure_threshold,
            settings.cb_recovery_timeout,
        )
        return cls(
            stub=services.NotPasteBinStub(channel),
            messages=protos,
            channel=channel,
            timeout=settings.backend_timeout,
            connect_retry_min_wait=settings.backend_connect_retry_min_wait,
            connect_retry_max_wait=settings.backend_connect_retry_max_wait,
            circuit_breaker=CircuitBreaker(
                failure_threshold=settings.cb_failure_threshold,
                recovery_timeout=settings.cb_recovery_timeout,
            ),
        )

    # ── RPCs ──────────────────────────────────────────────────────────────

    async def create_note(self, text: str) -> CreatedNote:
        request = self._messages.CreateNoteRequest(text=text)
        response = await self._call("CreateNote", self._stub.CreateNote, request)
        return CreatedNote(admin_hash=response.admin_hash)

    async def get_note(self, note_hash: str) -> NoteRecord:
        request = self._messages.GetNoteRequest(hash=note_hash)
        response = await self._call("GetNote", self._stub.GetNote, request)
        return NoteRecord(
            text=response.text,
            is_admin=response.is_admin,
            reader_hash=response.reader_hash,
        )

    async def update_note(self, text: str, admin_hash: str) -> None:
        request = self._messages.UpdateNoteRequest(text=text, admin_hash=admin_hash)
        await self._call("UpdateNote", self._stub.UpdateNote, request)

    async def delete_note(self, admin_hash: str) -> None:
        request = self._messages.DeleteNoteRequest(admin_hash=admin_hash)
        await self._call("DeleteNote", self._stub.DeleteNote, request)

    # ── Lifecycle ─────────────────────────────────────────────────────────

    async def wait_ready(self, timeout: float) -> None:
        """
        Block until the channel is READY, polling with exponential backoff.

        Each attempt waits at most connect_retry_max_wait for the channel;
        a warning is logged before every retry so a slow backend is visible
        in the startup log.

        Raises:
            BackendUnavailableError: not ready within `timeout` seconds.
        """
        if self._channel is None:
            return
        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type(asyncio.TimeoutError),
                stop=stop_after_delay(timeout),
                wait=(
                    wait_exponential(multiplier=self.connect_retry_min_wait, max=self.connect_retry_max_wait)
                    + wait_random(0, self.connect_retry_min_wait)
                ),
                before_sleep=before_sleep_log(logger, logging.WARNING),
                reraise=True,
            ):
                with attempt:
                    await asyncio.wait_for(
                        self._channel.channel_ready(),
                        timeout=min(self.connect_retry_max_wait, timeout),
                    )
        except asyncio.TimeoutError as e:
            raise BackendUnavailableError(
                message="can't establish connection to backend",
                context={"timeout": timeout},
            ) from e
        logger.info("Backend channel READY")

    async def health_check(self) -> bool:
        if self.circuit_breaker.state == CircuitBreaker.OPEN:
            return False
        if self._channel is None:
            return True
        state = self._channel.get_state(try_to_connect=True)
        return state not in (
            grpc.ChannelConnectivity.TRANSIENT_FAILURE,
            grpc.ChannelConnectivity.SHUTDOWN,
        )

    async def close(self) -> None:
        if self._channel is not None:
            await self._channel.close()

    # ── Internals ─────────────────────────────────────────────────────────

    def _call_timeout(self, operation: str) -> float:
        """Per-call timeout: the configured bound, cut to the request's remaining time."""
        left = remaining_time()
        if left is None:
            return self.timeout
        if left <= 0:
            raise BackendUnavailableError(
                message="request deadline exceeded before calling backend",
                operation=operation,
            )
        return min(self.timeout, left)

    async def _call(
        self,
        operation: str,
        method: Callable[..., Awaitable[Any]],
        request: Any,
    ) -> Any:
        """
        Exactly one RPC attempt.

        Cancelling the awaiting task (client gone, shutdown) cancels the
        grpc.aio call; a cancelled call is not counted by the circuit breaker.
        """
        self.circuit_breaker.can_execute(operation)
        try:
            response = await method(request, timeout=self._call_timeout(operation))
        except aio.AioRpcError as e:
            error = translate_rpc_error(e, operation)
            if isinstance(error, BackendUnavailableError):
                self.circuit_breaker.record_failure()
            else:
                self.circuit_breaker.record_success()
            raise error from e
        self.circuit_breaker.record_success()
        return response
