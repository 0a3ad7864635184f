"""Connection-state tracking and retry/backoff around every store call.

# ─── HOW A CALL FLOWS THROUGH THE MANAGER ─────────────────────────────
#
#   execute_with_retry(op, "log_concert")
#     │
#     ├─ state != CONNECTED ──→ queue op, await its future
#     │                          (resolved when reconnect() drains the queue)
#     │
#     └─ state == CONNECTED ──→ attempt 1 ─ ok ──────────────→ result
#                                 │ transient error
#                                 ├─ sleep(base_delay × 1) → attempt 2
#                                 ├─ sleep(base_delay × 2) → attempt 3
#                                 └─ still failing ────────→ raise last error
#                               non-transient error ───────→ raise at once
#
# The queue drains in FIFO order, one operation at a time, and only while
# the state stays CONNECTED.  A replayed operation gets the same retry
# policy as a direct call.
#
# One manager instance is built in ``encore.main.build_components`` and
# injected into every service; there is no module-level singleton.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import asyncio
from collections import deque
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, TypeVar

from encore.interfaces.document_store import IDocumentStore
from encore.models.connection import ConnectionState
from encore.utils.errors import ConnectionClosedError
from encore.utils.logging import get_logger

_T = TypeVar("_T")

StateListener = Callable[[ConnectionState], None]

_TRANSIENT_CODES = ("unavailable", "deadline-exceeded", "cancelled", "failed-precondition")
_TRANSIENT_MESSAGE_MARKERS = ("offline", "network", "connection")


def is_transient_error(error: BaseException) -> bool:
    """Return True when *error* looks like a network/availability failure.

    Classification is by the error's ``code`` (the status-code strings a
    document backend reports) or, failing that, by its message.  Python's
    own ``ConnectionError`` and ``TimeoutError`` always count.
    """
    if isinstance(error, ConnectionClosedError):
        return False
    if isinstance(error, (ConnectionError, TimeoutError)):
        return True
    code = str(getattr(error, "code", "") or "").lower()
    if any(marker in code for marker in _TRANSIENT_CODES):
        return True
    message = str(getattr(error, "message", None) or error).lower()
    return any(marker in message for marker in _TRANSIENT_MESSAGE_MARKERS)


@dataclass
class _QueuedOperation:
    operation: Callable[[], Awaitable[Any]]
    label: str
    future: asyncio.Future[Any]


class ConnectionManager:
    """Tracks store reachability and runs operations with bounded retries.

    Parameters
    ----------
    store:
        The document store whose reachability is tracked (``ping``).
    max_retries:
        Total attempts per operation, including the first.
    base_delay:
        Seconds; attempt *n* failing transiently sleeps ``base_delay × n``
        before attempt *n + 1*.
    """

    def __init__(
        self,
        store: IDocumentStore,
        max_retries: int = 3,
        base_delay: float = 1.0,
    ) -> None:
        if max_retries < 1:
            msg = f"max_retries must be >= 1, got {max_retries}"
            raise ValueError(msg)
        self._store = store
        self._max_retries = max_retries
        self._base_delay = base_delay
        self._state = ConnectionState.CONNECTING
        self._listeners: list[StateListener] = []
        self._queue: deque[_QueuedOperation] = deque()
        self._draining = False
        self._closed = False
        self._logger = get_logger(__name__)

    # -- State ---------------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._state

    def get_connection_state(self) -> ConnectionState:
        return self._state

    @property
    def pending_operations(self) -> int:
        """Number of operations waiting in the offline queue."""
        return len(self._queue)

    def add_listener(self, listener: StateListener) -> Callable[[], None]:
        """Register *listener* for state changes; returns an unsubscribe function."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _set_state(self, state: ConnectionState) -> None:
        previous = self._state
        self._state = state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception as exc:
                self._logger.error("connection_listener_failed", error=str(exc), state=state.value)

        if state == ConnectionState.CONNECTED:
            self._logger.info("connection_state_changed", previous=previous.value, state=state.value)
        elif state == ConnectionState.DISCONNECTED:
            self._logger.warning("connection_state_changed", previous=previous.value, state=state.value)
        else:
            self._logger.error("connection_state_changed", previous=previous.value, state=state.value)

    # -- Lifecycle -----------------------------------------------------------

    async def initialize(self) -> None:
        """Check the store is reachable, then drain anything queued meanwhile."""
        await self._connect("initialize")

    async def reconnect(self) -> None:
        """Re-check reachability; on success replay the offline queue."""
        await self._connect("reconnect")

    async def disconnect(self) -> None:
        """Mark the store offline; new operations queue until reconnect."""
        self._set_state(ConnectionState.DISCONNECTED)

    async def shutdown(self) -> None:
        """Stop accepting work and reject every still-queued operation."""
        self._closed = True
        self._set_state(ConnectionState.DISCONNECTED)
        abandoned = 0
        while self._queue:
            item = self._queue.popleft()
            if not item.future.done():
                item.future.set_exception(
                    ConnectionClosedError(f"{item.label} abandoned: connection manager shut down")
                )
                abandoned += 1
        self._logger.info("connection_manager_shutdown", abandoned_operations=abandoned)

    async def _connect(self, reason: str) -> None:
        if self._closed:
            raise ConnectionClosedError("Connection manager has been shut down")
        try:
            await self._store.ping()
        except Exception as exc:
            self._logger.error(
                "store_ping_failed",
                reason=reason,
                provider=self._store.get_provider_name(),
                error=str(exc),
            )
            self._set_state(ConnectionState.ERROR)
            return
        self._set_state(ConnectionState.CONNECTED)
        await self.process_queue()

    # -- Execution -----------------------------------------------------------

    async def execute_with_retry(
        self,
        operation: Callable[[], Awaitable[_T]],
        label: str = "store operation",
    ) -> _T:
        """Run *operation* under the retry policy.

        While the store is not connected the operation is queued and this
        call waits until a later drain runs it (or shutdown rejects it).

        Raises
        ------
        ConnectionClosedError
            If the manager has been shut down.
        Exception
            The operation's own error when it is non-transient, or the last
            transient error once every attempt is used.
        """
        if self._closed:
            raise ConnectionClosedError(f"{label} rejected: connection manager shut down")
        return await self._run(operation, label, queue_when_offline=True)

    async def _run(
        self,
        operation: Callable[[], Awaitable[_T]],
        label: str,
        queue_when_offline: bool,
    ) -> _T:
        last_error: Exception | None = None
        for attempt in range(1, self._max_retries + 1):
            if queue_when_offline and self._state != ConnectionState.CONNECTED:
                return await self._enqueue(operation, label)
            try:
                return await operation()
            except Exception as exc:
                last_error = exc
                if not is_transient_error(exc):
                    raise
                self._logger.warning(
                    "retry_attempt_failed",
                    operation=label,
                    attempt=attempt,
                    max_attempts=self._max_retries,
                    error=str(exc),
                )
                if attempt < self._max_retries:
                    await asyncio.sleep(self._base_delay * attempt)

        self._logger.error("retries_exhausted", operation=label, attempts=self._max_retries)
        raise last_error  # type: ignore[misc]

    async def _enqueue(self, operation: Callable[[], Awaitable[_T]], label: str) -> _T:
        future: asyncio.Future[_T] = asyncio.get_running_loop().create_future()
        self._queue.append(_QueuedOperation(operation=operation, label=label, future=future))
        self._logger.info(
            "operation_queued",
            operation=label,
            state=self._state.value,
            queue_length=len(self._queue),
        )
        return await future

    async def process_queue(self) -> None:
        """Replay queued operations in FIFO order while connected.

        A state change during the drain stops it; the remaining operations
        stay queued for the next drain.
        """
        if self._draining or self._state != ConnectionState.CONNECTED:
            return
        self._draining = True
        replayed = 0
        try:
            while self._queue and self._state == ConnectionState.CONNECTED:
                item = self._queue.popleft()
                if item.future.done():
                    continue
                try:
                    result = await self._run(item.operation, item.label, queue_when_offline=False)
                except Exception as exc:
                    self._logger.error("queued_operation_failed", operation=item.label, error=str(exc))
                    if not item.future.done():
                        item.future.set_exception(exc)
                else:
                    if not item.future.done():
                        item.future.set_result(result)
                replayed += 1
        finally:
            self._draining = False
        if replayed:
            self._logger.info("queue_drained", replayed=replayed, remaining=len(self._queue))
