"""Unit tests for ConnectionManager: retry bound, offline queue, shutdown, listeners."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from encore.interfaces.document_store import IDocumentStore
from encore.models.connection import ConnectionState
from encore.services.connection_manager import ConnectionManager, is_transient_error
from encore.utils.errors import (
    ConnectionClosedError,
    IndexMissingError,
    InvalidInputError,
    NotFoundError,
    StoreUnavailableError,
)


def _mock_store(ping_error: Exception | None = None) -> MagicMock:
    store = MagicMock(spec=IDocumentStore)
    store.get_provider_name.return_value = "mock_store"
    store.ping = AsyncMock(side_effect=ping_error)
    return store


@pytest.fixture
async def manager():
    m = ConnectionManager(_mock_store(), max_retries=3, base_delay=0)
    await m.initialize()
    return m


# ─── Transient classification ─────────────────────────────────────────

@pytest.mark.parametrize(
    "error",
    [
        StoreUnavailableError("database is locked"),
        IndexMissingError("The query requires an index: reviews:concertRef+createdAt"),
        ConnectionError("reset by peer"),
        TimeoutError(),
        RuntimeError("client is offline"),
        RuntimeError("Network request failed"),
    ],
)
def test_transient_errors(error):
    assert is_transient_error(error) is True


@pytest.mark.parametrize(
    "error",
    [
        InvalidInputError("Rating must be between 1 and 5"),
        NotFoundError("Review abc not found"),
        ValueError("bad"),
        ConnectionClosedError(),
    ],
)
def test_non_transient_errors(error):
    assert is_transient_error(error) is False


# ─── Retry bound ──────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_always_transient_operation_is_invoked_exactly_three_times(manager):
    op = AsyncMock(side_effect=StoreUnavailableError("unavailable"))

    with pytest.raises(StoreUnavailableError):
        await manager.execute_with_retry(op, "flaky")

    assert op.await_count == 3


@pytest.mark.asyncio
async def test_non_transient_operation_is_invoked_once(manager):
    op = AsyncMock(side_effect=InvalidInputError("nope"))

    with pytest.raises(InvalidInputError):
        await manager.execute_with_retry(op, "invalid")

    assert op.await_count == 1


@pytest.mark.asyncio
async def test_transient_then_success_returns_result(manager):
    op = AsyncMock(side_effect=[StoreUnavailableError("busy"), "ok"])

    assert await manager.execute_with_retry(op, "recovering") == "ok"
    assert op.await_count == 2


@pytest.mark.asyncio
async def test_backoff_is_linear_in_attempt_number(monkeypatch):
    sleeps: list[float] = []

    async def _fake_sleep(delay: float) -> None:
        sleeps.append(delay)

    monkeypatch.setattr("encore.services.connection_manager.asyncio.sleep", _fake_sleep)
    m = ConnectionManager(_mock_store(), max_retries=3, base_delay=1.0)
    await m.initialize()

    with pytest.raises(StoreUnavailableError):
        await m.execute_with_retry(AsyncMock(side_effect=StoreUnavailableError()), "slow")

    # No sleep after the final attempt.
    assert sleeps == [1.0, 2.0]


def test_max_retries_must_be_positive():
    with pytest.raises(ValueError):
        ConnectionManager(_mock_store(), max_retries=0)


# ─── State and listeners ──────────────────────────────────────────────

@pytest.mark.asyncio
async def test_initialize_success_sets_connected(manager):
    assert manager.get_connection_state() == ConnectionState.CONNECTED


@pytest.mark.asyncio
async def test_initialize_ping_failure_sets_error():
    m = ConnectionManager(_mock_store(ping_error=StoreUnavailableError("down")), base_delay=0)
    await m.initialize()
    assert m.state == ConnectionState.ERROR


@pytest.mark.asyncio
async def test_listeners_are_notified_and_can_unsubscribe(manager):
    seen: list[ConnectionState] = []
    unsubscribe = manager.add_listener(seen.append)

    await manager.disconnect()
    unsubscribe()
    await manager.reconnect()

    assert seen == [ConnectionState.DISCONNECTED]


@pytest.mark.asyncio
async def test_failing_listener_does_not_break_others(manager):
    seen: list[ConnectionState] = []

    def _broken(state: ConnectionState) -> None:
        raise RuntimeError("listener bug")

    manager.add_listener(_broken)
    manager.add_listener(seen.append)

    await manager.disconnect()

    assert seen == [ConnectionState.DISCONNECTED]


# ─── Offline queue ────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_operations_queue_while_disconnected_and_replay_in_order(manager):
    order: list[str] = []

    def _op(name: str):
        async def _run() -> str:
            order.append(name)
            return name

        return _run

    await manager.disconnect()
    first = asyncio.create_task(manager.execute_with_retry(_op("a"), "a"))
    second = asyncio.create_task(manager.execute_with_retry(_op("b"), "b"))
    await asyncio.sleep(0)

    assert manager.pending_operations == 2
    assert order == []

    await manager.reconnect()

    assert await first == "a"
    assert await second == "b"
    assert order == ["a", "b"]
    assert manager.pending_operations == 0


@pytest.mark.asyncio
async def test_replayed_operation_failure_reaches_its_caller(manager):
    await manager.disconnect()
    task = asyncio.create_task(
        manager.execute_with_retry(AsyncMock(side_effect=NotFoundError("gone")), "missing")
    )
    await asyncio.sleep(0)

    await manager.reconnect()

    with pytest.raises(NotFoundError):
        await task


@pytest.mark.asyncio
async def test_reconnect_failure_keeps_queue(manager):
    manager._store.ping = AsyncMock(side_effect=StoreUnavailableError("still down"))
    await manager.disconnect()
    task = asyncio.create_task(manager.execute_with_retry(AsyncMock(return_value=1), "later"))
    await asyncio.sleep(0)

    await manager.reconnect()

    assert manager.state == ConnectionState.ERROR
    assert manager.pending_operations == 1
    assert not task.done()

    manager._store.ping = AsyncMock(return_value=None)
    await manager.reconnect()
    assert await task == 1


@pytest.mark.asyncio
async def test_drain_stops_when_state_changes_mid_replay(manager):
    async def _drops_connection() -> str:
        await manager.disconnect()
        return "first"

    second_op = AsyncMock(return_value="second")
    await manager.disconnect()
    first = asyncio.create_task(manager.execute_with_retry(_drops_connection, "first"))
    second = asyncio.create_task(manager.execute_with_retry(second_op, "second"))
    await asyncio.sleep(0)

    await manager.reconnect()

    assert await first == "first"
    assert manager.state == ConnectionState.DISCONNECTED
    assert manager.pending_operations == 1
    assert not second.done()
    second_op.assert_not_awaited()

    await manager.reconnect()

    assert await second == "second"
    assert manager.pending_operations == 0


# ─── Shutdown ─────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_shutdown_rejects_queued_operations(manager):
    await manager.disconnect()
    task = asyncio.create_task(manager.execute_with_retry(AsyncMock(return_value=1), "queued"))
    await asyncio.sleep(0)

    await manager.shutdown()

    with pytest.raises(ConnectionClosedError):
        await task
    assert manager.pending_operations == 0


@pytest.mark.asyncio
async def test_execute_after_shutdown_raises_without_invoking(manager):
    await manager.shutdown()
    op = AsyncMock(return_value=1)

    with pytest.raises(ConnectionClosedError):
        await manager.execute_with_retry(op, "late")

    op.assert_not_awaited()
