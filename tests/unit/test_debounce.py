"""Unit tests for the trailing-edge Debouncer."""

from __future__ import annotations

import asyncio

import pytest

from encore.utils.debounce import Debouncer, debounce


class _Recorder:
    def __init__(self) -> None:
        self.calls: list[str] = []

    async def __call__(self, term: str) -> str:
        self.calls.append(term)
        return term.upper()


@pytest.mark.asyncio
async def test_last_call_in_a_burst_wins():
    recorder = _Recorder()
    debounced = debounce(recorder, delay_ms=20)

    early = [asyncio.create_task(debounced(t)) for t in ("r", "ra", "rad")]
    await asyncio.sleep(0)
    result = await debounced("radio")

    assert await asyncio.gather(*early) == [None, None, None]
    assert result == "RADIO"
    assert recorder.calls == ["radio"]
    assert debounced.generation == 4


@pytest.mark.asyncio
async def test_calls_separated_by_quiet_all_run():
    recorder = _Recorder()
    debounced = debounce(recorder, delay_ms=1)

    assert await debounced("a") == "A"
    assert await debounced("b") == "B"
    assert recorder.calls == ["a", "b"]


@pytest.mark.asyncio
async def test_cancel_resolves_pending_call_with_none():
    recorder = _Recorder()
    debounced = debounce(recorder, delay_ms=50)

    pending = asyncio.create_task(debounced("x"))
    await asyncio.sleep(0)
    assert debounced.has_pending

    debounced.cancel()

    assert await pending is None
    assert not debounced.has_pending
    assert recorder.calls == []


@pytest.mark.asyncio
async def test_running_invocation_is_not_interrupted():
    started = asyncio.Event()
    release = asyncio.Event()

    async def _slow(term: str) -> str:
        started.set()
        await release.wait()
        return term

    debounced = debounce(_slow, delay_ms=0)
    running = asyncio.create_task(debounced("first"))
    await started.wait()

    newer = asyncio.create_task(debounced("second"))
    release.set()

    assert await running == "first"
    assert await newer == "second"


@pytest.mark.asyncio
async def test_errors_reach_the_awaiter():
    async def _boom(term: str) -> str:
        raise RuntimeError(term)

    debounced = debounce(_boom, delay_ms=0)

    with pytest.raises(RuntimeError, match="bad"):
        await debounced("bad")


def test_negative_delay_is_rejected():
    async def _noop() -> None:
        return None

    with pytest.raises(ValueError):
        Debouncer(_noop, delay_ms=-1)
