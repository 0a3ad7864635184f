"""Trailing-edge debounce for search-as-you-type callers.

# ─── HOW THE DEBOUNCER WORKS ──────────────────────────────────────────
#
# Each call is one "keystroke generation":
#
#   call("ra")   ──gen 1── sleep(delay) ─┐  cancelled by gen 2 → awaiter gets None
#   call("rad")  ──gen 2── sleep(delay) ─┐  cancelled by gen 3 → awaiter gets None
#   call("radi") ──gen 3── sleep(delay) ─── quiet ──→ func("radi") → awaiter gets result
#
# Only *pending* invocations (still sleeping) are cancelled.  Once a
# generation has started running ``func`` it is never interrupted; a newer
# call simply schedules its own generation behind it.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Generic, TypeVar

_T = TypeVar("_T")


class Debouncer(Generic[_T]):
    """Wraps an async callable so that only the last call in a burst runs.

    Awaiting a call returns the wrapped function's result when that call's
    generation fires, or ``None`` when a newer call superseded it before the
    delay elapsed.
    """

    def __init__(self, func: Callable[..., Awaitable[_T]], delay_ms: float) -> None:
        if delay_ms < 0:
            msg = f"delay_ms must be >= 0, got {delay_ms}"
            raise ValueError(msg)
        self._func = func
        self._delay = delay_ms / 1000.0
        self._generation = 0
        self._pending: asyncio.Task[None] | None = None
        self._pending_waiter: asyncio.Future[_T | None] | None = None

    @property
    def generation(self) -> int:
        """Number of calls made so far (the current keystroke generation)."""
        return self._generation

    @property
    def has_pending(self) -> bool:
        return self._pending is not None and not self._pending.done()

    async def __call__(self, *args: Any, **kwargs: Any) -> _T | None:
        self._generation += 1
        self.cancel()

        loop = asyncio.get_running_loop()
        waiter: asyncio.Future[_T | None] = loop.create_future()
        self._pending_waiter = waiter
        self._pending = asyncio.create_task(
            self._fire(self._generation, waiter, args, kwargs)
        )
        return await waiter

    def cancel(self) -> None:
        """Cancel the pending (not yet started) invocation, if any."""
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        if self._pending_waiter is not None and not self._pending_waiter.done():
            self._pending_waiter.set_result(None)
        self._pending = None
        self._pending_waiter = None

    async def _fire(
        self,
        generation: int,
        waiter: asyncio.Future[_T | None],
        args: tuple[Any, ...],
        kwargs: dict[str, Any],
    ) -> None:
        await asyncio.sleep(self._delay)
        if generation != self._generation:
            return
        # From here on the invocation has started and is no longer pending.
        self._pending = None
        self._pending_waiter = None
        try:
            result = await self._func(*args, **kwargs)
        except Exception as exc:
            if not waiter.done():
                waiter.set_exception(exc)
            return
        if not waiter.done():
            waiter.set_result(result)


def debounce(func: Callable[..., Awaitable[_T]], delay_ms: float) -> Debouncer[_T]:
    """Return a trailing-edge :class:`Debouncer` around *func*."""
    return Debouncer(func, delay_ms)
