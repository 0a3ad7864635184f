"""Shared concurrency primitives for fan-out reads.

Every multi-read operation in Encore follows the same shape: dispatch
independent store reads concurrently, then join them in one ordered merge
step.  There is no ordering guarantee between siblings; only the caller's
merge is ordered.

Two patterns are exposed:

1. **throttled_gather** -- A drop-in replacement for ``asyncio.gather`` that
   wraps each awaitable in a semaphore acquire/release so a single feed
   request cannot open an unbounded number of store connections.

2. **gather_lists** -- The fan-out-then-flatten pattern used by the feed's
   chunked ``in`` queries: run N list-returning reads concurrently and
   return one flat list.  Unlike the search-style helpers, a failed sibling
   is re-raised, because the feed treats any pipeline failure as a whole.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, TypeVar

_T = TypeVar("_T")

# Upper bound on concurrent store reads issued by one fan-out call.  SQLite
# serializes writers but readers run in parallel under WAL, so a handful of
# concurrent connections is cheap.
DEFAULT_FANOUT_LIMIT = 8


async def throttled_gather(
    coros: list[Awaitable[_T]],
    semaphore: asyncio.Semaphore | None = None,
    return_exceptions: bool = False,
) -> list[_T | BaseException]:
    """Run awaitables concurrently with semaphore throttling.

    Parameters
    ----------
    coros:
        Awaitable objects to execute concurrently.
    semaphore:
        Optional semaphore for concurrency control.  A fresh semaphore of
        ``DEFAULT_FANOUT_LIMIT`` is created per call when omitted; a shared
        module-level semaphore would bind to whichever event loop touched it
        first.
    return_exceptions:
        If ``True``, exceptions are returned in the results list rather
        than being raised.  Mirrors ``asyncio.gather`` semantics.

    Returns
    -------
    list
        Results in the same order as the input coroutines.
    """
    if semaphore is None:
        semaphore = asyncio.Semaphore(DEFAULT_FANOUT_LIMIT)

    async def _wrapped(coro: Awaitable[_T]) -> _T:
        async with semaphore:
            return await coro

    tasks = [_wrapped(c) for c in coros]
    return await asyncio.gather(*tasks, return_exceptions=return_exceptions)


async def gather_lists(coros: list[Awaitable[list[Any]]]) -> list[Any]:
    """Run list-returning awaitables concurrently and flatten the results."""
    results = await throttled_gather(coros)
    merged: list[Any] = []
    for chunk in results:
        merged.extend(chunk)
    return merged


def chunked(values: list[_T], size: int) -> list[list[_T]]:
    """Split *values* into consecutive chunks of at most *size* items."""
    if size < 1:
        msg = f"Chunk size must be positive, got {size}"
        raise ValueError(msg)
    return [values[i : i + size] for i in range(0, len(values), size)]
