"""Boundary adapter that maps core failures to documented safe defaults.

The services raise typed :mod:`encore.utils.errors` exceptions so that the
failure information stays available to tests and to callers that want it.
Passive display reads (feed, search, follow status, like status) must never
surface an error to the UI, so each of them funnels its raising core through
:func:`safe_call` exactly once, at the public method boundary.
"""

from __future__ import annotations

from typing import Awaitable, TypeVar

import structlog

_T = TypeVar("_T")
_D = TypeVar("_D")


async def safe_call(
    operation: Awaitable[_T],
    default: _D,
    *,
    logger: structlog.BoundLogger,
    event: str,
    **context: object,
) -> _T | _D:
    """Await *operation*; on any exception log *event* and return *default*.

    Parameters
    ----------
    operation:
        The awaitable to run (usually a coroutine from a ``_fetch_*`` helper).
    default:
        The value returned when *operation* raises.
    logger:
        The caller's structured logger, so the failure is attributed to the
        right module.
    event:
        The snake_case log event name, e.g. ``"feed_assembly_failed"``.
    context:
        Extra key/value pairs bound to the log entry.
    """
    try:
        return await operation
    except Exception as exc:
        logger.warning(
            event,
            error_type=type(exc).__name__,
            error=str(exc),
            **context,
        )
        return default
