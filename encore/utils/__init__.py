"""Utility modules for Encore.

Available utility modules (re-exported here for convenience):

- **errors** -- Domain exception hierarchy rooted at EncoreError; every
  error carries a ``code`` the connection manager can classify.
- **concurrency** -- semaphore-throttled fan-out helpers used by the feed
  and by concurrent artist/venue resolution.
- **logging** -- structlog setup with a dual-renderer pattern: coloured
  console output in development, structured JSON in production.
- **safe** -- the boundary adapter mapping failures on passive read paths
  to their documented safe defaults.
- **debounce** -- trailing-edge async debounce with per-call generations.
- **clock** (not re-exported here) -- timestamp serialization helpers.
"""

from encore.utils.concurrency import chunked, gather_lists, throttled_gather
from encore.utils.debounce import Debouncer, debounce
from encore.utils.errors import (
    AuthenticationError,
    ConfigurationError,
    ConnectionClosedError,
    EncoreError,
    IndexMissingError,
    IndexNotReadyError,
    IndexUnavailableError,
    InvalidInputError,
    InvalidQueryError,
    NotFoundError,
    PermissionDeniedError,
    StoreError,
    StoreUnavailableError,
)
from encore.utils.logging import (
    bind_request_context,
    clear_request_context,
    configure_logging,
    get_logger,
)
from encore.utils.safe import safe_call

__all__ = [
    "AuthenticationError",
    "ConfigurationError",
    "ConnectionClosedError",
    "Debouncer",
    "EncoreError",
    "IndexMissingError",
    "IndexNotReadyError",
    "IndexUnavailableError",
    "InvalidInputError",
    "InvalidQueryError",
    "NotFoundError",
    "PermissionDeniedError",
    "StoreError",
    "StoreUnavailableError",
    "bind_request_context",
    "chunked",
    "clear_request_context",
    "configure_logging",
    "debounce",
    "gather_lists",
    "get_logger",
    "safe_call",
    "throttled_gather",
]
