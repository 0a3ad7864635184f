"""Custom exception hierarchy for Encore.

All application exceptions inherit from :class:`EncoreError`, which carries
an optional ``provider_name`` (which backend raised it, e.g. "sqlite_store")
and a machine-readable ``code``.  The code strings mirror the status codes a
managed document backend reports, so the connection manager can classify
failures by code without knowing which concrete provider is in use.

The hierarchy is organized by concern:

    EncoreError  (base -- catch-all for any Encore error)
    +-- StoreError                (persistent store failures)
    |   +-- StoreUnavailableError (backend busy / unreachable -- transient)
    |   +-- IndexUnavailableError (secondary index cannot serve the query)
    |   |   +-- IndexMissingError
    |   |   +-- IndexNotReadyError
    |   +-- InvalidQueryError     (query shape the store refuses)
    +-- NotFoundError             (primary entity of an operation missing)
    +-- InvalidInputError         (validation, rejected before any store call)
    +-- PermissionDeniedError     (caller identity != target identity)
    +-- AuthenticationError       (bad credentials / token)
    +-- ConnectionClosedError     (queued work abandoned at shutdown)
    +-- ConfigurationError        (startup / missing config)
"""


class EncoreError(Exception):
    """Base exception for all Encore errors.

    The ``__str__`` method prefixes the provider name in brackets for
    structured log output, e.g. ``[sqlite_store] database is locked``.
    """

    default_code = "internal"

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
        code: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        self._code = code or self.default_code
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    @property
    def code(self) -> str:
        return self._code

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Persistent store errors
# ---------------------------------------------------------------------------

class StoreError(EncoreError):
    """Raised when the persistent store fails an operation."""

    def __init__(
        self,
        message: str = "Store operation failed",
        provider_name: str | None = None,
        code: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name, code=code)


class StoreUnavailableError(StoreError):
    """Raised when the store is busy, locked or unreachable.

    Carries code ``unavailable`` so the connection manager retries it.
    """

    default_code = "unavailable"

    def __init__(
        self,
        message: str = "Store is unavailable",
        provider_name: str | None = None,
        code: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name, code=code)


class IndexUnavailableError(StoreError):
    """Raised when a query needs a composite index that cannot serve it.

    Callers with an unordered fallback (the review listing) catch this and
    sort in memory instead.
    """

    default_code = "failed-precondition"


class IndexMissingError(IndexUnavailableError):
    """The query requires an index that has never been declared."""

    def __init__(
        self,
        message: str = "The query requires an index",
        provider_name: str | None = None,
        code: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name, code=code)


class IndexNotReadyError(IndexUnavailableError):
    """The query's index exists but is currently building."""

    def __init__(
        self,
        message: str = "The query requires an index that is currently building",
        provider_name: str | None = None,
        code: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name, code=code)


class InvalidQueryError(StoreError):
    """Raised for query shapes the store refuses (bad operator, oversized ``in``)."""

    default_code = "invalid-argument"


# ---------------------------------------------------------------------------
# Domain errors
# ---------------------------------------------------------------------------

class NotFoundError(EncoreError):
    """Raised when the primary entity of an operation does not exist."""

    default_code = "not-found"

    def __init__(
        self,
        message: str = "Entity not found",
        provider_name: str | None = None,
        code: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name, code=code)


class InvalidInputError(EncoreError):
    """Raised when caller input fails validation.  Never reaches the store."""

    default_code = "invalid-argument"

    def __init__(
        self,
        message: str = "Invalid input",
        provider_name: str | None = None,
        code: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name, code=code)


class PermissionDeniedError(EncoreError):
    """Raised when the caller acts on behalf of a different user."""

    default_code = "permission-denied"

    def __init__(
        self,
        message: str = "Permission denied",
        provider_name: str | None = None,
        code: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name, code=code)


class AuthenticationError(EncoreError):
    """Raised by the identity provider for bad credentials or tokens."""

    default_code = "unauthenticated"

    def __init__(
        self,
        message: str = "Authentication failed",
        provider_name: str | None = None,
        code: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name, code=code)


class ConnectionClosedError(EncoreError):
    """Raised for queued operations abandoned when the connection manager shuts down."""

    default_code = "closed"

    def __init__(
        self,
        message: str = "Connection manager was shut down",
        provider_name: str | None = None,
        code: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name, code=code)


class ConfigurationError(EncoreError):
    """Raised when configuration is invalid or missing at startup."""

    default_code = "configuration"

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
        code: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name, code=code)
