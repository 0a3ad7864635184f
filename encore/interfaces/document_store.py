"""Abstract base class for the persistent document store.

Defines the contract every Encore service reads and writes through: named
collections of JSON-like documents addressed by ``(collection, doc_id)``,
simple filtered/ordered queries, and atomic read-then-write transactions.
Sub-collections are addressed by path, e.g. ``"reviews/<id>/likedBy"``.

The contract deliberately mirrors what a managed document backend offers
(equality/range/``in`` filters, ordering, limits, optimistic transactions,
composite secondary indexes) so that the SQLite provider used locally and
a hosted backend are interchangeable behind it.

Documents returned by :meth:`IDocumentStore.get` and
:meth:`IDocumentStore.query` carry their id under the ``"id"`` key.  Writes
never persist an ``"id"`` key; the id lives outside the document body.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Literal, TypeVar

from pydantic import BaseModel, ConfigDict

_T = TypeVar("_T")

FilterOp = Literal["==", "<", "<=", ">", ">=", "in"]

# Maximum number of values an ``in`` filter may carry.
MAX_IN_VALUES = 10


class FieldFilter(BaseModel):
    """One ``field <op> value`` clause of a query."""

    model_config = ConfigDict(frozen=True)

    field: str
    op: FilterOp
    value: Any


class OrderBy(BaseModel):
    """One ordering clause of a query."""

    model_config = ConfigDict(frozen=True)

    field: str
    descending: bool = False


class ITransaction(ABC):
    """Handle passed to a transaction function.

    Reads observe the state as of the transaction; writes are buffered and
    committed together when the transaction function returns, or discarded
    when it raises.
    """

    @abstractmethod
    async def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        """Return the document (with ``"id"``) or ``None`` if absent."""

    @abstractmethod
    def set(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        """Create or replace a document."""

    @abstractmethod
    def update(self, collection: str, doc_id: str, fields: dict[str, Any]) -> None:
        """Merge *fields* into an existing document.

        The document must exist when the transaction commits; otherwise the
        whole transaction fails with ``NotFoundError``.
        """

    @abstractmethod
    def delete(self, collection: str, doc_id: str) -> None:
        """Delete a document (no-op if absent)."""

    @abstractmethod
    def create_id(self) -> str:
        """Return a fresh document id for a ``set`` inside this transaction."""


class IDocumentStore(ABC):
    """Contract for document persistence services.

    All operations are async to allow network-backed stores without blocking
    the event loop.  Failures are raised as :mod:`encore.utils.errors`
    ``StoreError`` subclasses whose ``code`` tells the connection manager
    whether a retry can help.
    """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier for this backend (e.g. ``"sqlite"``)."""

    @abstractmethod
    async def initialize(self) -> None:
        """Create tables / open resources.  Idempotent."""

    @abstractmethod
    async def close(self) -> None:
        """Release any held resources."""

    @abstractmethod
    async def ping(self) -> None:
        """Raise a ``StoreError`` if the backend cannot be reached."""

    @abstractmethod
    async def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        """Return the document stored under *doc_id*, or ``None``."""

    @abstractmethod
    async def add(self, collection: str, data: dict[str, Any]) -> str:
        """Insert *data* under a new store-assigned id and return the id."""

    @abstractmethod
    async def set(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        """Create or replace the document *doc_id*."""

    @abstractmethod
    async def update(self, collection: str, doc_id: str, fields: dict[str, Any]) -> None:
        """Merge *fields* into an existing document.

        Raises
        ------
        NotFoundError
            If the document does not exist.
        """

    @abstractmethod
    async def delete(self, collection: str, doc_id: str) -> None:
        """Delete *doc_id* from *collection* (no-op if absent)."""

    @abstractmethod
    async def query(
        self,
        collection: str,
        filters: list[FieldFilter] | None = None,
        order_by: list[OrderBy] | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """Return documents matching every filter.

        Parameters
        ----------
        collection:
            Collection (or sub-collection path) to query.
        filters:
            Clauses combined with AND.  An ``in`` clause may carry at most
            ``MAX_IN_VALUES`` values.
        order_by:
            Ordering clauses, applied in sequence.
        limit:
            Maximum number of documents to return.

        Raises
        ------
        InvalidQueryError
            If the query shape is not supported.
        IndexUnavailableError
            If the query needs a composite index that is missing or still
            building.
        """

    @abstractmethod
    async def list_ids(self, collection: str) -> list[str]:
        """Return the ids of every document in *collection*."""

    @abstractmethod
    async def run_transaction(self, fn: Callable[[ITransaction], Awaitable[_T]]) -> _T:
        """Run ``fn(tx)`` atomically and return its result.

        Concurrent transactions on the same store are serialized, so a
        read-then-write inside *fn* never interleaves with another
        transaction's writes.  If *fn* raises, nothing it wrote is kept.
        """
