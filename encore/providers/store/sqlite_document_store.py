"""SQLite-backed document store.

Persists every collection in one table of JSON documents keyed by
``(collection, doc_id)`` in a local SQLite database (``data/encore.db`` by
default).  Uses ``aiosqlite`` for async I/O and SQLite's JSON1 functions
(``json_extract``) to filter and order on document fields.

# ─── HOW THE STORE MAPS THE DOCUMENT CONTRACT ONTO SQLITE ─────────────
#
#   collection path         "reviews/abc123/likedBy"  (sub-collections are
#                           just longer collection paths)
#   filter  field op value  json_extract(data, '$.field') op ?
#   in      field in [...]  json_extract(data, '$.field') IN (?, ?, ...)
#   order   field desc      ORDER BY json_extract(data, '$.field') DESC
#
# Transactions run under ``BEGIN IMMEDIATE``, which takes SQLite's write
# lock up front, so two read-then-write transactions never interleave.
# Writes issued through the transaction handle are buffered and applied
# just before COMMIT; any exception rolls the whole batch back.
#
# Composite indexes: a query that filters on one field and orders on a
# different one needs an index named "<collection>:<field>+<orderField>".
# With ``enforce_indexes`` on, the store refuses such queries unless the
# index is registered as READY, the way a managed document backend does.
# That keeps the services' index-fallback paths exercisable locally.
#
# SQLite "database is locked" / "busy" errors are raised as
# StoreUnavailableError (code "unavailable") so the connection manager
# retries them.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import json
import re
import uuid
from contextlib import asynccontextmanager
from datetime import date, datetime
from pathlib import Path
from typing import Any, AsyncIterator, Awaitable, Callable, TypeVar

import aiosqlite
import structlog

from encore.interfaces.document_store import (
    MAX_IN_VALUES,
    FieldFilter,
    IDocumentStore,
    ITransaction,
    OrderBy,
)
from encore.utils.clock import to_timestamp
from encore.utils.errors import (
    IndexMissingError,
    IndexNotReadyError,
    InvalidQueryError,
    NotFoundError,
    StoreError,
    StoreUnavailableError,
)

logger = structlog.get_logger(logger_name=__name__)

_T = TypeVar("_T")

_PROVIDER = "sqlite_store"
_DEFAULT_DB_PATH = Path("data/encore.db")

INDEX_READY = "READY"
INDEX_BUILDING = "BUILDING"

_FIELD_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_SQL_OPS = {"==": "=", "<": "<", "<=": "<=", ">": ">", ">=": ">="}
_TRANSIENT_MARKERS = ("locked", "busy", "unable to open", "disk i/o")

_CREATE_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS documents (
    collection  TEXT NOT NULL,
    doc_id      TEXT NOT NULL,
    data        TEXT NOT NULL,
    PRIMARY KEY (collection, doc_id)
);
"""

_GET_SQL = "SELECT doc_id, data FROM documents WHERE collection = ? AND doc_id = ?"

_UPSERT_SQL = """\
INSERT INTO documents (collection, doc_id, data)
VALUES (?, ?, ?)
ON CONFLICT(collection, doc_id) DO UPDATE SET data = excluded.data;
"""

_INSERT_SQL = "INSERT INTO documents (collection, doc_id, data) VALUES (?, ?, ?)"

_DELETE_SQL = "DELETE FROM documents WHERE collection = ? AND doc_id = ?"


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return to_timestamp(value)
    if isinstance(value, date):
        return value.isoformat()
    msg = f"Object of type {type(value).__name__} is not JSON serializable"
    raise TypeError(msg)


def _encode(data: dict[str, Any]) -> str:
    body = {k: v for k, v in data.items() if k != "id"}
    return json.dumps(body, default=_json_default, separators=(",", ":"))


def _decode(doc_id: str, raw: str) -> dict[str, Any]:
    doc = json.loads(raw)
    doc["id"] = doc_id
    return doc


def _field_expr(field: str) -> str:
    if not _FIELD_RE.match(field):
        msg = f"Unsupported field name in query: {field!r}"
        raise InvalidQueryError(msg, provider_name=_PROVIDER)
    return f"json_extract(data, '$.{field}')"


def _bind(value: Any) -> Any:
    if isinstance(value, datetime):
        return to_timestamp(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, bool):
        return int(value)
    return value


def _index_collection(collection: str) -> str:
    # "reviews/abc/comments" -> "comments"
    return collection.rsplit("/", 1)[-1]


class _SQLiteTransaction(ITransaction):
    """Transaction handle bound to one connection holding the write lock."""

    def __init__(self, db: aiosqlite.Connection) -> None:
        self._db = db
        self._writes: list[tuple[str, str, str, dict[str, Any] | None]] = []

    async def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        cursor = await self._db.execute(_GET_SQL, (collection, doc_id))
        row = await cursor.fetchone()
        return _decode(row["doc_id"], row["data"]) if row else None

    def set(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        self._writes.append(("set", collection, doc_id, dict(data)))

    def update(self, collection: str, doc_id: str, fields: dict[str, Any]) -> None:
        self._writes.append(("update", collection, doc_id, dict(fields)))

    def delete(self, collection: str, doc_id: str) -> None:
        self._writes.append(("delete", collection, doc_id, None))

    def create_id(self) -> str:
        return uuid.uuid4().hex

    async def apply(self) -> None:
        """Apply the buffered writes in the order they were issued."""
        for kind, collection, doc_id, payload in self._writes:
            if kind == "set":
                await self._db.execute(_UPSERT_SQL, (collection, doc_id, _encode(payload or {})))
            elif kind == "update":
                current = await self.get(collection, doc_id)
                if current is None:
                    msg = f"No document {collection}/{doc_id} to update"
                    raise NotFoundError(msg, provider_name=_PROVIDER)
                current.update(payload or {})
                await self._db.execute(_UPSERT_SQL, (collection, doc_id, _encode(current)))
            else:
                await self._db.execute(_DELETE_SQL, (collection, doc_id))


class SQLiteDocumentStore(IDocumentStore):
    """Document store persisted in a single SQLite file.

    Parameters
    ----------
    db_path:
        Database file; parent directories are created on ``initialize``.
    indexes:
        Composite index registry, ``{"<collection>:<field>+<orderField>": state}``
        with state ``"READY"`` or ``"BUILDING"``.
    enforce_indexes:
        When True, ordered queries that need a composite index fail unless
        the index is registered and READY.
    busy_timeout:
        Seconds SQLite waits on a locked database before giving up.
    """

    def __init__(
        self,
        db_path: str | Path = _DEFAULT_DB_PATH,
        indexes: dict[str, str] | None = None,
        enforce_indexes: bool = False,
        busy_timeout: float = 5.0,
    ) -> None:
        self._db_path = Path(db_path)
        self._indexes = {name: str(state).upper() for name, state in (indexes or {}).items()}
        self._enforce_indexes = enforce_indexes
        self._busy_timeout = busy_timeout
        self._closed = False

    def get_provider_name(self) -> str:
        return _PROVIDER

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """Create the documents table and switch the file to WAL mode."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._closed = False
        async with self._connect() as db:
            await db.execute("PRAGMA journal_mode=WAL")
            await db.execute(_CREATE_TABLE_SQL)
        logger.info(
            "document_store_initialized",
            path=str(self._db_path),
            enforce_indexes=self._enforce_indexes,
            indexes=len(self._indexes),
        )

    async def close(self) -> None:
        self._closed = True
        logger.info("document_store_closed", path=str(self._db_path))

    async def ping(self) -> None:
        async with self._connect() as db:
            await db.execute("SELECT 1")

    # ------------------------------------------------------------------
    # Index registry
    # ------------------------------------------------------------------

    def set_index_state(self, name: str, state: str | None) -> None:
        """Register, update or (with ``None``) drop a composite index."""
        if state is None:
            self._indexes.pop(name, None)
            return
        state = state.upper()
        if state not in (INDEX_READY, INDEX_BUILDING):
            msg = f"Unknown index state {state!r}"
            raise ValueError(msg)
        self._indexes[name] = state

    def _check_indexes(
        self,
        collection: str,
        filters: list[FieldFilter],
        order_by: list[OrderBy],
    ) -> None:
        if not self._enforce_indexes or not order_by:
            return
        equality_fields = sorted({f.field for f in filters if f.op in ("==", "in")})
        if not equality_fields:
            return
        base = _index_collection(collection)
        for order in order_by:
            if order.field in equality_fields:
                continue
            name = f"{base}:{'+'.join(equality_fields)}+{order.field}"
            state = self._indexes.get(name)
            if state is None:
                msg = f"The query requires an index: {name}"
                raise IndexMissingError(msg, provider_name=_PROVIDER)
            if state != INDEX_READY:
                msg = f"The query requires an index that is currently building: {name}"
                raise IndexNotReadyError(msg, provider_name=_PROVIDER)

    # ------------------------------------------------------------------
    # Single-document operations
    # ------------------------------------------------------------------

    async def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        async with self._connect() as db:
            cursor = await db.execute(_GET_SQL, (collection, doc_id))
            row = await cursor.fetchone()
        return _decode(row["doc_id"], row["data"]) if row else None

    async def add(self, collection: str, data: dict[str, Any]) -> str:
        doc_id = uuid.uuid4().hex
        async with self._connect() as db:
            await db.execute(_INSERT_SQL, (collection, doc_id, _encode(data)))
        logger.debug("document_added", collection=collection, doc_id=doc_id)
        return doc_id

    async def set(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        async with self._connect() as db:
            await db.execute(_UPSERT_SQL, (collection, doc_id, _encode(data)))

    async def update(self, collection: str, doc_id: str, fields: dict[str, Any]) -> None:
        async def _merge(tx: ITransaction) -> None:
            if await tx.get(collection, doc_id) is None:
                msg = f"No document {collection}/{doc_id} to update"
                raise NotFoundError(msg, provider_name=_PROVIDER)
            tx.update(collection, doc_id, fields)

        await self.run_transaction(_merge)

    async def delete(self, collection: str, doc_id: str) -> None:
        async with self._connect() as db:
            await db.execute(_DELETE_SQL, (collection, doc_id))

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def query(
        self,
        collection: str,
        filters: list[FieldFilter] | None = None,
        order_by: list[OrderBy] | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        filters = filters or []
        order_by = order_by or []
        self._check_indexes(collection, filters, order_by)

        clauses = ["collection = ?"]
        params: list[Any] = [collection]
        for flt in filters:
            expr = _field_expr(flt.field)
            if flt.op == "in":
                values = list(flt.value or [])
                if len(values) > MAX_IN_VALUES:
                    msg = (
                        f"'in' filter on {flt.field!r} accepts at most "
                        f"{MAX_IN_VALUES} values, got {len(values)}"
                    )
                    raise InvalidQueryError(msg, provider_name=_PROVIDER)
                if not values:
                    return []
                clauses.append(f"{expr} IN ({', '.join('?' for _ in values)})")
                params.extend(_bind(v) for v in values)
            elif flt.op == "==" and flt.value is None:
                clauses.append(f"{expr} IS NULL")
            elif flt.op in _SQL_OPS:
                clauses.append(f"{expr} {_SQL_OPS[flt.op]} ?")
                params.append(_bind(flt.value))
            else:
                msg = f"Unsupported filter operator {flt.op!r}"
                raise InvalidQueryError(msg, provider_name=_PROVIDER)

        sql = f"SELECT doc_id, data FROM documents WHERE {' AND '.join(clauses)}"
        if order_by:
            ordering = [
                f"{_field_expr(o.field)} {'DESC' if o.descending else 'ASC'}" for o in order_by
            ]
            sql += f" ORDER BY {', '.join(ordering)}, doc_id"
        if limit is not None:
            if limit < 0:
                msg = f"Query limit must be >= 0, got {limit}"
                raise InvalidQueryError(msg, provider_name=_PROVIDER)
            sql += " LIMIT ?"
            params.append(limit)

        async with self._connect() as db:
            cursor = await db.execute(sql, params)
            rows = await cursor.fetchall()
        return [_decode(r["doc_id"], r["data"]) for r in rows]

    async def list_ids(self, collection: str) -> list[str]:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT doc_id FROM documents WHERE collection = ? ORDER BY doc_id",
                (collection,),
            )
            rows = await cursor.fetchall()
        return [r["doc_id"] for r in rows]

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    async def run_transaction(self, fn: Callable[[ITransaction], Awaitable[_T]]) -> _T:
        async with self._connect() as db:
            await db.execute("BEGIN IMMEDIATE")
            tx = _SQLiteTransaction(db)
            try:
                result = await fn(tx)
                await tx.apply()
            except Exception:
                await db.execute("ROLLBACK")
                raise
            await db.execute("COMMIT")
        return result

    # ------------------------------------------------------------------
    # Connection handling
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _connect(self) -> AsyncIterator[aiosqlite.Connection]:
        """Open a connection and translate SQLite failures into store errors."""
        if self._closed:
            raise StoreUnavailableError("Document store is closed", provider_name=_PROVIDER)
        try:
            async with aiosqlite.connect(
                str(self._db_path),
                timeout=self._busy_timeout,
                isolation_level=None,
            ) as db:
                db.row_factory = aiosqlite.Row
                yield db
        except aiosqlite.OperationalError as exc:
            text = str(exc).lower()
            if any(marker in text for marker in _TRANSIENT_MARKERS):
                logger.warning("document_store_unavailable", error=str(exc))
                raise StoreUnavailableError(str(exc), provider_name=_PROVIDER) from exc
            raise StoreError(str(exc), provider_name=_PROVIDER) from exc
        except aiosqlite.Error as exc:
            raise StoreError(str(exc), provider_name=_PROVIDER) from exc
