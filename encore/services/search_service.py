"""Prefix search and discovery lists.

Search is a prefix-range query per text field::

    field >= term  AND  field < term + "\\uf8ff"   ORDER BY field  LIMIT 10

``"\\uf8ff"`` sorts after every character that can follow the prefix, so
the range covers exactly the values starting with *term*.  Matching is
case-sensitive and prefix-only: "radio" does not find "Radiohead", and
"head" does not either.  There is no substring or fuzzy matching.

Concerts are searched on ``artistName`` and ``venueName``, venues on
``name`` and ``city``; the per-field results are merged, deduplicated by
id (first field wins) and capped at 10.

All reads here feed passive display, so every public method returns
``[]`` instead of raising.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, TypeVar

from encore.interfaces.document_store import FieldFilter, IDocumentStore, OrderBy
from encore.models.entities import Artist, Concert, Venue
from encore.models.refs import EntityKind
from encore.services.analytics_service import AnalyticsService
from encore.services.connection_manager import ConnectionManager
from encore.utils.concurrency import throttled_gather
from encore.utils.debounce import Debouncer, debounce
from encore.utils.logging import get_logger
from encore.utils.safe import safe_call

_T = TypeVar("_T")

PREFIX_SENTINEL = "\uf8ff"
PER_QUERY_LIMIT = 10
MAX_RESULTS = 10
DISCOVERY_LIMIT = 5
DEFAULT_DEBOUNCE_MS = 300


class SearchService:
    """Prefix search over concerts, artists and venues, plus discovery lists."""

    def __init__(
        self,
        store: IDocumentStore,
        connection: ConnectionManager,
        analytics: AnalyticsService | None = None,
    ) -> None:
        self._store = store
        self._connection = connection
        self._analytics = analytics
        self._logger = get_logger(__name__)

    # -- Search ----------------------------------------------------------------

    async def search_concerts(self, term: str) -> list[Concert]:
        return await self._search(
            "concerts", term, EntityKind.CONCERTS, ("artistName", "venueName"), Concert.from_document
        )

    async def search_artists(self, term: str) -> list[Artist]:
        return await self._search("artists", term, EntityKind.ARTISTS, ("name",), Artist.from_document)

    async def search_venues(self, term: str) -> list[Venue]:
        return await self._search(
            "venues", term, EntityKind.VENUES, ("name", "city"), Venue.from_document
        )

    def debounced(self, scope: str, delay_ms: float = DEFAULT_DEBOUNCE_MS) -> Debouncer[list[Any]]:
        """Return a trailing-edge debounced search for *scope*.

        Meant for search-as-you-type callers: only the last term typed
        within *delay_ms* of quiet is actually searched.
        """
        searches: dict[str, Callable[[str], Awaitable[list[Any]]]] = {
            "concerts": self.search_concerts,
            "artists": self.search_artists,
            "venues": self.search_venues,
        }
        if scope not in searches:
            msg = f"Unknown search scope {scope!r}"
            raise ValueError(msg)
        return debounce(searches[scope], delay_ms)

    async def _search(
        self,
        scope: str,
        term: str,
        kind: EntityKind,
        fields: tuple[str, ...],
        build: Callable[[str, dict[str, Any]], _T],
    ) -> list[_T]:
        # Blank terms would match everything; they never reach the store.
        if not term or not term.strip():
            return []

        results = await safe_call(
            self._prefix_search(kind, fields, term, build),
            [],
            logger=self._logger,
            event="search_failed",
            scope=scope,
            term=term,
        )
        if self._analytics is not None:
            self._analytics.log_search_performed(term, len(results), scope)
        return results

    async def _prefix_search(
        self,
        kind: EntityKind,
        fields: tuple[str, ...],
        term: str,
        build: Callable[[str, dict[str, Any]], _T],
    ) -> list[_T]:
        per_field = await throttled_gather([self._prefix_query(kind, f, term) for f in fields])
        merged: list[_T] = []
        seen: set[str] = set()
        for docs in per_field:
            for doc in docs:
                if doc["id"] in seen:
                    continue
                seen.add(doc["id"])
                merged.append(build(doc["id"], doc))
        return merged[:MAX_RESULTS]

    async def _prefix_query(self, kind: EntityKind, field: str, term: str) -> list[dict[str, Any]]:
        return await self._connection.execute_with_retry(
            lambda: self._store.query(
                kind.value,
                filters=[
                    FieldFilter(field=field, op=">=", value=term),
                    FieldFilter(field=field, op="<", value=term + PREFIX_SENTINEL),
                ],
                order_by=[OrderBy(field=field)],
                limit=PER_QUERY_LIMIT,
            ),
            f"search_{kind.value}_{field}",
        )

    # -- Discovery -------------------------------------------------------------

    async def get_trending_concerts(self) -> list[Concert]:
        """The 5 most recently logged concerts."""
        docs = await safe_call(
            self._latest(EntityKind.CONCERTS),
            [],
            logger=self._logger,
            event="trending_concerts_failed",
        )
        return [Concert.from_document(d["id"], d) for d in docs]

    async def get_popular_artists(self) -> list[Artist]:
        """The 5 most recently created artists.

        Despite the name this is not ranked by popularity; no logged-concert
        aggregation exists.
        """
        docs = await safe_call(
            self._latest(EntityKind.ARTISTS),
            [],
            logger=self._logger,
            event="popular_artists_failed",
        )
        return [Artist.from_document(d["id"], d) for d in docs]

    async def _latest(self, kind: EntityKind) -> list[dict[str, Any]]:
        return await self._connection.execute_with_retry(
            lambda: self._store.query(
                kind.value,
                order_by=[OrderBy(field="createdAt", descending=True)],
                limit=DISCOVERY_LIMIT,
            ),
            f"latest_{kind.value}",
        )
