"""Activity feed assembled on read from the follow graph.

# ─── PIPELINE ─────────────────────────────────────────────────────────
#
#   following = SocialGraphService.fetch_following(user)      (empty → [])
#        │
#        ├── concerts where userRef in following ─┐  each source: "in" filter
#        │                                        │  split into chunks of 10,
#        └── reviews  where userRef in following ─┘  chunks queried concurrently,
#                                                    capped at the 20 newest
#        │
#   FeedJoiner.join()   author display names, parent concerts of reviews
#        │              (point lookups through the TTL cache, placeholders
#        │               for anything that does not resolve)
#        │
#   merge → sort by timestamp desc → first 30
#
# Any failure anywhere in the pipeline turns the whole feed into [].
#
# The join step is isolated in FeedJoiner so that a fan-out-on-write
# materialized feed can replace it without changing get_feed_activities.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

from typing import Any

from encore.interfaces.cache_provider import ICacheProvider
from encore.interfaces.document_store import (
    MAX_IN_VALUES,
    FieldFilter,
    IDocumentStore,
    OrderBy,
)
from encore.models.entities import UNKNOWN_ARTIST, UNKNOWN_USER, UNKNOWN_VENUE
from encore.models.feed import FeedItem, FeedItemType
from encore.models.refs import EntityKind, EntityRef
from encore.services.connection_manager import ConnectionManager
from encore.services.social_graph_service import SocialGraphService
from encore.utils.clock import from_timestamp
from encore.utils.concurrency import chunked, gather_lists, throttled_gather
from encore.utils.errors import InvalidInputError
from encore.utils.logging import get_logger
from encore.utils.safe import safe_call

PER_SOURCE_LIMIT = 20
MAX_FEED_ITEMS = 30


class FeedJoiner:
    """Turns raw concert and review documents into display-ready feed items.

    Every lookup degrades to a placeholder instead of failing its item.
    Results of point lookups are cached when a cache provider is given.
    """

    def __init__(self, store: IDocumentStore, cache: ICacheProvider | None = None) -> None:
        self._store = store
        self._cache = cache
        self._logger = get_logger(__name__)

    async def join(
        self,
        concert_docs: list[dict[str, Any]],
        review_docs: list[dict[str, Any]],
    ) -> list[FeedItem]:
        items = await throttled_gather(
            [self._concert_item(d) for d in concert_docs]
            + [self._review_item(d) for d in review_docs]
        )
        return [item for item in items if item is not None]

    async def _concert_item(self, doc: dict[str, Any]) -> FeedItem | None:
        timestamp = doc.get("createdAt")
        if not timestamp:
            return None
        user_id = _ref_id(doc.get("userRef"))
        display_name, (artist_name, venue_name) = await throttled_gather([
            self.display_name(user_id),
            self._concert_names(doc),
        ])
        return FeedItem(
            id=f"concert_{doc['id']}",
            type=FeedItemType.CONCERT_LOGGED,
            user_id=user_id,
            user_display_name=display_name,
            concert_id=doc["id"],
            concert_name=f"{artist_name} at {venue_name}",
            artist_name=artist_name,
            venue_name=venue_name,
            rating=doc.get("rating"),
            timestamp=from_timestamp(timestamp),
        )

    async def _review_item(self, doc: dict[str, Any]) -> FeedItem | None:
        timestamp = doc.get("createdAt")
        if not timestamp:
            return None
        user_id = _ref_id(doc.get("userRef"))
        concert_id = _ref_id(doc.get("concertRef"))
        display_name, concert = await throttled_gather([
            self.display_name(user_id),
            self._concert(concert_id),
        ])
        if concert:
            artist_name, venue_name = await self._concert_names(concert)
        else:
            artist_name, venue_name = UNKNOWN_ARTIST, UNKNOWN_VENUE
        return FeedItem(
            id=f"review_{doc['id']}",
            type=FeedItemType.REVIEW_POSTED,
            user_id=user_id,
            user_display_name=display_name,
            concert_id=concert_id,
            concert_name=f"{artist_name} at {venue_name}",
            artist_name=artist_name,
            venue_name=venue_name,
            review_id=doc["id"],
            review_text=doc.get("text"),
            rating=doc.get("rating"),
            timestamp=from_timestamp(timestamp),
        )

    # -- Point lookups ---------------------------------------------------------

    async def display_name(self, user_id: str) -> str:
        if not user_id:
            return UNKNOWN_USER
        doc = await self._lookup(EntityKind.USERS, user_id)
        return (doc or {}).get("displayName") or UNKNOWN_USER

    async def _concert(self, concert_id: str) -> dict[str, Any] | None:
        if not concert_id:
            return None
        return await self._lookup(EntityKind.CONCERTS, concert_id)

    async def _concert_names(self, concert: dict[str, Any]) -> tuple[str, str]:
        """Artist and venue names of a concert document.

        Uses the denormalized ``artistName`` / ``venueName`` and only looks
        the entities up for concerts written without them.
        """
        artist_name = concert.get("artistName")
        venue_name = concert.get("venueName")
        if not artist_name:
            artist = await self._lookup(EntityKind.ARTISTS, _ref_id(concert.get("artistRef")))
            artist_name = (artist or {}).get("name")
        if not venue_name:
            venue = await self._lookup(EntityKind.VENUES, _ref_id(concert.get("venueRef")))
            venue_name = (venue or {}).get("name")
        return artist_name or UNKNOWN_ARTIST, venue_name or UNKNOWN_VENUE

    async def _lookup(self, kind: EntityKind, doc_id: str) -> dict[str, Any] | None:
        if not doc_id:
            return None
        key = f"feed:{kind.value}:{doc_id}"
        if self._cache is not None:
            cached = await self._cache.get(key)
            if cached is not None:
                # An empty dict caches "does not exist".
                return cached or None
        try:
            doc = await self._store.get(kind.value, doc_id)
        except Exception as exc:
            self._logger.warning(
                "feed_lookup_failed", kind=kind.value, doc_id=doc_id, error=str(exc)
            )
            return None
        if self._cache is not None:
            await self._cache.set(key, doc or {})
        return doc


class FeedService:
    """Fan-out-on-read activity feed over the users a caller follows."""

    def __init__(
        self,
        store: IDocumentStore,
        connection: ConnectionManager,
        social_graph: SocialGraphService,
        joiner: FeedJoiner,
    ) -> None:
        self._store = store
        self._connection = connection
        self._social_graph = social_graph
        self._joiner = joiner
        self._logger = get_logger(__name__)

    async def get_feed_activities(self, user_id: str) -> list[FeedItem]:
        """Return up to 30 recent activities of followed users, newest first.

        Never raises: any failure is logged and yields ``[]``.
        """
        return await safe_call(
            self.assemble(user_id),
            [],
            logger=self._logger,
            event="feed_assembly_failed",
            user_id=user_id,
        )

    async def assemble(self, user_id: str) -> list[FeedItem]:
        """Raising variant of :meth:`get_feed_activities`."""
        following = await self._social_graph.fetch_following(user_id)
        if not following:
            return []

        user_paths = [EntityRef.user(uid).path for uid in following]
        concert_docs, review_docs = await throttled_gather([
            self._recent(EntityKind.CONCERTS, user_paths),
            self._recent(EntityKind.REVIEWS, user_paths),
        ])
        items = await self._joiner.join(concert_docs, review_docs)
        items.sort(key=lambda item: item.timestamp, reverse=True)
        feed = items[:MAX_FEED_ITEMS]
        self._logger.info(
            "feed_assembled",
            user_id=user_id,
            following=len(following),
            concerts=len(concert_docs),
            reviews=len(review_docs),
            items=len(feed),
        )
        return feed

    async def _recent(self, kind: EntityKind, user_paths: list[str]) -> list[dict[str, Any]]:
        """The 20 newest documents of *kind* authored by any of *user_paths*."""

        def _query(chunk: list[str]):
            return self._connection.execute_with_retry(
                lambda: self._store.query(
                    kind.value,
                    filters=[FieldFilter(field="userRef", op="in", value=chunk)],
                    order_by=[OrderBy(field="createdAt", descending=True)],
                    limit=PER_SOURCE_LIMIT,
                ),
                f"feed_recent_{kind.value}",
            )

        docs = await gather_lists([_query(chunk) for chunk in chunked(user_paths, MAX_IN_VALUES)])
        docs.sort(key=lambda d: d.get("createdAt") or "", reverse=True)
        return docs[:PER_SOURCE_LIMIT]


def _ref_id(raw: Any) -> str:
    if not raw:
        return ""
    try:
        return EntityRef.parse(raw).id
    except InvalidInputError:
        return str(raw).rsplit("/", 1)[-1]
