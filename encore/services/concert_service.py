"""Concert logging and concert reads.

# ─── WHAT log_concert DOES ────────────────────────────────────────────
#
#   validate input          (no store call on failure)
#        │
#   ┌────┴──────────── one retried operation ─────────────────────────┐
#   │ resolve artist ─┐                                               │
#   │                 ├─ concurrently (EntityResolver.resolve)        │
#   │ resolve venue  ─┘                                               │
#   │ add concert document (denormalized artistName / venueName)      │
#   │ transaction: users/{uid}.loggedConcertsCount += 1               │
#   └─────────────────────────────────────────────────────────────────┘
#        │
#   analytics "concert_logged" (fire-and-forget)
#
# Only the counter step is atomic.  If a transient failure hits after the
# concert document was added, the retry runs the whole sequence again and
# can add a second concert.  The counter transaction itself is never
# applied twice for one successful attempt.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import datetime
from typing import Any

from encore.interfaces.document_store import FieldFilter, IDocumentStore, ITransaction
from encore.models.entities import Artist, Concert, ConcertDetails, User, Venue
from encore.models.refs import EntityKind, EntityRef
from encore.services.analytics_service import AnalyticsService
from encore.services.connection_manager import ConnectionManager
from encore.services.entity_resolver import EntityResolver
from encore.utils.clock import from_date_string, utc_now
from encore.utils.concurrency import throttled_gather
from encore.utils.errors import InvalidInputError
from encore.utils.logging import get_logger

MIN_RATING = 1
MAX_RATING = 5


def validate_rating(rating: Any) -> int:
    """Return *rating* if it is an integer in [1, 5]; raise otherwise."""
    if isinstance(rating, bool) or not isinstance(rating, int):
        msg = f"Rating must be a whole number between {MIN_RATING} and {MAX_RATING}"
        raise InvalidInputError(msg)
    if not MIN_RATING <= rating <= MAX_RATING:
        msg = f"Rating must be between {MIN_RATING} and {MAX_RATING}, got {rating}"
        raise InvalidInputError(msg)
    return rating


def _require_text(value: str | None, label: str) -> str:
    trimmed = (value or "").strip()
    if not trimmed:
        msg = f"{label} is required"
        raise InvalidInputError(msg)
    return trimmed


def _concert_date(value: datetime.date | datetime.datetime | str) -> datetime.date:
    try:
        concert_date = from_date_string(value) if isinstance(value, str) else value
    except ValueError as exc:
        msg = f"Invalid concert date: {value!r}"
        raise InvalidInputError(msg) from exc
    if isinstance(concert_date, datetime.datetime):
        concert_date = concert_date.date()
    if concert_date > utc_now().date():
        raise InvalidInputError("Concert date cannot be in the future")
    return concert_date


class ConcertService:
    """Creates concerts and keeps each user's logged-concert counter in step."""

    def __init__(
        self,
        store: IDocumentStore,
        connection: ConnectionManager,
        resolver: EntityResolver,
        analytics: AnalyticsService,
    ) -> None:
        self._store = store
        self._connection = connection
        self._resolver = resolver
        self._analytics = analytics
        self._logger = get_logger(__name__)

    # -- Writes ----------------------------------------------------------------

    async def log_concert(
        self,
        user_id: str,
        artist_name: str,
        venue_name: str,
        date: datetime.date | datetime.datetime | str,
        rating: int,
        notes: str | None = None,
    ) -> str:
        """Log one attended concert for *user_id* and return the concert id.

        Raises
        ------
        InvalidInputError
            Missing names, a rating outside [1, 5] or a future date; raised
            before anything is written.
        StoreError
            Any store failure left after the retry policy.
        """
        user_id = _require_text(user_id, "User id")
        artist_name = _require_text(artist_name, "Artist name")
        venue_name = _require_text(venue_name, "Venue name")
        rating = validate_rating(rating)
        concert_date = _concert_date(date)
        notes = (notes or "").strip()

        async def _log() -> str:
            artist_ref, venue_ref = await throttled_gather([
                self._resolver.resolve(EntityKind.ARTISTS, artist_name),
                self._resolver.resolve(EntityKind.VENUES, venue_name),
            ])
            now = utc_now()
            concert = Concert(
                id="",
                artist_ref=artist_ref,
                venue_ref=venue_ref,
                user_ref=EntityRef.user(user_id),
                date=concert_date,
                rating=rating,
                notes=notes,
                artist_name=artist_name,
                venue_name=venue_name,
                created_at=now,
                updated_at=now,
            )
            concert_id = await self._store.add(EntityKind.CONCERTS.value, concert.to_document())
            await self._store.run_transaction(
                lambda tx: self._increment_logged_count(tx, user_id)
            )
            return concert_id

        concert_id = await self._connection.execute_with_retry(_log, "log_concert")
        self._logger.info(
            "concert_logged",
            concert_id=concert_id,
            user_id=user_id,
            artist_name=artist_name,
            venue_name=venue_name,
        )
        self._analytics.log_concert_logged(user_id, concert_id, artist_name, venue_name)
        return concert_id

    @staticmethod
    async def _increment_logged_count(tx: ITransaction, user_id: str) -> int:
        doc = await tx.get(EntityKind.USERS.value, user_id)
        if doc is None:
            # First concert of a user whose profile was never written.
            profile = User(uid=user_id, logged_concerts_count=1)
            tx.set(EntityKind.USERS.value, user_id, profile.to_document())
            return 1
        count = max(0, int(doc.get("loggedConcertsCount", 0) or 0)) + 1
        tx.update(EntityKind.USERS.value, user_id, {"loggedConcertsCount": count})
        return count

    # -- Reads -----------------------------------------------------------------

    async def get_user_concerts(self, user_id: str) -> list[Concert]:
        """Return every concert *user_id* logged, most recent concert date first."""

        async def _fetch() -> list[Concert]:
            docs = await self._store.query(
                EntityKind.CONCERTS.value,
                filters=[FieldFilter(field="userRef", op="==", value=EntityRef.user(user_id).path)],
            )
            concerts = [Concert.from_document(d["id"], d) for d in docs]
            # Concert date, not creation time.
            concerts.sort(key=lambda c: c.date, reverse=True)
            return concerts

        return await self._connection.execute_with_retry(_fetch, "get_user_concerts")

    async def get_concert_by_id(self, concert_id: str) -> Concert | None:
        doc = await self._connection.execute_with_retry(
            lambda: self._store.get(EntityKind.CONCERTS.value, concert_id), "get_concert_by_id"
        )
        if doc is None:
            return None
        return Concert.from_document(doc["id"], doc)

    async def get_artist(self, ref: EntityRef | str) -> Artist | None:
        """Resolve an artist reference; ``None`` when missing or unreadable."""
        artist_id = ref.id if isinstance(ref, EntityRef) else ref
        try:
            doc = await self._store.get(EntityKind.ARTISTS.value, artist_id)
        except Exception as exc:
            self._logger.warning("artist_lookup_failed", artist_id=artist_id, error=str(exc))
            return None
        return Artist.from_document(doc["id"], doc) if doc else None

    async def get_venue(self, ref: EntityRef | str) -> Venue | None:
        """Resolve a venue reference; ``None`` when missing or unreadable."""
        venue_id = ref.id if isinstance(ref, EntityRef) else ref
        try:
            doc = await self._store.get(EntityKind.VENUES.value, venue_id)
        except Exception as exc:
            self._logger.warning("venue_lookup_failed", venue_id=venue_id, error=str(exc))
            return None
        return Venue.from_document(doc["id"], doc) if doc else None

    async def get_concert_details(self, concert_id: str) -> ConcertDetails | None:
        """Return the concert joined with its artist and venue, or ``None``."""
        concert = await self.get_concert_by_id(concert_id)
        if concert is None:
            return None
        artist, venue = await throttled_gather([
            self.get_artist(concert.artist_ref),
            self.get_venue(concert.venue_ref),
        ])
        return ConcertDetails(concert=concert, artist=artist, venue=venue)
