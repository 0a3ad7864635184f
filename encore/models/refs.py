"""Typed references between documents.

A reference names one document in one top-level collection.  In the store
it is persisted in the backend's native form, the path string
``"<collection>/<id>"`` (e.g. ``"artists/3f2a..."``), so that equality and
``in`` filters on reference fields are plain string comparisons.  Inside
the services it is always an :class:`EntityRef`.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from encore.utils.errors import InvalidInputError


class EntityKind(str, Enum):  # noqa: UP042 - StrEnum requires Python 3.11+
    """Top-level collections a reference may point into.

    The value doubles as the collection name in the document store.
    """

    USERS = "users"
    ARTISTS = "artists"
    VENUES = "venues"
    CONCERTS = "concerts"
    REVIEWS = "reviews"


class EntityRef(BaseModel):
    """Reference to a single document: ``(kind, id)``."""

    model_config = ConfigDict(frozen=True)

    kind: EntityKind
    id: str = Field(min_length=1)

    @property
    def path(self) -> str:
        """Persisted form of the reference, ``"<collection>/<id>"``."""
        return f"{self.kind.value}/{self.id}"

    @classmethod
    def parse(cls, raw: str | EntityRef) -> EntityRef:
        """Parse a persisted path string back into a reference.

        Raises
        ------
        InvalidInputError
            If *raw* is not of the form ``"<known collection>/<id>"``.
        """
        if isinstance(raw, EntityRef):
            return raw
        collection, sep, doc_id = str(raw).partition("/")
        if not sep or not doc_id or "/" in doc_id:
            msg = f"Malformed entity reference: {raw!r}"
            raise InvalidInputError(msg)
        try:
            kind = EntityKind(collection)
        except ValueError as exc:
            msg = f"Unknown collection in entity reference: {raw!r}"
            raise InvalidInputError(msg) from exc
        return cls(kind=kind, id=doc_id)

    @classmethod
    def user(cls, user_id: str) -> EntityRef:
        return cls(kind=EntityKind.USERS, id=user_id)

    @classmethod
    def artist(cls, artist_id: str) -> EntityRef:
        return cls(kind=EntityKind.ARTISTS, id=artist_id)

    @classmethod
    def venue(cls, venue_id: str) -> EntityRef:
        return cls(kind=EntityKind.VENUES, id=venue_id)

    @classmethod
    def concert(cls, concert_id: str) -> EntityRef:
        return cls(kind=EntityKind.CONCERTS, id=concert_id)

    @classmethod
    def review(cls, review_id: str) -> EntityRef:
        return cls(kind=EntityKind.REVIEWS, id=review_id)

    def __str__(self) -> str:
        return self.path
