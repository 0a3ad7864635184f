"""Core domain entities for Encore.

Defines the frozen Pydantic v2 models for users, artists, venues, concerts,
reviews and review comments.  Models are immutable; a change to a document
is a new store write, never an in-place mutation of a model.

Documents in the store use camelCase keys (``loggedConcertsCount``,
``artistRef``) and path-string references.  Each model converts from its
persisted shape with ``from_document(doc_id, data)`` and back with
``to_document()``, so the rest of the code only handles snake_case fields
and typed :class:`~encore.models.refs.EntityRef` values.

Key relationships:
    - Concert references one Artist, one Venue and its owning User
    - Review references one Concert and its author
    - Comment lives under a Review and references its author
"""

from __future__ import annotations

import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from encore.models.refs import EntityRef
from encore.utils.clock import from_date_string, from_timestamp, to_date_string, to_timestamp

# Display placeholders for references that no longer resolve.
UNKNOWN_USER = "Unknown User"
UNKNOWN_ARTIST = "Unknown Artist"
UNKNOWN_VENUE = "Unknown Venue"
UNKNOWN_LOCATION = "Unknown"


def _optional_timestamp(raw: Any) -> datetime.datetime | None:
    return from_timestamp(raw) if raw else None


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

class User(BaseModel):
    """A user profile.

    ``logged_concerts_count`` is a derived counter: it is only ever written
    by the concert-logging transaction and never decremented.
    """

    model_config = ConfigDict(frozen=True)

    uid: str
    email: str = ""
    display_name: str = "User"
    bio: str | None = None
    profile_picture_url: str | None = None
    logged_concerts_count: int = Field(default=0, ge=0)

    @classmethod
    def from_document(cls, doc_id: str, data: dict[str, Any]) -> User:
        return cls(
            uid=doc_id,
            email=data.get("email", ""),
            display_name=data.get("displayName") or "User",
            bio=data.get("bio"),
            profile_picture_url=data.get("profilePictureUrl"),
            logged_concerts_count=max(0, int(data.get("loggedConcertsCount", 0) or 0)),
        )

    def to_document(self) -> dict[str, Any]:
        doc: dict[str, Any] = {
            "uid": self.uid,
            "email": self.email,
            "displayName": self.display_name,
            "loggedConcertsCount": self.logged_concerts_count,
        }
        if self.bio is not None:
            doc["bio"] = self.bio
        if self.profile_picture_url is not None:
            doc["profilePictureUrl"] = self.profile_picture_url
        return doc


# ---------------------------------------------------------------------------
# Normalized entities: artists and venues
# ---------------------------------------------------------------------------

class Artist(BaseModel):
    """A performing artist, deduplicated by exact name."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    genre: list[str] = Field(default_factory=list)
    image_url: str | None = None
    created_at: datetime.datetime | None = None

    @classmethod
    def from_document(cls, doc_id: str, data: dict[str, Any]) -> Artist:
        return cls(
            id=doc_id,
            name=data.get("name", ""),
            genre=list(data.get("genre") or []),
            image_url=data.get("imageUrl"),
            created_at=_optional_timestamp(data.get("createdAt")),
        )


class Venue(BaseModel):
    """A concert venue, deduplicated by exact name.

    Venues created from the concert-logging path only know their name;
    city, state and country are then the placeholder ``"Unknown"``.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    city: str = UNKNOWN_LOCATION
    state: str = UNKNOWN_LOCATION
    country: str = UNKNOWN_LOCATION
    address: str | None = None
    image_url: str | None = None
    created_at: datetime.datetime | None = None

    @classmethod
    def from_document(cls, doc_id: str, data: dict[str, Any]) -> Venue:
        return cls(
            id=doc_id,
            name=data.get("name", ""),
            city=data.get("city") or UNKNOWN_LOCATION,
            state=data.get("state") or UNKNOWN_LOCATION,
            country=data.get("country") or UNKNOWN_LOCATION,
            address=data.get("address"),
            image_url=data.get("imageUrl"),
            created_at=_optional_timestamp(data.get("createdAt")),
        )


# ---------------------------------------------------------------------------
# Concerts and reviews
# ---------------------------------------------------------------------------

class Concert(BaseModel):
    """One attended concert logged by one user.

    ``artist_name`` and ``venue_name`` are denormalized copies of the
    resolved entities' names, written once at creation so that prefix
    search and the feed have text fields to read without a join.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    artist_ref: EntityRef
    venue_ref: EntityRef
    user_ref: EntityRef
    date: datetime.date
    rating: int = Field(ge=1, le=5)
    notes: str = ""
    artist_name: str = ""
    venue_name: str = ""
    created_at: datetime.datetime | None = None
    updated_at: datetime.datetime | None = None

    @property
    def display_name(self) -> str:
        artist = self.artist_name or UNKNOWN_ARTIST
        venue = self.venue_name or UNKNOWN_VENUE
        return f"{artist} at {venue}"

    @classmethod
    def from_document(cls, doc_id: str, data: dict[str, Any]) -> Concert:
        return cls(
            id=doc_id,
            artist_ref=EntityRef.parse(data["artistRef"]),
            venue_ref=EntityRef.parse(data["venueRef"]),
            user_ref=EntityRef.parse(data["userRef"]),
            date=from_date_string(data["date"]),
            rating=int(data["rating"]),
            notes=data.get("notes") or "",
            artist_name=data.get("artistName") or "",
            venue_name=data.get("venueName") or "",
            created_at=_optional_timestamp(data.get("createdAt")),
            updated_at=_optional_timestamp(data.get("updatedAt")),
        )

    def to_document(self) -> dict[str, Any]:
        return {
            "artistRef": self.artist_ref.path,
            "venueRef": self.venue_ref.path,
            "userRef": self.user_ref.path,
            "date": to_date_string(self.date),
            "rating": self.rating,
            "notes": self.notes,
            "artistName": self.artist_name,
            "venueName": self.venue_name,
            "createdAt": to_timestamp(self.created_at) if self.created_at else None,
            "updatedAt": to_timestamp(self.updated_at) if self.updated_at else None,
        }


class Review(BaseModel):
    """A written review of a concert.

    ``likes_count`` and ``comments_count`` mirror the sizes of the review's
    ``likedBy`` and ``comments`` sub-collections.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    concert_ref: EntityRef
    user_ref: EntityRef
    text: str
    rating: int = Field(ge=1, le=5)
    likes_count: int = Field(default=0, ge=0)
    comments_count: int = Field(default=0, ge=0)
    created_at: datetime.datetime | None = None
    updated_at: datetime.datetime | None = None

    @classmethod
    def from_document(cls, doc_id: str, data: dict[str, Any]) -> Review:
        return cls(
            id=doc_id,
            concert_ref=EntityRef.parse(data["concertRef"]),
            user_ref=EntityRef.parse(data["userRef"]),
            text=data.get("text", ""),
            rating=int(data["rating"]),
            likes_count=max(0, int(data.get("likesCount", 0) or 0)),
            comments_count=max(0, int(data.get("commentsCount", 0) or 0)),
            created_at=_optional_timestamp(data.get("createdAt")),
            updated_at=_optional_timestamp(data.get("updatedAt")),
        )


class Comment(BaseModel):
    """A comment stored under ``reviews/{reviewId}/comments``."""

    model_config = ConfigDict(frozen=True)

    id: str
    user_ref: EntityRef
    text: str
    created_at: datetime.datetime | None = None

    @classmethod
    def from_document(cls, doc_id: str, data: dict[str, Any]) -> Comment:
        return cls(
            id=doc_id,
            user_ref=EntityRef.parse(data["userRef"]),
            text=data.get("text", ""),
            created_at=_optional_timestamp(data.get("createdAt")),
        )


class CommentView(BaseModel):
    """A comment joined with its author's display name."""

    model_config = ConfigDict(frozen=True)

    comment: Comment
    user_display_name: str = UNKNOWN_USER


class ConcertDetails(BaseModel):
    """A concert joined with its artist and venue.

    ``artist`` / ``venue`` are ``None`` when the reference no longer
    resolves; the name fields then carry placeholders.
    """

    model_config = ConfigDict(frozen=True)

    concert: Concert
    artist: Artist | None = None
    venue: Venue | None = None

    @property
    def artist_name(self) -> str:
        if self.artist is not None:
            return self.artist.name
        return self.concert.artist_name or UNKNOWN_ARTIST

    @property
    def venue_name(self) -> str:
        if self.venue is not None:
            return self.venue.name
        return self.concert.venue_name or UNKNOWN_VENUE
