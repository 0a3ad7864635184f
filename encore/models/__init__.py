"""Encore domain models - re-exports all public model classes.

Other parts of the codebase import directly from ``encore.models``
(e.g. ``from encore.models import Concert``).

The models are organized by concern:
    - refs.py        - typed references between documents (EntityRef)
    - entities.py    - users, artists, venues, concerts, reviews, comments
    - engagement.py  - results of like toggles and review listings
    - feed.py        - activity feed items
    - connection.py  - store connection states
"""

from __future__ import annotations

from encore.models.connection import ConnectionState
from encore.models.engagement import LikeAction, LikeToggleResult, ReviewPage
from encore.models.entities import (
    UNKNOWN_ARTIST,
    UNKNOWN_LOCATION,
    UNKNOWN_USER,
    UNKNOWN_VENUE,
    Artist,
    Comment,
    CommentView,
    Concert,
    ConcertDetails,
    Review,
    User,
    Venue,
)
from encore.models.feed import FeedItem, FeedItemType
from encore.models.refs import EntityKind, EntityRef

__all__ = [
    "UNKNOWN_ARTIST",
    "UNKNOWN_LOCATION",
    "UNKNOWN_USER",
    "UNKNOWN_VENUE",
    "Artist",
    "Comment",
    "CommentView",
    "Concert",
    "ConcertDetails",
    "ConnectionState",
    "EntityKind",
    "EntityRef",
    "FeedItem",
    "FeedItemType",
    "LikeAction",
    "LikeToggleResult",
    "Review",
    "ReviewPage",
    "User",
    "Venue",
]
