"""Activity feed items."""

from __future__ import annotations

import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict

from encore.models.entities import UNKNOWN_ARTIST, UNKNOWN_USER, UNKNOWN_VENUE


class FeedItemType(str, Enum):  # noqa: UP042 - StrEnum requires Python 3.11+
    CONCERT_LOGGED = "concert_logged"
    REVIEW_POSTED = "review_posted"


class FeedItem(BaseModel):
    """One displayable activity from a followed user.

    ``id`` is ``"concert_<id>"`` or ``"review_<id>"`` for the underlying
    record; ``timestamp`` is that record's creation time.  Name fields
    hold placeholders when the referenced user, concert, artist or venue
    cannot be resolved.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    type: FeedItemType
    user_id: str
    user_display_name: str = UNKNOWN_USER
    concert_id: str
    concert_name: str
    artist_name: str = UNKNOWN_ARTIST
    venue_name: str = UNKNOWN_VENUE
    review_id: str | None = None
    review_text: str | None = None
    rating: int | None = None
    timestamp: datetime.datetime
