"""Result models for the review and engagement operations."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from encore.models.entities import Review


class LikeAction(str, Enum):  # noqa: UP042 - StrEnum requires Python 3.11+
    """Which way a like toggle went."""

    LIKED = "liked"
    UNLIKED = "unliked"


class LikeToggleResult(BaseModel):
    """Outcome of one atomic like toggle.

    ``likes_count`` is the review's counter as written by the same
    transaction, not a separate read afterwards.
    """

    model_config = ConfigDict(frozen=True)

    action: LikeAction
    likes_count: int = Field(ge=0)


class ReviewPage(BaseModel):
    """Reviews for one concert, newest first.

    ``using_fallback`` is True when the store could not serve the ordered
    query and the ordering was done in memory instead; callers may show a
    "results may be stale" hint.
    """

    model_config = ConfigDict(frozen=True)

    reviews: list[Review] = Field(default_factory=list)
    using_fallback: bool = False
