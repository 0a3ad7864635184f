"""Pydantic request/response schemas for the Encore API.

Request bodies end with ``Request``, response bodies with ``Response``.
Response schemas flatten the domain models: references become plain ids
and timestamps stay ``datetime`` so FastAPI emits ISO-8601.
"""

from __future__ import annotations

import datetime

from pydantic import BaseModel, Field

from encore.models.entities import (
    Artist,
    CommentView,
    Concert,
    ConcertDetails,
    Review,
    User,
    Venue,
)

# ---------------------------------------------------------------------------
# Errors and health
# ---------------------------------------------------------------------------


class ErrorResponse(BaseModel):
    """Body of every mapped error: exception class name plus its message."""

    error: str
    detail: str


class HealthResponse(BaseModel):
    status: str
    connection_state: str
    store_provider: str
    pending_operations: int = 0


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------


class CredentialsRequest(BaseModel):
    email: str
    password: str


class AuthResponse(BaseModel):
    user_id: str
    email: str
    token: str


class UserResponse(BaseModel):
    uid: str
    display_name: str
    bio: str | None = None
    profile_picture_url: str | None = None
    logged_concerts_count: int = 0

    @classmethod
    def from_user(cls, user: User) -> UserResponse:
        return cls(
            uid=user.uid,
            display_name=user.display_name,
            bio=user.bio,
            profile_picture_url=user.profile_picture_url,
            logged_concerts_count=user.logged_concerts_count,
        )


# ---------------------------------------------------------------------------
# Concerts
# ---------------------------------------------------------------------------


class LogConcertRequest(BaseModel):
    """A concert to log for the signed-in user.

    Range and date checks happen in the service so that every caller,
    HTTP or not, gets the same ``InvalidInputError`` messages.
    """

    artist_name: str
    venue_name: str
    date: datetime.date
    rating: int
    notes: str | None = None


class CreatedResponse(BaseModel):
    id: str


class ConcertResponse(BaseModel):
    id: str
    user_id: str
    artist_id: str
    venue_id: str
    artist_name: str
    venue_name: str
    date: datetime.date
    rating: int
    notes: str = ""
    created_at: datetime.datetime | None = None

    @classmethod
    def from_concert(cls, concert: Concert) -> ConcertResponse:
        return cls(
            id=concert.id,
            user_id=concert.user_ref.id,
            artist_id=concert.artist_ref.id,
            venue_id=concert.venue_ref.id,
            artist_name=concert.artist_name,
            venue_name=concert.venue_name,
            date=concert.date,
            rating=concert.rating,
            notes=concert.notes,
            created_at=concert.created_at,
        )


class ConcertDetailsResponse(BaseModel):
    concert: ConcertResponse
    artist: Artist | None = None
    venue: Venue | None = None
    artist_name: str
    venue_name: str

    @classmethod
    def from_details(cls, details: ConcertDetails) -> ConcertDetailsResponse:
        return cls(
            concert=ConcertResponse.from_concert(details.concert),
            artist=details.artist,
            venue=details.venue,
            artist_name=details.artist_name,
            venue_name=details.venue_name,
        )


# ---------------------------------------------------------------------------
# Reviews, likes and comments
# ---------------------------------------------------------------------------


class SubmitReviewRequest(BaseModel):
    rating: int
    text: str


class ReviewResponse(BaseModel):
    id: str
    concert_id: str
    user_id: str
    text: str
    rating: int
    likes_count: int = 0
    comments_count: int = 0
    created_at: datetime.datetime | None = None

    @classmethod
    def from_review(cls, review: Review) -> ReviewResponse:
        return cls(
            id=review.id,
            concert_id=review.concert_ref.id,
            user_id=review.user_ref.id,
            text=review.text,
            rating=review.rating,
            likes_count=review.likes_count,
            comments_count=review.comments_count,
            created_at=review.created_at,
        )


class ReviewListResponse(BaseModel):
    reviews: list[ReviewResponse] = Field(default_factory=list)
    using_fallback: bool = False


class LikeStatusResponse(BaseModel):
    liked: bool


class LikeToggleResponse(BaseModel):
    action: str
    likes_count: int


class AddCommentRequest(BaseModel):
    text: str


class CommentResponse(BaseModel):
    id: str
    user_id: str
    user_display_name: str
    text: str
    created_at: datetime.datetime | None = None

    @classmethod
    def from_view(cls, view: CommentView) -> CommentResponse:
        return cls(
            id=view.comment.id,
            user_id=view.comment.user_ref.id,
            user_display_name=view.user_display_name,
            text=view.comment.text,
            created_at=view.comment.created_at,
        )


# ---------------------------------------------------------------------------
# Social graph
# ---------------------------------------------------------------------------


class FollowStatusResponse(BaseModel):
    following: bool


class FollowingListResponse(BaseModel):
    user_ids: list[str] = Field(default_factory=list)
