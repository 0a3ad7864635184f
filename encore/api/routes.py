"""FastAPI routes for the Encore API.

Services are resolved from ``app.state`` (populated by ``main.py``'s
lifespan) through ``Depends`` helpers and ``Annotated`` aliases.  Every
route except sign-up, sign-in and health requires a bearer token issued by
the identity provider; the token's user id is the caller.

# ─── API ROUTE MAP ────────────────────────────────────────────────────
#
# Endpoint                              Method            Description
# ─────────────────────────────────────────────────────────────────────
# /api/v1/auth/signup                   POST              Create account + profile
# /api/v1/auth/signin                   POST              Sign in, get a token
# /api/v1/auth/signout                  POST              End the caller's sessions
# /api/v1/users/{uid}                   GET               Profile (created on first read)
# /api/v1/users/{uid}/concerts          GET               Concerts the user logged
# /api/v1/users/{uid}/following         GET               Ids the user follows
# /api/v1/users/{uid}/follow            GET/POST/DELETE   Caller's follow edge to uid
# /api/v1/concerts                      POST              Log a concert
# /api/v1/concerts/{id}                 GET               Concert + artist + venue
# /api/v1/concerts/{id}/reviews         GET/POST          List / post reviews
# /api/v1/reviews/{id}/like             GET/POST          Like status / toggle
# /api/v1/reviews/{id}/comments         GET/POST          List / add comments
# /api/v1/feed                          GET               Caller's activity feed
# /api/v1/search/{scope}?q=             GET               Prefix search
# /api/v1/discover/trending             GET               Newest concerts
# /api/v1/discover/popular-artists      GET               Newest artists
# /api/v1/health                        GET               Connection state
#
# Errors are raised as EncoreError subclasses and mapped to status codes
# by ErrorHandlingMiddleware.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

from typing import Annotated, Any

import structlog
from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from encore.api.schemas import (
    AddCommentRequest,
    AuthResponse,
    CommentResponse,
    ConcertDetailsResponse,
    ConcertResponse,
    CreatedResponse,
    CredentialsRequest,
    FollowingListResponse,
    FollowStatusResponse,
    HealthResponse,
    LikeStatusResponse,
    LikeToggleResponse,
    LogConcertRequest,
    ReviewListResponse,
    ReviewResponse,
    SubmitReviewRequest,
    UserResponse,
)
from encore.models.connection import ConnectionState
from encore.models.entities import Artist, Venue
from encore.models.feed import FeedItem
from encore.services.account_service import AccountService
from encore.services.concert_service import ConcertService
from encore.services.connection_manager import ConnectionManager
from encore.services.feed_service import FeedService
from encore.services.review_service import ReviewService
from encore.services.search_service import SearchService
from encore.services.social_graph_service import SocialGraphService
from encore.utils.errors import AuthenticationError, NotFoundError
from encore.utils.logging import bind_request_context, get_logger
from encore.utils.safe import safe_call

_logger: structlog.BoundLogger = get_logger(__name__)

router = APIRouter(prefix="/api/v1")

_bearer = HTTPBearer(auto_error=False)


# ---------------------------------------------------------------------------
# Dependency helpers
# ---------------------------------------------------------------------------


def _get_account_service(request: Request) -> AccountService:
    return request.app.state.account_service


def _get_concert_service(request: Request) -> ConcertService:
    return request.app.state.concert_service


def _get_review_service(request: Request) -> ReviewService:
    return request.app.state.review_service


def _get_social_graph(request: Request) -> SocialGraphService:
    return request.app.state.social_graph_service


def _get_feed_service(request: Request) -> FeedService:
    return request.app.state.feed_service


def _get_search_service(request: Request) -> SearchService:
    return request.app.state.search_service


def _get_connection_manager(request: Request) -> ConnectionManager:
    return request.app.state.connection_manager


AccountsDep = Annotated[AccountService, Depends(_get_account_service)]
ConcertsDep = Annotated[ConcertService, Depends(_get_concert_service)]
ReviewsDep = Annotated[ReviewService, Depends(_get_review_service)]
SocialGraphDep = Annotated[SocialGraphService, Depends(_get_social_graph)]
FeedDep = Annotated[FeedService, Depends(_get_feed_service)]
SearchDep = Annotated[SearchService, Depends(_get_search_service)]
ConnectionDep = Annotated[ConnectionManager, Depends(_get_connection_manager)]


async def _get_caller_id(
    accounts: AccountsDep,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(_bearer)],
) -> str:
    """Resolve the bearer token to the caller's user id, or raise 401."""
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Missing bearer token")
    user_id = await accounts.verify_token(credentials.credentials)
    if user_id is None:
        raise AuthenticationError("Invalid or expired token")
    bind_request_context(caller_id=user_id)
    return user_id


CallerDep = Annotated[str, Depends(_get_caller_id)]


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------


@router.post("/auth/signup", response_model=AuthResponse, status_code=201)
async def sign_up(body: CredentialsRequest, accounts: AccountsDep) -> AuthResponse:
    session = await accounts.sign_up(body.email, body.password)
    return AuthResponse(user_id=session.user_id, email=session.email, token=session.token)


@router.post("/auth/signin", response_model=AuthResponse)
async def sign_in(body: CredentialsRequest, accounts: AccountsDep) -> AuthResponse:
    session = await accounts.sign_in(body.email, body.password)
    return AuthResponse(user_id=session.user_id, email=session.email, token=session.token)


@router.post("/auth/signout", status_code=204)
async def sign_out(caller_id: CallerDep, accounts: AccountsDep) -> Response:
    await accounts.sign_out(caller_id)
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Users and the follow graph
# ---------------------------------------------------------------------------


@router.get("/users/{uid}", response_model=UserResponse)
async def get_user(uid: str, caller_id: CallerDep, accounts: AccountsDep) -> UserResponse:
    return UserResponse.from_user(await accounts.get_user(uid))


@router.get("/users/{uid}/concerts", response_model=list[ConcertResponse])
async def get_user_concerts(
    uid: str, caller_id: CallerDep, concerts: ConcertsDep
) -> list[ConcertResponse]:
    # Profile pages render an empty list rather than an error.
    result = await safe_call(
        concerts.get_user_concerts(uid),
        [],
        logger=_logger,
        event="user_concerts_failed",
        user_id=uid,
    )
    return [ConcertResponse.from_concert(c) for c in result]


@router.get("/users/{uid}/following", response_model=FollowingListResponse)
async def get_following(
    uid: str, caller_id: CallerDep, social_graph: SocialGraphDep
) -> FollowingListResponse:
    return FollowingListResponse(user_ids=await social_graph.get_following_users(uid))


@router.get("/users/{uid}/follow", response_model=FollowStatusResponse)
async def is_following(
    uid: str, caller_id: CallerDep, social_graph: SocialGraphDep
) -> FollowStatusResponse:
    return FollowStatusResponse(following=await social_graph.is_following(caller_id, uid))


@router.post("/users/{uid}/follow", response_model=FollowStatusResponse)
async def follow(
    uid: str, caller_id: CallerDep, social_graph: SocialGraphDep
) -> FollowStatusResponse:
    return FollowStatusResponse(following=await social_graph.follow_user(caller_id, uid))


@router.delete("/users/{uid}/follow", response_model=FollowStatusResponse)
async def unfollow(
    uid: str, caller_id: CallerDep, social_graph: SocialGraphDep
) -> FollowStatusResponse:
    removed = await social_graph.unfollow_user(caller_id, uid)
    return FollowStatusResponse(following=not removed)


# ---------------------------------------------------------------------------
# Concerts and reviews
# ---------------------------------------------------------------------------


@router.post("/concerts", response_model=CreatedResponse, status_code=201)
async def log_concert(
    body: LogConcertRequest, caller_id: CallerDep, concerts: ConcertsDep
) -> CreatedResponse:
    concert_id = await concerts.log_concert(
        caller_id,
        body.artist_name,
        body.venue_name,
        body.date,
        body.rating,
        body.notes,
    )
    return CreatedResponse(id=concert_id)


@router.get("/concerts/{concert_id}", response_model=ConcertDetailsResponse)
async def get_concert(
    concert_id: str, caller_id: CallerDep, concerts: ConcertsDep
) -> ConcertDetailsResponse:
    details = await concerts.get_concert_details(concert_id)
    if details is None:
        msg = f"Concert {concert_id} not found"
        raise NotFoundError(msg)
    return ConcertDetailsResponse.from_details(details)


@router.get("/concerts/{concert_id}/reviews", response_model=ReviewListResponse)
async def get_concert_reviews(
    concert_id: str, caller_id: CallerDep, reviews: ReviewsDep
) -> ReviewListResponse:
    page = await reviews.get_concert_reviews(concert_id)
    return ReviewListResponse(
        reviews=[ReviewResponse.from_review(r) for r in page.reviews],
        using_fallback=page.using_fallback,
    )


@router.post("/concerts/{concert_id}/reviews", response_model=CreatedResponse, status_code=201)
async def submit_review(
    concert_id: str, body: SubmitReviewRequest, caller_id: CallerDep, reviews: ReviewsDep
) -> CreatedResponse:
    review_id = await reviews.submit_review(concert_id, caller_id, body.rating, body.text)
    return CreatedResponse(id=review_id)


@router.get("/reviews/{review_id}/like", response_model=LikeStatusResponse)
async def get_like_status(
    review_id: str, caller_id: CallerDep, reviews: ReviewsDep
) -> LikeStatusResponse:
    return LikeStatusResponse(liked=await reviews.has_user_liked_review(review_id, caller_id))


@router.post("/reviews/{review_id}/like", response_model=LikeToggleResponse)
async def toggle_like(
    review_id: str, caller_id: CallerDep, reviews: ReviewsDep
) -> LikeToggleResponse:
    result = await reviews.toggle_review_like(review_id, caller_id, caller_id=caller_id)
    return LikeToggleResponse(action=result.action.value, likes_count=result.likes_count)


@router.get("/reviews/{review_id}/comments", response_model=list[CommentResponse])
async def get_comments(
    review_id: str, caller_id: CallerDep, reviews: ReviewsDep
) -> list[CommentResponse]:
    views = await reviews.get_review_comments(review_id)
    return [CommentResponse.from_view(v) for v in views]


@router.post("/reviews/{review_id}/comments", response_model=CreatedResponse, status_code=201)
async def add_comment(
    review_id: str, body: AddCommentRequest, caller_id: CallerDep, reviews: ReviewsDep
) -> CreatedResponse:
    comment = await reviews.add_comment_to_review(
        review_id, caller_id, body.text, caller_id=caller_id
    )
    return CreatedResponse(id=comment.id)


# ---------------------------------------------------------------------------
# Feed, search and discovery
# ---------------------------------------------------------------------------


@router.get("/feed", response_model=list[FeedItem])
async def get_feed(caller_id: CallerDep, feed: FeedDep) -> list[FeedItem]:
    return await feed.get_feed_activities(caller_id)


@router.get("/search/concerts", response_model=list[ConcertResponse])
async def search_concerts(
    caller_id: CallerDep, search: SearchDep, q: Annotated[str, Query()] = ""
) -> list[ConcertResponse]:
    return [ConcertResponse.from_concert(c) for c in await search.search_concerts(q)]


@router.get("/search/artists", response_model=list[Artist])
async def search_artists(
    caller_id: CallerDep, search: SearchDep, q: Annotated[str, Query()] = ""
) -> list[Artist]:
    return await search.search_artists(q)


@router.get("/search/venues", response_model=list[Venue])
async def search_venues(
    caller_id: CallerDep, search: SearchDep, q: Annotated[str, Query()] = ""
) -> list[Venue]:
    return await search.search_venues(q)


@router.get("/discover/trending", response_model=list[ConcertResponse])
async def trending_concerts(caller_id: CallerDep, search: SearchDep) -> list[ConcertResponse]:
    return [ConcertResponse.from_concert(c) for c in await search.get_trending_concerts()]


@router.get("/discover/popular-artists", response_model=list[Artist])
async def popular_artists(caller_id: CallerDep, search: SearchDep) -> list[Artist]:
    return await search.get_popular_artists()


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


@router.get("/health", response_model=HealthResponse)
async def health(request: Request, connection: ConnectionDep) -> HealthResponse:
    state = connection.get_connection_state()
    store: Any = request.app.state.store
    return HealthResponse(
        status="ok" if state == ConnectionState.CONNECTED else "degraded",
        connection_state=state.value,
        store_provider=store.get_provider_name(),
        pending_operations=connection.pending_operations,
    )
