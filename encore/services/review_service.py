"""Reviews, likes and comments.

# ─── COUNTERS AND THEIR SUB-COLLECTIONS ───────────────────────────────
#
#   reviews/{id}.likesCount     == |reviews/{id}/likedBy|
#   reviews/{id}.commentsCount  == |reviews/{id}/comments|
#
# Both counters change only inside a store transaction that also writes
# the matching membership or comment document, so no reader ever sees a
# counter that disagrees with its sub-collection.
#
# toggle_review_like reads the caller's likedBy entry INSIDE the same
# transaction as the counter.  Two overlapping toggles by one user are
# therefore serialized: the second observes the first one's membership
# write and undoes it, instead of both incrementing.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Final

from encore.interfaces.document_store import FieldFilter, IDocumentStore, ITransaction, OrderBy
from encore.models.engagement import LikeAction, LikeToggleResult, ReviewPage
from encore.models.entities import (
    UNKNOWN_USER,
    Comment,
    CommentView,
    Concert,
    Review,
)
from encore.models.refs import EntityKind, EntityRef
from encore.services.analytics_service import AnalyticsService
from encore.services.concert_service import validate_rating
from encore.services.connection_manager import ConnectionManager
from encore.utils.clock import now_timestamp
from encore.utils.concurrency import throttled_gather
from encore.utils.errors import (
    IndexUnavailableError,
    InvalidInputError,
    NotFoundError,
    PermissionDeniedError,
)
from encore.utils.logging import get_logger

_REVIEWS = EntityKind.REVIEWS.value


def _liked_by(review_id: str) -> str:
    return f"{_REVIEWS}/{review_id}/likedBy"


def _comments(review_id: str) -> str:
    return f"{_REVIEWS}/{review_id}/comments"


#: Passed as ``caller_id`` by in-process callers that act on a user's behalf
#: without an authenticated request (jobs, fixtures).  Any other value must
#: equal the acting user.
TRUSTED_CALLER: Final = object()

_EPOCH_FLOOR = datetime.min.replace(tzinfo=timezone.utc)


def _require_caller(user_id: str, caller_id: object, action: str) -> None:
    if not user_id:
        raise InvalidInputError("User id is required")
    if caller_id is not TRUSTED_CALLER and caller_id != user_id:
        msg = f"Cannot {action} for other users"
        raise PermissionDeniedError(msg)


class ReviewService:
    """Review submission and the atomic like / comment operations."""

    def __init__(
        self,
        store: IDocumentStore,
        connection: ConnectionManager,
        analytics: AnalyticsService,
    ) -> None:
        self._store = store
        self._connection = connection
        self._analytics = analytics
        self._logger = get_logger(__name__)

    # -- Reviews ---------------------------------------------------------------

    async def submit_review(self, concert_id: str, user_id: str, rating: int, text: str) -> str:
        """Post a review of *concert_id* and return the review id.

        When *user_id* owns the concert, the stored rating is the concert's
        own rating and *rating* is ignored.

        Raises
        ------
        InvalidInputError
            Empty text, or an out-of-range rating from a non-owner.
        NotFoundError
            If the concert does not exist.
        """
        trimmed = (text or "").strip()
        if not trimmed:
            raise InvalidInputError("Review text is required")
        if not user_id:
            raise InvalidInputError("User id is required")

        concert_doc = await self._connection.execute_with_retry(
            lambda: self._store.get(EntityKind.CONCERTS.value, concert_id), "get_concert"
        )
        if concert_doc is None:
            msg = f"Concert {concert_id} not found"
            raise NotFoundError(msg)
        concert = Concert.from_document(concert_doc["id"], concert_doc)

        if concert.user_ref.id == user_id:
            review_rating = concert.rating
        else:
            review_rating = validate_rating(rating)

        now = now_timestamp()
        data: dict[str, Any] = {
            "concertRef": EntityRef.concert(concert_id).path,
            "userRef": EntityRef.user(user_id).path,
            "text": trimmed,
            "rating": review_rating,
            "createdAt": now,
            "updatedAt": now,
            "likesCount": 0,
            "commentsCount": 0,
        }
        review_id = await self._connection.execute_with_retry(
            lambda: self._store.add(_REVIEWS, data), "submit_review"
        )
        self._logger.info(
            "review_posted",
            review_id=review_id,
            concert_id=concert_id,
            user_id=user_id,
            rating=review_rating,
        )
        self._analytics.log_review_posted(user_id, concert_id, review_rating)
        return review_id

    async def get_concert_reviews(self, concert_id: str) -> ReviewPage:
        """Return the concert's reviews, newest first.

        The ordered query needs the ``reviews:concertRef+createdAt`` index.
        While that index is missing or building, the reviews are fetched
        unordered and sorted here instead, and the page is flagged with
        ``using_fallback``.  Any other failure propagates.
        """
        concert_filter = FieldFilter(
            field="concertRef", op="==", value=EntityRef.concert(concert_id).path
        )

        async def _fetch() -> ReviewPage:
            try:
                docs = await self._store.query(
                    _REVIEWS,
                    filters=[concert_filter],
                    order_by=[OrderBy(field="createdAt", descending=True)],
                )
            except IndexUnavailableError as exc:
                self._logger.warning(
                    "review_fallback_query", concert_id=concert_id, reason=exc.message
                )
                docs = await self._store.query(_REVIEWS, filters=[concert_filter])
                reviews = [Review.from_document(d["id"], d) for d in docs]
                reviews.sort(
                    key=lambda r: r.created_at or r.updated_at or _EPOCH_FLOOR, reverse=True
                )
                return ReviewPage(reviews=reviews, using_fallback=True)
            return ReviewPage(reviews=[Review.from_document(d["id"], d) for d in docs])

        return await self._connection.execute_with_retry(_fetch, "get_concert_reviews")

    async def get_review(self, review_id: str) -> Review | None:
        doc = await self._connection.execute_with_retry(
            lambda: self._store.get(_REVIEWS, review_id), "get_review"
        )
        return Review.from_document(doc["id"], doc) if doc else None

    # -- Likes -----------------------------------------------------------------

    async def toggle_review_like(
        self,
        review_id: str,
        user_id: str,
        *,
        caller_id: object,
    ) -> LikeToggleResult:
        """Like the review if *user_id* has not, otherwise take the like back.

        Membership and counter change together in one transaction; the
        counter never drops below zero.

        Raises
        ------
        PermissionDeniedError
            If *caller_id* is neither *user_id* nor :data:`TRUSTED_CALLER`.
        NotFoundError
            If the review does not exist.
        """
        _require_caller(user_id, caller_id, "like reviews")
        if not review_id:
            raise InvalidInputError("Review id is required")

        async def _toggle(tx: ITransaction) -> LikeToggleResult:
            review = await tx.get(_REVIEWS, review_id)
            if review is None:
                msg = f"Review {review_id} not found"
                raise NotFoundError(msg)
            membership = await tx.get(_liked_by(review_id), user_id)
            current = max(0, int(review.get("likesCount", 0) or 0))
            if membership is not None:
                likes = max(0, current - 1)
                tx.delete(_liked_by(review_id), user_id)
                tx.update(_REVIEWS, review_id, {"likesCount": likes})
                return LikeToggleResult(action=LikeAction.UNLIKED, likes_count=likes)
            likes = current + 1
            tx.set(_liked_by(review_id), user_id, {"likedAt": now_timestamp()})
            tx.update(_REVIEWS, review_id, {"likesCount": likes})
            return LikeToggleResult(action=LikeAction.LIKED, likes_count=likes)

        result = await self._connection.execute_with_retry(
            lambda: self._store.run_transaction(_toggle), "toggle_review_like"
        )
        self._logger.info(
            "review_like_toggled",
            review_id=review_id,
            user_id=user_id,
            action=result.action.value,
            likes_count=result.likes_count,
        )
        if result.action == LikeAction.LIKED:
            self._analytics.log_review_liked(user_id, review_id)
        return result

    async def has_user_liked_review(self, review_id: str, user_id: str) -> bool:
        """Return whether *user_id* currently likes the review; ``False`` on read failure."""
        try:
            return await self._store.get(_liked_by(review_id), user_id) is not None
        except Exception as exc:
            self._logger.warning(
                "like_status_lookup_failed", review_id=review_id, user_id=user_id, error=str(exc)
            )
            return False

    # -- Comments --------------------------------------------------------------

    async def add_comment_to_review(
        self,
        review_id: str,
        user_id: str,
        text: str,
        *,
        caller_id: object,
    ) -> Comment:
        """Append a comment and bump ``commentsCount`` in one transaction.

        Raises
        ------
        InvalidInputError
            Empty or whitespace-only text (checked before any store call).
        PermissionDeniedError
            If *caller_id* is neither *user_id* nor :data:`TRUSTED_CALLER`.
        NotFoundError
            If the review does not exist.
        """
        _require_caller(user_id, caller_id, "comment")
        trimmed = (text or "").strip()
        if not review_id or not trimmed:
            raise InvalidInputError("Review id and comment text are required")

        async def _append(tx: ITransaction) -> Comment:
            review = await tx.get(_REVIEWS, review_id)
            if review is None:
                msg = f"Review {review_id} not found"
                raise NotFoundError(msg)
            comment_id = tx.create_id()
            data: dict[str, Any] = {
                "userRef": EntityRef.user(user_id).path,
                "text": trimmed,
                "createdAt": now_timestamp(),
            }
            tx.set(_comments(review_id), comment_id, data)
            count = max(0, int(review.get("commentsCount", 0) or 0)) + 1
            tx.update(_REVIEWS, review_id, {"commentsCount": count})
            return Comment.from_document(comment_id, data)

        comment = await self._connection.execute_with_retry(
            lambda: self._store.run_transaction(_append), "add_comment_to_review"
        )
        self._logger.info(
            "comment_posted", review_id=review_id, comment_id=comment.id, user_id=user_id
        )
        self._analytics.log_comment_posted(user_id, review_id)
        return comment

    async def get_review_comments(self, review_id: str) -> list[CommentView]:
        """Return the review's comments oldest first, each with its author's name."""
        docs = await self._connection.execute_with_retry(
            lambda: self._store.query(_comments(review_id), order_by=[OrderBy(field="createdAt")]),
            "get_review_comments",
        )
        comments = [Comment.from_document(d["id"], d) for d in docs]
        names = await throttled_gather([self._display_name(c.user_ref) for c in comments])
        return [
            CommentView(comment=c, user_display_name=name)
            for c, name in zip(comments, names)
        ]

    async def _display_name(self, ref: EntityRef) -> str:
        try:
            doc = await self._store.get(EntityKind.USERS.value, ref.id)
        except Exception as exc:
            self._logger.warning("comment_author_lookup_failed", user_id=ref.id, error=str(exc))
            return UNKNOWN_USER
        if doc is None:
            return UNKNOWN_USER
        return doc.get("displayName") or UNKNOWN_USER
