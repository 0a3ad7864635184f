"""Follow graph: ``users/{followerId}/following/{followeeId}`` edges.

Following is a non-critical social affordance.  Every public method runs
under the connection manager's retry policy and converts any remaining
failure into its safe default (``False`` or ``[]``) at the method
boundary, so callers never handle an exception from here.
"""

from __future__ import annotations

from encore.interfaces.document_store import IDocumentStore
from encore.models.refs import EntityKind
from encore.services.analytics_service import AnalyticsService
from encore.services.connection_manager import ConnectionManager
from encore.utils.clock import now_timestamp
from encore.utils.errors import InvalidInputError
from encore.utils.logging import get_logger
from encore.utils.safe import safe_call


def following_collection(user_id: str) -> str:
    return f"{EntityKind.USERS.value}/{user_id}/following"


class SocialGraphService:
    """Follow / unfollow / is-following over per-user edge collections."""

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

    async def follow_user(self, follower_id: str, followee_id: str) -> bool:
        """Create the follow edge.  Re-following is idempotent; following yourself is refused."""
        ok = await safe_call(
            self._connection.execute_with_retry(
                lambda: self._follow(follower_id, followee_id), "follow_user"
            ),
            False,
            logger=self._logger,
            event="follow_user_failed",
            follower_id=follower_id,
            followee_id=followee_id,
        )
        if ok:
            self._analytics.log_user_followed(follower_id, followee_id)
        return ok

    async def unfollow_user(self, follower_id: str, followee_id: str) -> bool:
        ok = await safe_call(
            self._connection.execute_with_retry(
                lambda: self._unfollow(follower_id, followee_id), "unfollow_user"
            ),
            False,
            logger=self._logger,
            event="unfollow_user_failed",
            follower_id=follower_id,
            followee_id=followee_id,
        )
        if ok:
            self._analytics.log_user_unfollowed(follower_id, followee_id)
        return ok

    async def is_following(self, follower_id: str, followee_id: str) -> bool:
        return await safe_call(
            self._connection.execute_with_retry(
                lambda: self._edge_exists(follower_id, followee_id), "is_following"
            ),
            False,
            logger=self._logger,
            event="is_following_failed",
            follower_id=follower_id,
            followee_id=followee_id,
        )

    async def get_following_users(self, user_id: str) -> list[str]:
        """Return the ids of every user *user_id* follows (``[]`` on failure)."""
        return await safe_call(
            self.fetch_following(user_id),
            [],
            logger=self._logger,
            event="get_following_failed",
            user_id=user_id,
        )

    async def fetch_following(self, user_id: str) -> list[str]:
        """Raising variant of :meth:`get_following_users`, for composed pipelines."""
        if not user_id:
            raise InvalidInputError("User id is required")
        return await self._connection.execute_with_retry(
            lambda: self._store.list_ids(following_collection(user_id)),
            "get_following_users",
        )

    # -- Raising cores ---------------------------------------------------------

    async def _follow(self, follower_id: str, followee_id: str) -> bool:
        _validate_pair(follower_id, followee_id)
        await self._store.set(
            following_collection(follower_id), followee_id, {"followedAt": now_timestamp()}
        )
        self._logger.info("user_followed", follower_id=follower_id, followee_id=followee_id)
        return True

    async def _unfollow(self, follower_id: str, followee_id: str) -> bool:
        _validate_pair(follower_id, followee_id)
        await self._store.delete(following_collection(follower_id), followee_id)
        self._logger.info("user_unfollowed", follower_id=follower_id, followee_id=followee_id)
        return True

    async def _edge_exists(self, follower_id: str, followee_id: str) -> bool:
        _validate_pair(follower_id, followee_id)
        return await self._store.get(following_collection(follower_id), followee_id) is not None


def _validate_pair(follower_id: str, followee_id: str) -> None:
    if not follower_id or not followee_id:
        raise InvalidInputError("Both user ids are required")
    if follower_id == followee_id:
        raise InvalidInputError("Cannot follow yourself")
