"""Fire-and-forget analytics emission.

Services call :meth:`AnalyticsService.emit` after a successful write.  The
event is handed to the configured :class:`IAnalyticsProvider` on a
background task, so the write's caller never waits on the analytics sink
and never sees its failures; a failed delivery is logged and dropped.

Event names are the constants below.  Each ``log_*`` helper fixes the
parameter names for one event.
"""

from __future__ import annotations

import asyncio
from typing import Any

import structlog

from encore.interfaces.analytics_provider import IAnalyticsProvider

logger = structlog.get_logger(logger_name=__name__)

EVENT_LOGIN = "login"
EVENT_SIGN_UP = "sign_up"
EVENT_LOGOUT = "logout"
EVENT_CONCERT_LOGGED = "concert_logged"
EVENT_REVIEW_POSTED = "review_posted"
EVENT_REVIEW_LIKED = "review_liked"
EVENT_COMMENT_POSTED = "comment_posted"
EVENT_USER_FOLLOWED = "user_followed"
EVENT_USER_UNFOLLOWED = "user_unfollowed"
EVENT_SEARCH_PERFORMED = "search_performed"


class AnalyticsService:
    """Schedules analytics events without blocking the caller.

    Parameters
    ----------
    provider:
        The sink events are delivered to.  ``None`` disables analytics;
        every emit is then a no-op.
    """

    def __init__(self, provider: IAnalyticsProvider | None = None) -> None:
        self._provider = provider
        self._pending: set[asyncio.Task[None]] = set()

    @property
    def enabled(self) -> bool:
        return self._provider is not None

    @property
    def provider_name(self) -> str:
        return self._provider.get_provider_name() if self._provider is not None else "disabled"

    def emit(self, name: str, params: dict[str, Any] | None = None, user_id: str | None = None) -> None:
        """Schedule delivery of one event and return immediately."""
        if self._provider is None:
            return
        task = asyncio.create_task(
            self._deliver(self._provider, name, dict(params or {}), user_id)
        )
        # Keep a strong reference until the task finishes.
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    @staticmethod
    async def _deliver(
        provider: IAnalyticsProvider,
        name: str,
        params: dict[str, Any],
        user_id: str | None,
    ) -> None:
        try:
            await provider.log_event(name, params, user_id=user_id)
        except Exception as exc:
            logger.warning(
                "analytics_event_failed",
                analytics_event=name,
                provider=provider.get_provider_name(),
                error=str(exc),
            )

    async def set_user_id(self, user_id: str | None) -> None:
        if self._provider is None:
            return
        try:
            await self._provider.set_user_id(user_id)
        except Exception as exc:
            logger.warning("analytics_set_user_failed", error=str(exc))

    async def flush(self) -> None:
        """Wait until every scheduled event has been delivered or dropped."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def shutdown(self) -> None:
        await self.flush()
        if self._provider is not None:
            try:
                await self._provider.shutdown()
            except Exception as exc:
                logger.warning("analytics_shutdown_failed", error=str(exc))

    # -- Typed helpers ---------------------------------------------------------

    def log_login(self, user_id: str, method: str = "email") -> None:
        self.emit(EVENT_LOGIN, {"method": method}, user_id=user_id)

    def log_sign_up(self, user_id: str, method: str = "email") -> None:
        self.emit(EVENT_SIGN_UP, {"method": method}, user_id=user_id)

    def log_logout(self, user_id: str) -> None:
        self.emit(EVENT_LOGOUT, {}, user_id=user_id)

    def log_concert_logged(self, user_id: str, concert_id: str, artist_name: str, venue_name: str) -> None:
        self.emit(
            EVENT_CONCERT_LOGGED,
            {"concert_id": concert_id, "artist_name": artist_name, "venue_name": venue_name},
            user_id=user_id,
        )

    def log_review_posted(self, user_id: str, concert_id: str, rating: int) -> None:
        self.emit(EVENT_REVIEW_POSTED, {"concert_id": concert_id, "rating": rating}, user_id=user_id)

    def log_review_liked(self, user_id: str, review_id: str) -> None:
        self.emit(EVENT_REVIEW_LIKED, {"review_id": review_id}, user_id=user_id)

    def log_comment_posted(self, user_id: str, review_id: str) -> None:
        self.emit(EVENT_COMMENT_POSTED, {"review_id": review_id}, user_id=user_id)

    def log_user_followed(self, user_id: str, target_user_id: str) -> None:
        self.emit(EVENT_USER_FOLLOWED, {"target_user_id": target_user_id}, user_id=user_id)

    def log_user_unfollowed(self, user_id: str, target_user_id: str) -> None:
        self.emit(EVENT_USER_UNFOLLOWED, {"target_user_id": target_user_id}, user_id=user_id)

    def log_search_performed(self, search_term: str, results_count: int, scope: str) -> None:
        self.emit(
            EVENT_SEARCH_PERFORMED,
            {"search_term": search_term, "results_count": results_count, "scope": scope},
        )
