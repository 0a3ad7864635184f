"""PostHog analytics sink.

Forwards events to PostHog with the official ``posthog`` SDK.  The SDK
queues events and ships them from its own consumer thread; ``capture`` is
still a synchronous call, so it runs via ``asyncio.to_thread`` to keep the
event loop free.  The client is created lazily on first use.
"""

from __future__ import annotations

import asyncio
from typing import Any

from posthog import Posthog

from encore.interfaces.analytics_provider import IAnalyticsProvider
from encore.utils.errors import ConfigurationError
from encore.utils.logging import get_logger

# Events captured before a user is known are attributed to this id.
_ANONYMOUS_ID = "anonymous"


class PostHogAnalyticsProvider(IAnalyticsProvider):
    """Analytics sink backed by PostHog."""

    def __init__(self, api_key: str, host: str = "https://us.i.posthog.com") -> None:
        if not api_key:
            msg = "PostHog analytics requires POSTHOG_API_KEY"
            raise ConfigurationError(msg, provider_name="posthog")
        self._api_key = api_key
        self._host = host
        self._client: Posthog | None = None
        self._user_id: str | None = None
        self._logger = get_logger(__name__)

    def get_provider_name(self) -> str:
        return "posthog"

    def _get_client(self) -> Posthog:
        if self._client is None:
            self._client = Posthog(self._api_key, host=self._host)
        return self._client

    def _capture_sync(self, name: str, params: dict[str, Any], distinct_id: str) -> None:
        self._get_client().capture(
            distinct_id=distinct_id,
            event=name,
            properties=params,
        )

    async def log_event(
        self,
        name: str,
        params: dict[str, Any] | None = None,
        user_id: str | None = None,
    ) -> None:
        distinct_id = user_id or self._user_id or _ANONYMOUS_ID
        await asyncio.to_thread(self._capture_sync, name, dict(params or {}), distinct_id)
        self._logger.debug("posthog_event_captured", analytics_event=name)

    async def set_user_id(self, user_id: str | None) -> None:
        self._user_id = user_id

    async def shutdown(self) -> None:
        if self._client is not None:
            await asyncio.to_thread(self._client.shutdown)
            self._client = None
