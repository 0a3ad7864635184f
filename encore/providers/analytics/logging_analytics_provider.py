"""Analytics sink that writes events to the structured log.

The default sink when no PostHog key is configured: every event becomes one
``analytics_event`` log line, which is enough to follow product activity in
development and in log-based pipelines.
"""

from __future__ import annotations

from typing import Any

import structlog

from encore.interfaces.analytics_provider import IAnalyticsProvider

logger = structlog.get_logger(logger_name=__name__)


class LoggingAnalyticsProvider(IAnalyticsProvider):
    """Writes analytics events through structlog."""

    def __init__(self) -> None:
        self._user_id: str | None = None

    def get_provider_name(self) -> str:
        return "log"

    async def log_event(
        self,
        name: str,
        params: dict[str, Any] | None = None,
        user_id: str | None = None,
    ) -> None:
        logger.info(
            "analytics_event",
            analytics_event=name,
            user_id=user_id or self._user_id,
            **(params or {}),
        )

    async def set_user_id(self, user_id: str | None) -> None:
        self._user_id = user_id
