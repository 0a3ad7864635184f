"""Abstract base class for product-analytics sinks.

Analytics is a fire-and-forget side effect of successful writes (a concert
logged, a review posted, a user followed).  Providers only have to deliver
an event name with flat parameters; the :class:`AnalyticsService` takes care
of running them off the request path and of swallowing their failures.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class IAnalyticsProvider(ABC):
    """Contract for analytics event sinks."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier for this sink (e.g. ``"posthog"``)."""

    @abstractmethod
    async def log_event(
        self,
        name: str,
        params: dict[str, Any] | None = None,
        user_id: str | None = None,
    ) -> None:
        """Record one event.

        Parameters
        ----------
        name:
            snake_case event name, e.g. ``"concert_logged"``.
        params:
            Flat event properties.
        user_id:
            The acting user, when known.  Falls back to the id set with
            :meth:`set_user_id`.
        """

    @abstractmethod
    async def set_user_id(self, user_id: str | None) -> None:
        """Associate subsequent events with *user_id* (``None`` clears it)."""

    async def shutdown(self) -> None:
        """Flush buffered events.  Default: nothing buffered."""
