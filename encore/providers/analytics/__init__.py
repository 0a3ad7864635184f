"""Analytics providers.

LoggingAnalyticsProvider writes events to the structured log and is the
default.  PostHogAnalyticsProvider is selected when POSTHOG_API_KEY is set.
"""

from encore.providers.analytics.logging_analytics_provider import LoggingAnalyticsProvider
from encore.providers.analytics.posthog_analytics_provider import PostHogAnalyticsProvider

__all__ = ["LoggingAnalyticsProvider", "PostHogAnalyticsProvider"]
