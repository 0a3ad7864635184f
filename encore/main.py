"""Encore FastAPI application entry point.

Wires providers and services together, stores them on ``app.state`` and
mounts the API router.  Configuration comes from ``.env`` / the environment
(:class:`~encore.config.settings.Settings`) merged with
``config/config.yaml``.

# ─── COMPONENT GRAPH ──────────────────────────────────────────────────
#
#   SQLiteDocumentStore ──► ConnectionManager ──► EntityResolver
#          │                      │                     │
#          │                      ├──► ConcertService ◄─┘
#          │                      ├──► ReviewService
#          │                      ├──► SocialGraphService ──► FeedService
#          │                      └──► SearchService            ▲
#          │                                                    │
#          └──► FeedJoiner (+ MemoryCacheProvider) ─────────────┘
#
#   LocalIdentityProvider ──► AccountService
#   Logging / PostHog analytics provider ──► AnalyticsService (all services)
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

import structlog
import uvicorn
from fastapi import FastAPI

from encore.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from encore.api.routes import router as api_router
from encore.config.loader import load_config
from encore.config.settings import Settings
from encore.interfaces.analytics_provider import IAnalyticsProvider
from encore.providers.analytics.logging_analytics_provider import LoggingAnalyticsProvider
from encore.providers.analytics.posthog_analytics_provider import PostHogAnalyticsProvider
from encore.providers.cache.memory_cache import MemoryCacheProvider
from encore.providers.identity.local_identity_provider import LocalIdentityProvider
from encore.providers.store.sqlite_document_store import SQLiteDocumentStore
from encore.services.account_service import AccountService
from encore.services.analytics_service import AnalyticsService
from encore.services.concert_service import ConcertService
from encore.services.connection_manager import ConnectionManager
from encore.services.entity_resolver import EntityResolver
from encore.services.feed_service import FeedJoiner, FeedService
from encore.services.review_service import ReviewService
from encore.services.search_service import SearchService
from encore.services.social_graph_service import SocialGraphService
from encore.utils.logging import configure_logging, get_logger

# ---------------------------------------------------------------------------
# Module-level settings & logging
# ---------------------------------------------------------------------------

settings = Settings()

configure_logging(
    log_level=settings.log_level,
    json_output=(settings.app_env == "production"),
)
_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Provider selection
# ---------------------------------------------------------------------------


def _build_analytics_provider(app_settings: Settings) -> IAnalyticsProvider:
    """PostHog when an API key is configured, the structured log otherwise."""
    if app_settings.get_analytics_backend() == "posthog":
        return PostHogAnalyticsProvider(
            api_key=app_settings.posthog_api_key,
            host=app_settings.posthog_host,
        )
    return LoggingAnalyticsProvider()


# ---------------------------------------------------------------------------
# Full DI assembly
# ---------------------------------------------------------------------------


def build_components(
    app_settings: Settings,
    config: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Instantiate every provider and service.

    Returns a flat dict of named components to be stored on ``app.state``.
    Nothing here touches the disk; :func:`_lifespan` initializes the
    store, the identity provider and the connection manager.
    """
    config = config if config is not None else load_config(settings=app_settings)
    store_config = config.get("store", {})

    store = SQLiteDocumentStore(
        db_path=app_settings.store_db_path,
        indexes=store_config.get("indexes", {}),
        enforce_indexes=app_settings.store_enforce_indexes,
    )
    connection_manager = ConnectionManager(
        store,
        max_retries=app_settings.retry_max_attempts,
        base_delay=app_settings.retry_base_delay_seconds,
    )
    cache = MemoryCacheProvider(
        max_size=app_settings.cache_max_size,
        ttl=app_settings.cache_ttl_seconds,
    )
    analytics = AnalyticsService(_build_analytics_provider(app_settings))
    identity = LocalIdentityProvider(
        db_path=app_settings.identity_db_path,
        token_secret=app_settings.identity_token_secret,
        token_ttl_seconds=app_settings.identity_token_ttl_seconds,
    )

    resolver = EntityResolver(store, connection_manager)
    social_graph = SocialGraphService(store, connection_manager, analytics)

    return {
        "settings": app_settings,
        "store": store,
        "connection_manager": connection_manager,
        "cache": cache,
        "analytics": analytics,
        "identity": identity,
        "entity_resolver": resolver,
        "account_service": AccountService(store, identity, analytics),
        "concert_service": ConcertService(store, connection_manager, resolver, analytics),
        "review_service": ReviewService(store, connection_manager, analytics),
        "social_graph_service": social_graph,
        "feed_service": FeedService(
            store, connection_manager, social_graph, FeedJoiner(store, cache)
        ),
        "search_service": SearchService(store, connection_manager, analytics),
    }


# ---------------------------------------------------------------------------
# Application lifespan (startup / shutdown)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def _lifespan(application: FastAPI):  # noqa: ANN201
    """Initialize the store, identity and connection on startup; release them on shutdown."""
    components: dict[str, Any] = getattr(application.state, "components", None) or build_components(settings)
    for key, value in components.items():
        setattr(application.state, key, value)

    await components["store"].initialize()
    await components["identity"].initialize()
    connection_manager: ConnectionManager = components["connection_manager"]
    await connection_manager.initialize()

    _logger.info(
        "app_startup",
        version="0.1.0",
        environment=components["settings"].app_env,
        store=components["store"].get_provider_name(),
        analytics=components["analytics"].provider_name,
        connection_state=connection_manager.state.value,
    )

    yield

    await connection_manager.shutdown()
    await components["analytics"].shutdown()
    await components["store"].close()
    _logger.info("app_shutdown")


# ---------------------------------------------------------------------------
# FastAPI application factory
# ---------------------------------------------------------------------------


def create_app(components: dict[str, Any] | None = None) -> FastAPI:
    """Build and configure the FastAPI application.

    *components* replaces :func:`build_components` output, which is how the
    tests point the app at temporary databases.
    """
    application = FastAPI(
        title="Encore API",
        version="0.1.0",
        description=(
            "Log the concerts you attended, review them, follow other fans "
            "and read their activity."
        ),
        lifespan=_lifespan,
    )
    application.state.components = components

    # Last added = first executed.
    application.add_middleware(ErrorHandlingMiddleware)
    application.add_middleware(RequestLoggingMiddleware)
    configure_cors(application)

    application.include_router(api_router)
    return application


app = create_app()

# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------


def run() -> None:
    uvicorn.run(
        "encore.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=(settings.app_env == "development"),
    )


if __name__ == "__main__":
    run()
