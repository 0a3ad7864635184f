"""Shared pytest fixtures for the Encore test suite.

Every store-backed fixture uses a fresh SQLite file under pytest's
``tmp_path``, so tests never touch ``data/`` and never share state.
The connection manager is built with ``base_delay=0`` so retry tests do
not sleep.
"""

from __future__ import annotations

from typing import Any

import pytest

from encore.interfaces.analytics_provider import IAnalyticsProvider
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


class RecordingAnalyticsProvider(IAnalyticsProvider):
    """Analytics sink that keeps every event in memory."""

    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, Any], str | None]] = []
        self.user_id: str | None = None

    def get_provider_name(self) -> str:
        return "recording"

    async def log_event(
        self,
        name: str,
        params: dict[str, Any] | None = None,
        user_id: str | None = None,
    ) -> None:
        self.events.append((name, dict(params or {}), user_id))

    async def set_user_id(self, user_id: str | None) -> None:
        self.user_id = user_id

    def names(self) -> list[str]:
        return [name for name, _, _ in self.events]


# ---------------------------------------------------------------------------
# Providers
# ---------------------------------------------------------------------------


@pytest.fixture
async def store(tmp_path):
    """An initialized document store on a temporary SQLite file."""
    s = SQLiteDocumentStore(db_path=tmp_path / "encore.db")
    await s.initialize()
    yield s
    await s.close()


@pytest.fixture
async def connection(store):
    """A connected manager with zero backoff."""
    manager = ConnectionManager(store, max_retries=3, base_delay=0)
    await manager.initialize()
    yield manager
    await manager.shutdown()


@pytest.fixture
def analytics_provider() -> RecordingAnalyticsProvider:
    return RecordingAnalyticsProvider()


@pytest.fixture
def analytics(analytics_provider) -> AnalyticsService:
    return AnalyticsService(analytics_provider)


@pytest.fixture
async def identity(tmp_path):
    provider = LocalIdentityProvider(
        db_path=tmp_path / "identity.db",
        token_secret="test-secret",
        token_ttl_seconds=3600,
    )
    await provider.initialize()
    return provider


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------


@pytest.fixture
def resolver(store, connection) -> EntityResolver:
    return EntityResolver(store, connection)


@pytest.fixture
def concert_service(store, connection, resolver, analytics) -> ConcertService:
    return ConcertService(store, connection, resolver, analytics)


@pytest.fixture
def review_service(store, connection, analytics) -> ReviewService:
    return ReviewService(store, connection, analytics)


@pytest.fixture
def social_graph(store, connection, analytics) -> SocialGraphService:
    return SocialGraphService(store, connection, analytics)


@pytest.fixture
def feed_service(store, connection, social_graph) -> FeedService:
    return FeedService(store, connection, social_graph, FeedJoiner(store, MemoryCacheProvider()))


@pytest.fixture
def search_service(store, connection, analytics) -> SearchService:
    return SearchService(store, connection, analytics)


@pytest.fixture
def account_service(store, identity, analytics) -> AccountService:
    return AccountService(store, identity, analytics)
