"""Unit tests for factory functions in encore/main.py.

Tests the analytics provider selection, build_components assembly and the
create_app factory, without touching the default ``data/`` directory.
"""

from __future__ import annotations

from fastapi import FastAPI

from encore.config.settings import Settings
from encore.main import _build_analytics_provider, build_components, create_app
from encore.providers.analytics.logging_analytics_provider import LoggingAnalyticsProvider
from encore.providers.analytics.posthog_analytics_provider import PostHogAnalyticsProvider


def _settings(tmp_path, **overrides) -> Settings:
    """Build a Settings instance pointing at temporary databases."""
    defaults = {
        "_env_file": None,
        "store_db_path": str(tmp_path / "encore.db"),
        "identity_db_path": str(tmp_path / "identity.db"),
        "posthog_api_key": "",
        "app_env": "test",
    }
    defaults.update(overrides)
    return Settings(**defaults)


# ======================================================================
# _build_analytics_provider
# ======================================================================


class TestBuildAnalyticsProvider:
    def test_log_without_key(self, tmp_path) -> None:
        provider = _build_analytics_provider(_settings(tmp_path))

        assert isinstance(provider, LoggingAnalyticsProvider)

    def test_posthog_with_key(self, tmp_path) -> None:
        provider = _build_analytics_provider(_settings(tmp_path, posthog_api_key="phc_test"))

        assert isinstance(provider, PostHogAnalyticsProvider)
        assert provider.get_provider_name() == "posthog"


# ======================================================================
# build_components
# ======================================================================


class TestBuildComponents:
    def test_all_components_present(self, tmp_path) -> None:
        components = build_components(_settings(tmp_path), config={"store": {"indexes": {}}})

        assert set(components) == {
            "settings",
            "store",
            "connection_manager",
            "cache",
            "analytics",
            "identity",
            "entity_resolver",
            "account_service",
            "concert_service",
            "review_service",
            "social_graph_service",
            "feed_service",
            "search_service",
        }

    def test_nothing_is_written_before_startup(self, tmp_path) -> None:
        build_components(_settings(tmp_path), config={})

        assert not (tmp_path / "encore.db").exists()
        assert not (tmp_path / "identity.db").exists()

    def test_retry_policy_comes_from_settings(self, tmp_path) -> None:
        components = build_components(
            _settings(tmp_path, retry_max_attempts=5, retry_base_delay_ms=0), config={}
        )

        manager = components["connection_manager"]
        assert manager._max_retries == 5
        assert manager._base_delay == 0


# ======================================================================
# create_app
# ======================================================================


class TestCreateApp:
    def test_routes_are_mounted(self, tmp_path) -> None:
        app = create_app(components=build_components(_settings(tmp_path), config={}))

        assert isinstance(app, FastAPI)
        paths = {route.path for route in app.routes}
        assert "/api/v1/health" in paths
        assert "/api/v1/feed" in paths
        assert "/api/v1/concerts/{concert_id}/reviews" in paths
