"""Application settings loaded from environment variables via pydantic-settings.

# ─── HOW SETTINGS WORK ────────────────────────────────────────────────
#
# pydantic-settings reads configuration from TWO sources (priority order):
#
#   1. **Environment variables** - e.g., STORE_DB_PATH=/var/lib/encore.db
#   2. **.env file** - key=value lines in the project root .env file
#
# Field ``retry_max_attempts`` maps to env var ``RETRY_MAX_ATTEMPTS``.
# Defaults apply when neither source sets a value.
#
# SECURITY: ``identity_token_secret`` must be overridden outside
# development; the default is only fit for local runs and tests.
# ──────────────────────────────────────────────────────────────────────
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Encore application settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # === Persistent store ===
    store_db_path: str = "data/encore.db"
    # When True, ordered queries need a declared composite index (see
    # config/config.yaml ``store.indexes``), like a managed document backend.
    store_enforce_indexes: bool = False

    # === Connection manager retry policy ===
    retry_max_attempts: int = 3
    retry_base_delay_ms: int = 1000

    # === Identity (local stand-in for the external identity provider) ===
    identity_db_path: str = "data/identity.db"
    identity_token_secret: str = "dev-only-change-me"
    identity_token_ttl_seconds: int = 7 * 24 * 3600

    # === Feed join cache ===
    cache_max_size: int = 2048
    cache_ttl_seconds: int = 60

    # === Analytics ===
    # Empty string = "not configured" → events go to the structured log.
    posthog_api_key: str = ""
    posthog_host: str = "https://us.i.posthog.com"

    # === App Config ===
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_env: str = "development"
    log_level: str = "INFO"

    @property
    def retry_base_delay_seconds(self) -> float:
        return self.retry_base_delay_ms / 1000.0

    def get_analytics_backend(self) -> str:
        """Return the analytics backend name implied by the configured keys."""
        if self.posthog_api_key:
            return "posthog"
        return "log"
