"""YAML configuration loader with environment variable overrides.

# ─── CONFIGURATION HIERARCHY ──────────────────────────────────────────
#
# Configuration is loaded in layers (later layers override earlier):
#
#   1. config/config.yaml  - Static defaults checked into the repo
#   2. .env file           - Local developer overrides (not committed)
#   3. Environment vars    - Set at deploy time
#
# load_config() reads the YAML file first, then deep-merges the
# environment-based values on top:
#   base = {"store": {"indexes": {...}}}
#   overrides = {"store": {"db_path": "data/encore.db"}}
#   result = {"store": {"indexes": {...}, "db_path": "data/encore.db"}}
# ──────────────────────────────────────────────────────────────────────
"""

from pathlib import Path

import yaml

from encore.config.settings import Settings
from encore.utils.errors import ConfigurationError

_VALID_INDEX_STATES = frozenset({"READY", "BUILDING"})


def load_config(path: str = "config/config.yaml", settings: Settings | None = None) -> dict:
    """Load YAML config and merge with environment-based Settings.

    Environment variables (via Settings) override YAML values where keys overlap.

    Args:
        path: Path to the YAML configuration file.
        settings: Pre-built settings; a fresh ``Settings()`` is read when omitted.

    Returns:
        Fully resolved configuration dictionary.
    """
    config_path = Path(path)
    if config_path.exists():
        with open(config_path) as f:
            yaml_config = yaml.safe_load(f) or {}
    else:
        yaml_config = {}

    settings = settings or Settings()
    env_overrides = {
        "app": {
            "host": settings.app_host,
            "port": settings.app_port,
            "env": settings.app_env,
        },
        "store": {
            "db_path": settings.store_db_path,
            "enforce_indexes": settings.store_enforce_indexes,
        },
        "retry": {
            "max_attempts": settings.retry_max_attempts,
            "base_delay_ms": settings.retry_base_delay_ms,
        },
        "analytics": {
            "backend": settings.get_analytics_backend(),
        },
        "logging": {
            "level": settings.log_level,
        },
    }

    _deep_merge(yaml_config, env_overrides)
    yaml_config.setdefault("store", {}).setdefault("indexes", {})
    _validate_indexes(yaml_config["store"]["indexes"])
    return yaml_config


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value


def _validate_indexes(indexes: dict) -> None:
    for name, state in indexes.items():
        if ":" not in name or "+" not in name:
            msg = f"Index name must look like 'collection:field+orderField', got {name!r}"
            raise ConfigurationError(msg)
        if str(state).upper() not in _VALID_INDEX_STATES:
            msg = f"Index {name!r} has invalid state {state!r}"
            raise ConfigurationError(msg)
