"""Unit tests for Settings and the YAML config loader."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from encore.config import Settings, load_config
from encore.utils.errors import ConfigurationError

_SHIPPED_CONFIG = Path(__file__).resolve().parents[2] / "config" / "config.yaml"


def _write(tmp_path, data: dict) -> str:
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump(data))
    return str(path)


def test_settings_defaults(monkeypatch):
    monkeypatch.delenv("POSTHOG_API_KEY", raising=False)
    settings = Settings(_env_file=None)

    assert settings.retry_max_attempts == 3
    assert settings.retry_base_delay_seconds == 1.0
    assert settings.get_analytics_backend() == "log"


def test_settings_read_environment(monkeypatch):
    monkeypatch.setenv("RETRY_BASE_DELAY_MS", "250")
    monkeypatch.setenv("POSTHOG_API_KEY", "phc_test")

    settings = Settings(_env_file=None)

    assert settings.retry_base_delay_seconds == 0.25
    assert settings.get_analytics_backend() == "posthog"


def test_load_config_merges_settings_over_yaml(tmp_path):
    path = _write(
        tmp_path,
        {
            "store": {"db_path": "ignored.db", "indexes": {"reviews:concertRef+createdAt": "BUILDING"}},
            "feed": {"max_items": 30},
        },
    )
    settings = Settings(_env_file=None, store_db_path="from-env.db")

    config = load_config(path, settings)

    assert config["store"]["db_path"] == "from-env.db"
    assert config["store"]["indexes"] == {"reviews:concertRef+createdAt": "BUILDING"}
    assert config["feed"]["max_items"] == 30
    assert config["retry"]["max_attempts"] == 3


def test_missing_file_yields_settings_only(tmp_path):
    config = load_config(str(tmp_path / "absent.yaml"), Settings(_env_file=None))

    assert config["store"]["indexes"] == {}
    assert config["app"]["port"] == 8000


@pytest.mark.parametrize(
    "indexes",
    [{"reviews-createdAt": "READY"}, {"reviews:concertRef+createdAt": "DELETED"}],
)
def test_invalid_index_declarations_are_rejected(tmp_path, indexes):
    path = _write(tmp_path, {"store": {"indexes": indexes}})

    with pytest.raises(ConfigurationError):
        load_config(path, Settings(_env_file=None))


def test_shipped_config_is_valid():
    config = load_config(str(_SHIPPED_CONFIG), Settings(_env_file=None))

    assert "reviews:concertRef+createdAt" in config["store"]["indexes"]
