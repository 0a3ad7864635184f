"""Configuration module - exports Settings and load_config."""

from encore.config.loader import load_config
from encore.config.settings import Settings

__all__ = ["Settings", "load_config"]
