"""Configuration loading for portalsync.

Usage:
    from portalsync.config import get_settings

    settings = get_settings()
    window = settings.undo.default_duration_ms
"""

from functools import lru_cache

from portalsync.config.loader import load_config
from portalsync.config.settings import Settings


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Settings from the config directory and environment, loaded once.

    `reload_settings()` picks up changed files or variables.
    """
    return Settings.from_toml(load_config())


def reload_settings() -> Settings:
    get_settings.cache_clear()
    return get_settings()


__all__ = ["Settings", "get_settings", "reload_settings"]
