"""Layered TOML loading for portalsync settings.

Layers, later ones winning key by key:
    config/default.toml
    config/{PORTALSYNC_ENV}.toml

Relative queue file paths are resolved against the config directory, so
the queue file location does not depend on the working directory.
"""

import os
import tomllib
from functools import reduce
from pathlib import Path
from typing import Any

CONFIG_DIR_ENV = "PORTALSYNC_CONFIG_DIR"
ENVIRONMENT_ENV = "PORTALSYNC_ENV"
DEFAULT_ENVIRONMENT = "development"

# Directories searched for config/: the working directory and its parents
SEARCH_DEPTH = 5


def get_config_dir() -> Path:
    """Locate the config directory.

    Raises:
        FileNotFoundError: If PORTALSYNC_CONFIG_DIR names a missing directory
    """
    configured = os.environ.get(CONFIG_DIR_ENV)
    if configured:
        path = Path(configured)
        if not path.is_dir():
            raise FileNotFoundError(f"Config directory not found: {configured}")
        return path

    cwd = Path.cwd()
    for directory in [cwd, *cwd.parents][:SEARCH_DEPTH]:
        candidate = directory / "config"
        if candidate.is_dir():
            return candidate
    return Path("config")


def get_environment() -> str:
    return os.environ.get(ENVIRONMENT_ENV, DEFAULT_ENVIRONMENT)


def load_toml(file_path: Path) -> dict[str, Any]:
    """Parse one TOML file.

    Raises:
        FileNotFoundError: If the file doesn't exist
        tomllib.TOMLDecodeError: If the TOML syntax is invalid
    """
    if not file_path.is_file():
        raise FileNotFoundError(f"Configuration file not found: {file_path}")
    return tomllib.loads(file_path.read_text(encoding="utf-8"))


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Merge override into a copy of base; nested tables merge recursively."""
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def config_layers(config_dir: Path, env: str) -> list[Path]:
    """Existing TOML files for an environment, lowest precedence first."""
    candidates = [config_dir / "default.toml", config_dir / f"{env}.toml"]
    return [path for path in candidates if path.is_file()]


def _resolve_queue_path(config: dict[str, Any], config_dir: Path) -> dict[str, Any]:
    queue = config.get("queue")
    if not isinstance(queue, dict) or not queue.get("file_path"):
        return config
    file_path = Path(queue["file_path"])
    if file_path.is_absolute():
        return config
    return deep_merge(config, {"queue": {"file_path": str(config_dir / file_path)}})


def load_config(config_dir: Path | None = None, env: str | None = None) -> dict[str, Any]:
    """Merge every config layer into one dict.

    Missing files are skipped, so an empty config directory yields {} and
    the model defaults apply.
    """
    config_dir = config_dir or get_config_dir()
    layers = [load_toml(path) for path in config_layers(config_dir, env or get_environment())]
    config = reduce(deep_merge, layers, {})
    return _resolve_queue_path(config, config_dir)
