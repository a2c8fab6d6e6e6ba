"""Root settings model for portalsync configuration."""

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Literal

from pydantic import Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from portalsync.config.models import (
    ObservabilityConfig,
    QueueConfig,
    RateLimitConfig,
    RemoteConfig,
    UndoConfig,
)

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

# Merged TOML visible to the settings source while Settings.from_toml runs
_toml_layer: ContextVar[dict[str, Any]] = ContextVar("portalsync_toml_layer", default={})


@contextmanager
def _with_toml(config: dict[str, Any]) -> Iterator[None]:
    token = _toml_layer.set(config)
    try:
        yield
    finally:
        _toml_layer.reset(token)


class TomlLayerSource(PydanticBaseSettingsSource):
    """Settings source reading top-level sections from the merged TOML."""

    def get_field_value(
        self, field: Any, field_name: str  # noqa: ARG002
    ) -> tuple[Any, str, bool]:
        value = _toml_layer.get().get(field_name)
        return value, field_name, value is not None

    def __call__(self) -> dict[str, Any]:
        return {
            name: value
            for name in self.settings_cls.model_fields
            if (value := _toml_layer.get().get(name)) is not None
        }


class Settings(BaseSettings):
    """Root configuration object.

    Precedence, highest first:
    1. Constructor arguments
    2. PORTALSYNC_* environment variables (`__` separates nested keys)
    3. config/{PORTALSYNC_ENV}.toml, then config/default.toml
    4. Model defaults

    Settings() alone skips the TOML layer; use from_toml() or
    get_settings() to include it.
    """

    model_config = SettingsConfigDict(
        env_prefix="PORTALSYNC_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = Field(default="portalsync", description="Application name for logging")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: LogLevel = Field(default="INFO", description="Logging level")

    queue: QueueConfig = Field(default_factory=QueueConfig)
    undo: UndoConfig = Field(default_factory=UndoConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    remote: RemoteConfig = Field(default_factory=RemoteConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)

    @classmethod
    def from_toml(cls, config: dict[str, Any], **overrides: Any) -> "Settings":
        """Build settings with a merged TOML dict as the file layer."""
        with _with_toml(config):
            return cls(**overrides)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        file_secret_settings: PydanticBaseSettingsSource,  # noqa: ARG003
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (init_settings, env_settings, TomlLayerSource(settings_cls))
