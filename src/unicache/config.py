"""
Configuration management using pydantic-settings.

Process-wide defaults are loaded from environment variables (prefix
``UNICACHE_``) and .env files into Settings. Each cache instance validates
its own options into a CacheOptions model that falls back to those defaults.
"""

from __future__ import annotations

from collections.abc import Callable
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from unicache.exceptions import ConfigurationError


class Settings(BaseSettings):
    """Process-wide cache defaults loaded from environment variables.

    Optional:
        UNICACHE_DEFAULT_BACKEND: Backend used when a cache does not pick one
        UNICACHE_SAVE_PATH: Directory for file-backed caches
        UNICACHE_FILE_EXTENSION: Extension for persisted documents
        UNICACHE_SYNC_ON_WRITE: Write through on every mutation
        UNICACHE_SYNC_INTERVAL: Seconds between periodic flushes (0 disables)
        UNICACHE_SYNC_ON_CLOSE: Flush once more when a cache is closed
        UNICACHE_DEBUG: Verbose cache logging
        UNICACHE_LOG_LEVEL: Level for setup_logging(get_settings().LOG_LEVEL)
    """

    model_config = SettingsConfigDict(
        env_prefix="UNICACHE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    DEFAULT_BACKEND: str = Field(default="memory", description="Default backend name")
    SAVE_PATH: Path = Field(default=Path("./data"), description="File backend directory")
    FILE_EXTENSION: str = Field(default=".json", description="Persisted file extension")

    SYNC_ON_WRITE: bool = Field(default=False, description="Write-through on mutation")
    SYNC_INTERVAL: float = Field(
        default=0.0, ge=0.0, description="Periodic flush interval in seconds"
    )
    SYNC_ON_CLOSE: bool = Field(default=False, description="Flush when closing")

    DEBUG: bool = Field(default=False, description="Verbose cache logging")
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )

    @property
    def default_backend(self) -> str:
        """Get default backend name (normalized)."""
        return self.DEFAULT_BACKEND.strip().lower() or "memory"

    @property
    def save_path(self) -> Path:
        """Get file backend directory (lowercase alias)."""
        return self.SAVE_PATH

    @field_validator("FILE_EXTENSION")
    @classmethod
    def validate_file_extension(cls, v: str) -> str:
        """Ensure the extension starts with a dot."""
        return normalize_extension(v)


def normalize_extension(extension: str) -> str:
    """Return ``extension`` with a leading dot."""
    extension = extension.strip()
    if not extension:
        raise ValueError("file extension must not be empty")
    return extension if extension.startswith(".") else f".{extension}"


class CacheOptions(BaseModel):
    """Validated options for one cache instance.

    Fields left unset take their defaults from Settings. Callables cannot
    come from the environment and are only set programmatically.
    """

    model_config = ConfigDict(extra="forbid", arbitrary_types_allowed=True)

    cache_name: str = Field(..., min_length=1)
    cache_type: str = "memory"

    sync_on_write: bool = False
    sync_interval: float = Field(default=0.0, ge=0.0)
    sync_on_close: bool = False

    save_path: Path = Path("./data")
    file_extension: str = ".json"
    key_file_builder: Callable[[str], str] | None = None
    filename_to_key: Callable[[str], str | None] | None = None

    debug: bool = False
    log_function: Callable[[str], Any] | None = None

    @field_validator("cache_name")
    @classmethod
    def validate_cache_name(cls, v: str) -> str:
        """Reject names that are blank after stripping."""
        if not v.strip():
            raise ValueError("cache_name must be a non-empty string")
        return v

    @field_validator("cache_type", mode="before")
    @classmethod
    def normalize_cache_type(cls, v: Any) -> str:
        """Lowercase the backend name; None means memory."""
        if v is None:
            return "memory"
        return str(v).strip().lower() or "memory"

    @field_validator("sync_interval", mode="before")
    @classmethod
    def normalize_sync_interval(cls, v: Any) -> Any:
        """Treat a missing interval as disabled."""
        return 0.0 if v is None else v

    @field_validator("file_extension")
    @classmethod
    def validate_file_extension(cls, v: str) -> str:
        """Ensure the extension starts with a dot."""
        return normalize_extension(v)

    @classmethod
    def from_settings(
        cls,
        cache_name: str,
        settings: Settings | None = None,
        **overrides: Any,
    ) -> CacheOptions:
        """Build options for ``cache_name`` on top of the process defaults.

        Args:
            cache_name: Identifier of the cache.
            settings: Defaults to use; the cached Settings when omitted.
            **overrides: Explicit option values.

        Returns:
            Validated CacheOptions.

        Raises:
            ConfigurationError: If any option is invalid or unknown.
        """
        try:
            settings = settings or get_settings()
            values: dict[str, Any] = {
                "cache_type": settings.default_backend,
                "sync_on_write": settings.SYNC_ON_WRITE,
                "sync_interval": settings.SYNC_INTERVAL,
                "sync_on_close": settings.SYNC_ON_CLOSE,
                "save_path": settings.save_path,
                "file_extension": settings.FILE_EXTENSION,
                "debug": settings.DEBUG,
            }
            values.update(overrides)
            values["cache_name"] = cache_name
            return cls(**values)
        except ValidationError as e:
            raise ConfigurationError(
                "Invalid cache options",
                context={
                    "cache_name": cache_name,
                    "errors": [
                        ".".join(str(loc) for loc in err["loc"]) for err in e.errors()
                    ],
                },
            ) from e


@lru_cache
def get_settings() -> Settings:
    """Get cached settings singleton.

    Returns:
        Settings instance loaded from environment.

    Raises:
        ValidationError: If settings in the environment are invalid.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache (useful for testing)."""
    get_settings.cache_clear()
