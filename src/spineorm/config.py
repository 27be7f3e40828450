"""
Centralized settings for spine-orm.

All fields can be set via ``SPINEORM_*`` environment variables (e.g.
``SPINEORM_DATABASE_URL=sqlite:///data/app.db``) or through a ``.env`` file.

Tags:
    spine-orm, configuration, settings, pydantic
"""

from __future__ import annotations

from enum import Enum

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StartMode(str, Enum):
    """What the environment does with tables when entities are initialized."""

    CREATE_IF_NOT_EXISTS = "create_if_not_exists"
    DROP_AND_CREATE = "drop_and_create"
    AS_IT_IS = "as_it_is"


class OrmSettings(BaseSettings):
    """spine-orm configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SPINEORM_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Database ─────────────────────────────────────────────────
    database_url: str = Field(default="memory", description="memory, sqlite:///path or a file path")
    start_mode: StartMode = Field(default=StartMode.CREATE_IF_NOT_EXISTS)
    enforce_foreign_keys: bool = Field(default=True)
    case_sensitive_like: bool = Field(default=True)

    # ── Logging ──────────────────────────────────────────────────
    formatted_sql: bool = Field(default=False, description="Keep newlines in logged SQL")
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="console")

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.upper()

    @field_validator("log_format")
    @classmethod
    def _known_format(cls, value: str) -> str:
        if value not in ("json", "console"):
            raise ValueError(f"log_format must be 'json' or 'console', got {value!r}")
        return value


# ── Settings factory with caching ────────────────────────────────────────

_settings_cache: dict[str, OrmSettings] = {}


def get_settings(*, _force_reload: bool = False) -> OrmSettings:
    """Load, validate, and cache an :class:`OrmSettings` instance."""
    if not _force_reload and "default" in _settings_cache:
        return _settings_cache["default"]
    settings = OrmSettings()
    _settings_cache["default"] = settings
    return settings


def clear_settings_cache() -> None:
    """Clear the settings cache (primarily for testing)."""
    _settings_cache.clear()


__all__ = [
    "OrmSettings",
    "StartMode",
    "get_settings",
    "clear_settings_cache",
]
