"""Runtime configuration based on environment variables."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import AnyHttpUrl, BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_POPULAR_PACKAGES = [
    "react",
    "vue",
    "angular",
    "next",
    "express",
    "typescript",
    "lodash",
    "axios",
    "tailwindcss",
    "vite",
    "webpack",
    "eslint",
    "jest",
    "moment",
    "date-fns",
]


class StorageSettings(BaseModel):
    backend: Literal["memory", "file", "sql", "none"] = "file"
    path: Path = Field(
        default=Path.home() / ".npmx" / "state.json",
        description="JSON file used by the file backend.",
    )
    dsn: str = Field(
        default="sqlite:///npmx.db",
        description="SQLAlchemy DSN used by the sql backend.",
    )
    echo: bool = False


class RegistrySettings(BaseModel):
    base_url: AnyHttpUrl = Field(default="https://registry.npmjs.org")
    request_timeout_seconds: int = Field(default=10, ge=1, le=60)
    max_attempts: int = Field(default=3, ge=1, le=10)
    base_delay_seconds: float = Field(default=0.25, ge=0)
    jitter_seconds: float = Field(default=0.15, ge=0)


class SuggestionSettings(BaseModel):
    debounce_ms: int = Field(default=150, ge=0)
    stale_seconds: float = Field(default=120.0, ge=0)
    cache_maxsize: int = Field(default=256, ge=1)
    min_remote_query_length: int = Field(default=2, ge=1)
    page_size: int = Field(default=8, ge=1, le=250)
    max_items: int = Field(default=12, ge=1)
    recent_limit_empty: int = Field(default=6, ge=0)
    popular_limit_empty: int = Field(default=8, ge=0)
    recent_limit_filtered: int = Field(default=4, ge=0)
    popular_limit_filtered: int = Field(default=6, ge=0)


class RecentSearchSettings(BaseModel):
    capacity: int = Field(default=10, ge=1)


class NpmxSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="NPMX_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__"
    )

    environment: Literal["dev", "staging", "prod"] = "dev"
    log_level: str = "INFO"

    storage: StorageSettings = Field(default_factory=StorageSettings)
    registry: RegistrySettings = Field(default_factory=RegistrySettings)
    suggestions: SuggestionSettings = Field(default_factory=SuggestionSettings)
    recent_searches: RecentSearchSettings = Field(default_factory=RecentSearchSettings)
    popular_packages: list[str] = Field(default_factory=lambda: list(DEFAULT_POPULAR_PACKAGES))

    @field_validator("popular_packages", mode="after")
    @classmethod
    def _strip_popular(cls, value: list[str]) -> list[str]:
        cleaned = [item.strip() for item in value]
        return [item for item in cleaned if item]


@lru_cache
def get_settings() -> NpmxSettings:
    """Return cached settings instance."""

    return NpmxSettings()


__all__ = [
    "DEFAULT_POPULAR_PACKAGES",
    "NpmxSettings",
    "RecentSearchSettings",
    "RegistrySettings",
    "StorageSettings",
    "SuggestionSettings",
    "get_settings",
]
