"""Pydantic models shared across storage, services and the CLI."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from npmx.utils.datetime import ensure_utc

SavedListKey = Literal["favorites", "watchlist"]
SAVED_LISTS: tuple[str, ...] = ("favorites", "watchlist")


def dedupe(items: list[str]) -> list[str]:
    """Drop repeated entries while keeping first-seen order."""

    return list(dict.fromkeys(items))


class PackageSuggestion(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["package"] = "package"
    value: str
    description: str | None = None


class RecentSuggestion(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["recent"] = "recent"
    value: str


class PopularSuggestion(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["popular"] = "popular"
    value: str


SuggestionItem = Annotated[
    Union[PackageSuggestion, RecentSuggestion, PopularSuggestion],
    Field(discriminator="type"),
]


class SuggestionSnapshot(BaseModel):
    query: str
    debounced: str
    items: list[SuggestionItem] = Field(default_factory=list)
    api_loading: bool = False

    @property
    def values(self) -> list[str]:
        return [item.value for item in self.items]


class SavedState(BaseModel):
    favorites: list[str] = Field(default_factory=list)
    watchlist: list[str] = Field(default_factory=list)

    @field_validator("favorites", "watchlist", mode="after")
    @classmethod
    def _dedupe(cls, value: list[str]) -> list[str]:
        return dedupe(value)

    def get_list(self, list_key: str) -> list[str]:
        return list(getattr(self, list_key))


class Collection(BaseModel):
    id: str
    name: str
    description: str = ""
    packages: list[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime
    is_public: bool = False

    @field_validator("packages", mode="after")
    @classmethod
    def _dedupe_packages(cls, value: list[str]) -> list[str]:
        return dedupe(value)

    @field_validator("created_at", "updated_at", mode="after")
    @classmethod
    def _as_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)


class RegistryPackage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str
    description: str | None = None
    version: str | None = None
    keywords: list[str] = Field(default_factory=list)


class SearchResult(BaseModel):
    model_config = ConfigDict(extra="ignore")

    package: RegistryPackage


class SearchPage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    objects: list[SearchResult] = Field(default_factory=list)
    total: int = 0

    @property
    def packages(self) -> list[RegistryPackage]:
        return [result.package for result in self.objects]


__all__ = [
    "SAVED_LISTS",
    "Collection",
    "PackageSuggestion",
    "PopularSuggestion",
    "RecentSuggestion",
    "RegistryPackage",
    "SavedListKey",
    "SavedState",
    "SearchPage",
    "SearchResult",
    "SuggestionItem",
    "SuggestionSnapshot",
    "dedupe",
]
