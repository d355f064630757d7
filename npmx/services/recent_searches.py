"""Bounded most-recent-first search history."""

from __future__ import annotations

from pydantic import TypeAdapter, ValidationError

from npmx.domain.models import dedupe
from npmx.services.storage import KeyValueStore

RECENT_SEARCHES_KEY = "npmx:recentSearches:v1"
DEFAULT_CAPACITY = 10

_terms_adapter = TypeAdapter(list[str])


class RecentSearchStore:
    def __init__(self, storage: KeyValueStore, capacity: int = DEFAULT_CAPACITY) -> None:
        self.storage = storage
        self.capacity = capacity

    def get_recent_searches(self) -> list[str]:
        raw = self.storage.read(RECENT_SEARCHES_KEY, [])
        try:
            terms = _terms_adapter.validate_python(raw)
        except ValidationError:
            return []
        return dedupe(terms)[: self.capacity]

    def add_recent_search(self, term: str) -> list[str]:
        term = term.strip()
        if not term:
            return self.get_recent_searches()
        with self.storage.locked(RECENT_SEARCHES_KEY):
            existing = [item for item in self.get_recent_searches() if item != term]
            updated = [term, *existing][: self.capacity]
            self.storage.write(RECENT_SEARCHES_KEY, updated)
        return updated

    def clear_recent_searches(self) -> None:
        self.storage.write(RECENT_SEARCHES_KEY, [])


__all__ = ["DEFAULT_CAPACITY", "RECENT_SEARCHES_KEY", "RecentSearchStore"]
