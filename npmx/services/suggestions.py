"""Search-box suggestions merged from the registry, history and popular packages.

The engine follows one query through ``idle -> debouncing -> fetching ->
settled``. Every keystroke goes through :meth:`SuggestionEngine.update`,
which answers immediately from the local sources and restarts the debounce
timer. When the timer fires the query is submitted to the lookup under a
new request token; a response is applied only while its token is still the
latest one, so a slow answer for an old query can never replace the
results of a newer one.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Sequence
from typing import Callable

from cachetools import TTLCache

from npmx.config import SuggestionSettings
from npmx.domain.models import (
    PackageSuggestion,
    PopularSuggestion,
    RecentSuggestion,
    SearchPage,
    SuggestionItem,
    SuggestionSnapshot,
)
from npmx.logging import logger
from npmx.services.events import Signal
from npmx.services.recent_searches import RecentSearchStore
from npmx.services.registry import PackageLookup

Clock = Callable[[], float]
SnapshotListener = Callable[[SuggestionSnapshot], None]


class ResultCache:
    """Lookup results keyed by exact query, fresh for ``ttl`` seconds.

    Expired entries are evicted on the next write, and at most ``maxsize``
    queries are kept (least recently used go first).
    """

    def __init__(self, ttl: float, clock: Clock = time.monotonic, maxsize: int = 256) -> None:
        self.ttl = ttl
        self._entries: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl, timer=clock)

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, query: str) -> list[PackageSuggestion] | None:
        items = self._entries.get(query)
        if items is None:
            return None
        return list(items)

    def set(self, query: str, items: list[PackageSuggestion]) -> None:
        self._entries[query] = list(items)

    def clear(self) -> None:
        self._entries.clear()


def page_to_suggestions(page: SearchPage) -> list[PackageSuggestion]:
    return [
        PackageSuggestion(value=package.name, description=package.description)
        for package in page.packages
    ]


def local_suggestions(
    query: str,
    recent: Sequence[str],
    popular: Sequence[str],
    settings: SuggestionSettings,
) -> tuple[list[RecentSuggestion], list[PopularSuggestion]]:
    """Pick history and popular entries for ``query`` (already trimmed)."""

    if not query:
        recent_values = list(recent[: settings.recent_limit_empty])
        popular_values = list(popular[: settings.popular_limit_empty])
    else:
        needle = query.lower()
        recent_values = [v for v in recent if needle in v.lower()][: settings.recent_limit_filtered]
        popular_values = [v for v in popular if needle in v.lower()][: settings.popular_limit_filtered]
    return (
        [RecentSuggestion(value=v) for v in recent_values],
        [PopularSuggestion(value=v) for v in popular_values],
    )


def merge_suggestions(
    api_items: Sequence[SuggestionItem],
    recent_items: Sequence[SuggestionItem],
    popular_items: Sequence[SuggestionItem],
    limit: int = 12,
) -> list[SuggestionItem]:
    """Concatenate sources in priority order, keep the first item per value."""

    seen: set[str] = set()
    merged: list[SuggestionItem] = []
    for item in (*api_items, *recent_items, *popular_items):
        if item.value in seen:
            continue
        seen.add(item.value)
        merged.append(item)
        if len(merged) >= limit:
            break
    return merged


class SuggestionEngine:
    def __init__(
        self,
        lookup: PackageLookup,
        recent_searches: RecentSearchStore,
        popular: Sequence[str],
        settings: SuggestionSettings | None = None,
        *,
        clock: Clock = time.monotonic,
    ) -> None:
        self.lookup = lookup
        self.recent_searches = recent_searches
        self.popular = tuple(popular)
        self.settings = settings or SuggestionSettings()
        self.cache = ResultCache(
            self.settings.stale_seconds, clock, maxsize=self.settings.cache_maxsize
        )

        self._query = ""
        self._debounced = ""
        self._latest_token = 0
        self._loading = False
        self._api_query: str | None = None
        self._api_items: list[PackageSuggestion] = []
        self._debounce_task: asyncio.Task | None = None
        self._fetch_tasks: set[asyncio.Task] = set()
        self.updated = Signal("npmx:suggestions")

    @property
    def query(self) -> str:
        return self._query

    @property
    def debounced(self) -> str:
        return self._debounced

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        return self.updated.connect(listener)

    def update(self, raw_query: str) -> SuggestionSnapshot:
        """Record a keystroke and return the immediate suggestions.

        Must be called from a running event loop; the remote lookup runs
        after the debounce delay without blocking the caller.
        """

        self._query = raw_query.strip()
        if self._debounce_task is not None and not self._debounce_task.done():
            self._debounce_task.cancel()
        self._debounce_task = asyncio.get_running_loop().create_task(
            self._debounce(self._query)
        )
        return self.snapshot()

    def snapshot(self) -> SuggestionSnapshot:
        recent_items, popular_items = local_suggestions(
            self._query,
            self.recent_searches.get_recent_searches(),
            self.popular,
            self.settings,
        )
        api_items = self._api_items if self._api_query == self._debounced else []
        return SuggestionSnapshot(
            query=self._query,
            debounced=self._debounced,
            items=merge_suggestions(
                api_items, recent_items, popular_items, limit=self.settings.max_items
            ),
            api_loading=self._loading,
        )

    async def settle(self) -> SuggestionSnapshot:
        """Wait for the pending debounce and every in-flight lookup."""

        while True:
            task = self._debounce_task
            if task is not None and not task.done():
                await asyncio.wait({task})
                continue
            pending = {t for t in self._fetch_tasks if not t.done()}
            if not pending:
                break
            await asyncio.wait(pending)
        return self.snapshot()

    async def _debounce(self, query: str) -> None:
        await asyncio.sleep(self.settings.debounce_ms / 1000)
        self._submit(query)

    def _submit(self, query: str) -> None:
        self._debounced = query
        self._latest_token += 1
        token = self._latest_token

        if len(query) < self.settings.min_remote_query_length:
            self._loading = False
            self._notify()
            return

        cached = self.cache.get(query)
        if cached is not None:
            logger.debug("suggestion_cache_hit", query=query)
            self._apply(token, query, cached)
            return

        self._loading = True
        task = asyncio.get_running_loop().create_task(self._fetch(token, query))
        self._fetch_tasks.add(task)
        task.add_done_callback(self._fetch_tasks.discard)
        self._notify()

    async def _fetch(self, token: int, query: str) -> None:
        try:
            page = await self.lookup.search_packages(query, self.settings.page_size, 0)
            items = page_to_suggestions(page)
        except Exception as exc:
            logger.warning("suggestion_lookup_failed", query=query, error=str(exc))
            items = []
        else:
            self.cache.set(query, items)
        self._apply(token, query, items)

    def _apply(self, token: int, query: str, items: list[PackageSuggestion]) -> None:
        if token != self._latest_token:
            logger.debug(
                "suggestion_response_discarded",
                query=query,
                token=token,
                latest_token=self._latest_token,
            )
            return
        self._loading = False
        self._api_query = query
        self._api_items = list(items)
        self._notify()

    def _notify(self) -> None:
        if self.updated.receivers:
            self.updated.send(self.snapshot())


__all__ = [
    "ResultCache",
    "SuggestionEngine",
    "local_suggestions",
    "merge_suggestions",
    "page_to_suggestions",
]
