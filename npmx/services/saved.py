"""Favorites and watchlist persistence with change notifications."""

from __future__ import annotations

from typing import Callable

from pydantic import ValidationError

from npmx.domain.models import SAVED_LISTS, SavedListKey, SavedState
from npmx.services.events import Signal
from npmx.services.storage import KeyValueStore

SAVED_STATE_KEY = "npmx:saved:v1"
SAVED_CHANGED_EVENT = "npmx:saved"

SavedListener = Callable[[SavedState], None]


def _normalize(name: str) -> str:
    return name.strip()


def _check_list(list_key: str) -> None:
    if list_key not in SAVED_LISTS:
        raise ValueError(f"Unknown saved list: {list_key!r}")


class SavedItemsStore:
    """Two independent saved lists sharing one persisted record.

    Every mutation persists the whole record and then broadcasts the new
    state on :attr:`changed`, so separate views holding the same store stay
    in sync without knowing about each other.
    """

    def __init__(self, storage: KeyValueStore, signal: Signal | None = None) -> None:
        self.storage = storage
        self.changed = signal or Signal(SAVED_CHANGED_EVENT)

    def subscribe(self, listener: SavedListener) -> Callable[[], None]:
        return self.changed.connect(listener)

    def get_saved_state(self) -> SavedState:
        raw = self.storage.read(SAVED_STATE_KEY, None)
        if raw is None:
            return SavedState()
        try:
            return SavedState.model_validate(raw)
        except ValidationError:
            return SavedState()

    def is_saved(self, list_key: SavedListKey, name: str) -> bool:
        _check_list(list_key)
        return _normalize(name) in self.get_saved_state().get_list(list_key)

    def toggle_saved(self, list_key: SavedListKey, name: str) -> SavedState:
        _check_list(list_key)
        name = _normalize(name)
        if not name:
            return self.get_saved_state()

        def _toggle(items: list[str]) -> list[str]:
            if name in items:
                return [item for item in items if item != name]
            return [name, *items]

        return self._mutate(list_key, _toggle)

    def remove_saved(self, list_key: SavedListKey, name: str) -> SavedState:
        _check_list(list_key)
        name = _normalize(name)
        if not name:
            return self.get_saved_state()
        return self._mutate(list_key, lambda items: [item for item in items if item != name])

    def clear_saved(self, list_key: SavedListKey) -> SavedState:
        _check_list(list_key)
        return self._mutate(list_key, lambda items: [])

    def _mutate(
        self, list_key: str, change: Callable[[list[str]], list[str]]
    ) -> SavedState:
        with self.storage.locked(SAVED_STATE_KEY):
            data = self.get_saved_state().model_dump()
            data[list_key] = change(data[list_key])
            updated = SavedState.model_validate(data)
            self.storage.write(SAVED_STATE_KEY, updated.model_dump())
        self.changed.send(updated)
        return updated


__all__ = [
    "SAVED_CHANGED_EVENT",
    "SAVED_STATE_KEY",
    "SavedItemsStore",
    "SavedListener",
]
