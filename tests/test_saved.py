"""Tests for favorites/watchlist persistence and change notifications."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

import pytest

from npmx.domain.models import SavedState
from npmx.services.events import Signal
from npmx.services.saved import SAVED_CHANGED_EVENT, SAVED_STATE_KEY, SavedItemsStore


def test_default_state_is_empty(saved_store):
    assert saved_store.get_saved_state() == SavedState(favorites=[], watchlist=[])


def test_toggle_adds_then_removes(saved_store):
    state = saved_store.toggle_saved("favorites", "left-pad")
    assert state.favorites == ["left-pad"]
    assert saved_store.is_saved("favorites", " left-pad ")

    state = saved_store.toggle_saved("favorites", "left-pad")
    assert state.favorites == []
    assert not saved_store.is_saved("favorites", "left-pad")


def test_toggle_inserts_at_front(saved_store):
    saved_store.toggle_saved("watchlist", "react")
    state = saved_store.toggle_saved("watchlist", "vue")
    assert state.watchlist == ["vue", "react"]


def test_lists_are_independent(saved_store):
    saved_store.toggle_saved("watchlist", "react")
    saved_store.toggle_saved("favorites", "react")
    state = saved_store.toggle_saved("favorites", "lodash")
    assert state.watchlist == ["react"]

    state = saved_store.clear_saved("favorites")
    assert state.favorites == []
    assert state.watchlist == ["react"]


def test_remove_saved(saved_store):
    saved_store.toggle_saved("favorites", "a")
    saved_store.toggle_saved("favorites", "b")
    assert saved_store.remove_saved("favorites", "a").favorites == ["b"]
    assert saved_store.remove_saved("favorites", "missing").favorites == ["b"]


def test_persisted_payload_is_plain_data(saved_store, storage):
    saved_store.toggle_saved("favorites", "left-pad")
    assert storage.read(SAVED_STATE_KEY, None) == {"favorites": ["left-pad"], "watchlist": []}


def test_duplicate_entries_in_storage_are_collapsed(saved_store, storage):
    storage.write(SAVED_STATE_KEY, {"favorites": ["a", "a", "b"], "watchlist": []})
    assert saved_store.get_saved_state().favorites == ["a", "b"]
    assert saved_store.toggle_saved("favorites", "c").favorites == ["c", "a", "b"]


def test_malformed_payload_reads_as_default(saved_store, storage):
    storage.write(SAVED_STATE_KEY, ["not", "a", "record"])
    assert saved_store.get_saved_state() == SavedState()


def test_blank_name_is_ignored(saved_store):
    received = []
    saved_store.subscribe(received.append)
    assert saved_store.toggle_saved("favorites", "  ").favorites == []
    assert received == []


def test_unknown_list_is_rejected(saved_store):
    with pytest.raises(ValueError):
        saved_store.toggle_saved("wishlist", "react")


def test_mutations_broadcast_new_state(saved_store):
    received: list[SavedState] = []
    unsubscribe = saved_store.subscribe(received.append)

    saved_store.toggle_saved("favorites", "react")
    saved_store.remove_saved("favorites", "react")
    saved_store.clear_saved("watchlist")
    assert [s.favorites for s in received] == [["react"], [], []]

    unsubscribe()
    saved_store.toggle_saved("favorites", "vue")
    assert len(received) == 3


def test_two_stores_share_one_signal(storage):
    signal = Signal(SAVED_CHANGED_EVENT)
    list_view = SavedItemsStore(storage, signal)
    detail_view = SavedItemsStore(storage, signal)
    seen = []
    list_view.subscribe(lambda state: seen.append(("list", state.favorites)))

    detail_view.toggle_saved("favorites", "react")
    assert seen == [("list", ["react"])]
    assert list_view.is_saved("favorites", "react")


def test_failing_listener_does_not_break_mutation(saved_store):
    calls = []

    def broken(state):
        raise RuntimeError("boom")

    saved_store.subscribe(broken)
    saved_store.subscribe(calls.append)

    state = saved_store.toggle_saved("favorites", "react")
    assert state.favorites == ["react"]
    assert len(calls) == 1


def test_unavailable_storage_behaves_like_empty(unavailable_storage):
    store = SavedItemsStore(unavailable_storage)
    assert store.get_saved_state() == SavedState()
    assert store.is_saved("favorites", "react") is False
    assert store.toggle_saved("favorites", "react").favorites == ["react"]
    assert store.get_saved_state() == SavedState()


def test_concurrent_toggles_keep_every_name(saved_store):
    names = [f"pkg-{i}" for i in range(200)]
    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(lambda name: saved_store.toggle_saved("favorites", name), names))
    state = saved_store.get_saved_state()
    assert sorted(state.favorites) == sorted(names)
    assert state.watchlist == []
