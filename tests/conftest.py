"""Shared pytest fixtures for storage-backed store tests."""

from __future__ import annotations

import pytest

from npmx.db.session import Database
from npmx.services.recent_searches import RecentSearchStore
from npmx.services.saved import SavedItemsStore
from npmx.services.storage import KeyValueStore, MemoryBackend, SqlBackend


@pytest.fixture
def memory_backend() -> MemoryBackend:
    return MemoryBackend()


@pytest.fixture
def storage(memory_backend) -> KeyValueStore:
    return KeyValueStore(memory_backend)


@pytest.fixture
def unavailable_storage() -> KeyValueStore:
    return KeyValueStore(None)


@pytest.fixture
def database():
    db = Database("sqlite:///:memory:")
    try:
        yield db
    finally:
        db.dispose()


@pytest.fixture
def sql_storage(database) -> KeyValueStore:
    return KeyValueStore(SqlBackend(database))


@pytest.fixture
def recent_store(storage) -> RecentSearchStore:
    return RecentSearchStore(storage)


@pytest.fixture
def saved_store(storage) -> SavedItemsStore:
    return SavedItemsStore(storage)
