"""Persistent key-value storage with safe fallbacks.

Every store in :mod:`npmx.services` persists plain JSON data through
:class:`KeyValueStore`. Storage is treated as an unreliable resource: it may
be missing entirely (``backend=None``), full, or hold payloads written by an
older format. Reads then return the caller's fallback and writes become
no-ops, so callers never see an exception from this layer.
"""

from __future__ import annotations

import json
import os
import tempfile
import threading
from collections import defaultdict
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Protocol, TypeVar

from sqlalchemy import delete, select

from npmx.config import StorageSettings
from npmx.db.models.core import KeyValueEntry
from npmx.db.session import Database
from npmx.logging import logger
from npmx.utils.datetime import utc_now

T = TypeVar("T")


class StorageBackend(Protocol):
    """Raw text storage keyed by string."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, payload: str) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryBackend:
    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, payload: str) -> None:
        self._data[key] = payload

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)


class FileBackend:
    """All entries in one JSON object on disk, replaced atomically on write."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()

    def _load(self) -> dict[str, str]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning("storage_file_corrupt", path=str(self.path))
            return {}
        if not isinstance(data, dict):
            return {}
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _dump(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(data, handle, ensure_ascii=False)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._load().get(key)

    def set(self, key: str, payload: str) -> None:
        with self._lock:
            data = self._load()
            data[key] = payload
            self._dump(data)

    def delete(self, key: str) -> None:
        with self._lock:
            data = self._load()
            if data.pop(key, None) is not None:
                self._dump(data)


class SqlBackend:
    """Entries stored as rows of the ``kv_entries`` table."""

    def __init__(self, database: Database) -> None:
        self.database = database

    def get(self, key: str) -> str | None:
        with self.database.session() as session:
            stmt = select(KeyValueEntry.payload).where(KeyValueEntry.key == key)
            return session.execute(stmt).scalar_one_or_none()

    def set(self, key: str, payload: str) -> None:
        with self.database.session() as session:
            stmt = select(KeyValueEntry).where(KeyValueEntry.key == key)
            entry = session.execute(stmt).scalar_one_or_none()
            if entry is None:
                session.add(KeyValueEntry(key=key, payload=payload))
            else:
                entry.payload = payload
                entry.updated_at = utc_now()

    def delete(self, key: str) -> None:
        with self.database.session() as session:
            session.execute(delete(KeyValueEntry).where(KeyValueEntry.key == key))

    def close(self) -> None:
        self.database.dispose()


class KeyValueStore:
    """JSON read/write on top of an optional backend."""

    def __init__(self, backend: StorageBackend | None = None) -> None:
        self._backend = backend
        self._locks: defaultdict[str, threading.RLock] = defaultdict(threading.RLock)
        self._locks_guard = threading.Lock()

    @property
    def available(self) -> bool:
        return self._backend is not None

    def read(self, key: str, fallback: T) -> Any | T:
        if self._backend is None:
            return fallback
        try:
            raw = self._backend.get(key)
        except Exception as exc:
            logger.warning("storage_read_failed", key=key, error=str(exc))
            return fallback
        if not raw:
            return fallback
        try:
            return json.loads(raw)
        except ValueError:
            logger.debug("storage_payload_invalid", key=key)
            return fallback

    def write(self, key: str, value: Any) -> None:
        if self._backend is None:
            return
        try:
            payload = json.dumps(value, ensure_ascii=False)
        except (TypeError, ValueError) as exc:
            logger.warning("storage_serialize_failed", key=key, error=str(exc))
            return
        try:
            self._backend.set(key, payload)
        except Exception as exc:
            logger.warning("storage_write_failed", key=key, error=str(exc))

    def remove(self, key: str) -> None:
        if self._backend is None:
            return
        try:
            self._backend.delete(key)
        except Exception as exc:
            logger.warning("storage_remove_failed", key=key, error=str(exc))

    def close(self) -> None:
        """Release backend resources such as a SQL connection pool."""

        close = getattr(self._backend, "close", None)
        if close is not None:
            close()

    @contextmanager
    def locked(self, key: str) -> Iterator[None]:
        """Serialize read-modify-write sequences on ``key``."""

        with self._locks_guard:
            lock = self._locks[key]
        with lock:
            yield


def build_storage(settings: StorageSettings) -> KeyValueStore:
    backend: StorageBackend | None
    if settings.backend == "memory":
        backend = MemoryBackend()
    elif settings.backend == "file":
        backend = FileBackend(settings.path)
    elif settings.backend == "sql":
        backend = SqlBackend(Database.from_settings(settings))
    else:
        backend = None
    logger.debug("storage_initialized", backend=settings.backend)
    return KeyValueStore(backend)


__all__ = [
    "FileBackend",
    "KeyValueStore",
    "MemoryBackend",
    "SqlBackend",
    "StorageBackend",
    "build_storage",
]
