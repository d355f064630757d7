"""SQLAlchemy session management for the sql storage backend."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from npmx.config import StorageSettings
from npmx.db.base import Base
from npmx.logging import logger


class Database:
    """Lazy SQLAlchemy engine/session factory wrapper."""

    def __init__(self, dsn: str, *, echo: bool = False, engine: Engine | None = None) -> None:
        self.dsn = dsn
        self.echo = echo
        self._engine = engine
        self._session_factory: sessionmaker[Session] | None = None

    @classmethod
    def from_settings(cls, settings: StorageSettings) -> "Database":
        return cls(settings.dsn, echo=settings.echo)

    def _ensure_engine(self) -> None:
        if self._engine is None:
            kwargs: dict = {"echo": self.echo, "future": True}
            if self.dsn.startswith("sqlite") and ":memory:" in self.dsn:
                kwargs["connect_args"] = {"check_same_thread": False}
                kwargs["poolclass"] = StaticPool
            self._engine = create_engine(self.dsn, **kwargs)
            logger.info("db_engine_initialized", dsn=self.dsn)
        if self._session_factory is None:
            Base.metadata.create_all(self._engine)
            self._session_factory = sessionmaker(
                bind=self._engine,
                expire_on_commit=False,
                autoflush=False,
            )

    @property
    def session_factory(self) -> sessionmaker[Session]:
        self._ensure_engine()
        assert self._session_factory is not None
        return self._session_factory

    @contextmanager
    def session(self) -> Iterator[Session]:
        factory = self.session_factory
        with factory() as session:
            try:
                yield session
                session.commit()
            except Exception:
                session.rollback()
                raise

    def dispose(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
            self._session_factory = None


__all__ = ["Database"]
