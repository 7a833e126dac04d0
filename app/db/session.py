from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool

_LOG = logging.getLogger("app.db")


class Base(DeclarativeBase):
    pass


class Database:
    """Owned handle to the SQL backend.

    Built from a URL (or an existing engine in tests), opened once by the
    application lifespan and closed on shutdown.
    """

    def __init__(self, url: str | None = None, *, engine: Engine | None = None, echo: bool = False):
        if url is None and engine is None:
            raise ValueError("Database requires a url or an engine")
        self.url = url
        self.echo = echo
        self._engine = engine
        self._owns_engine = engine is None
        self._session_factory: sessionmaker[Session] | None = None
        self.connected = False

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            raise RuntimeError("Database is not open")
        return self._engine

    def _build_engine(self) -> Engine:
        url = str(self.url)
        if url.startswith("sqlite"):
            kwargs = {"connect_args": {"check_same_thread": False}}
            if ":memory:" in url:
                kwargs["poolclass"] = StaticPool
            return create_engine(url, echo=self.echo, **kwargs)
        return create_engine(url, echo=self.echo, pool_pre_ping=True)

    def open(self) -> "Database":
        if self.connected:
            return self
        if self._engine is None:
            self._engine = self._build_engine()
        with self._engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        self._session_factory = sessionmaker(bind=self._engine, autocommit=False, autoflush=False)
        self.connected = True
        _LOG.info("database connected url=%s", self._engine.url.render_as_string(hide_password=True))
        return self

    def close(self) -> None:
        if not self.connected:
            return
        self.connected = False
        self._session_factory = None
        if self._owns_engine and self._engine is not None:
            self._engine.dispose()
            self._engine = None
        _LOG.info("database disconnected")

    def create_all(self) -> None:
        Base.metadata.create_all(bind=self.engine)

    @contextmanager
    def session(self) -> Iterator[Session]:
        if self._session_factory is None:
            raise RuntimeError("Database is not open")
        db = self._session_factory()
        try:
            yield db
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def __enter__(self) -> "Database":
        return self.open()

    def __exit__(self, *exc_info) -> None:
        self.close()
