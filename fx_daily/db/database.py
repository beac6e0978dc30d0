"""Engine, session factory and unit-of-work handling for fx_daily."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Iterator

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from fx_daily.db import DEFAULT_SQLITE_DB_PATH
from fx_daily.db.models import Base
from fx_daily.utils.logger import get_logger

LOGGER = get_logger(__name__)

AfterCommitHook = Callable[[], None]


@dataclass
class _UnitOfWork:
    session: Session
    after_commit: list[AfterCommitHook] = field(default_factory=list)


def sqlite_url(db_path: str | Path = DEFAULT_SQLITE_DB_PATH) -> str:
    """Return a SQLAlchemy URL for an on-disk SQLite file."""

    return f"sqlite:///{Path(db_path).expanduser().resolve()}"


def _enable_sqlite_savepoints(engine: Engine) -> None:
    """Hand transaction control to SQLAlchemy so SAVEPOINT works on pysqlite.

    pysqlite otherwise issues its own BEGIN lazily and breaks nested
    transactions. Foreign keys are off by default in SQLite and are switched
    on for every connection so ``ON DELETE RESTRICT`` holds.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection: Any, connection_record: Any) -> None:
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys = ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(connection: Any) -> None:
        connection.exec_driver_sql("BEGIN")


class Database:
    """Owns the engine and hands out transactional sessions.

    ``transaction()`` is re-entrant per thread: a nested call joins the
    outermost transaction, so several operations can share one atomic commit.
    Hooks registered with :meth:`after_commit` fire only once the outermost
    transaction has committed and are dropped on rollback.
    """

    def __init__(
        self, url: str | None = None, *, echo: bool = False, create_schema: bool = True
    ) -> None:
        self.url = url or sqlite_url()
        connect_args: dict[str, Any] = {}
        is_sqlite = self.url.startswith("sqlite")
        if is_sqlite:
            connect_args = {"check_same_thread": False, "timeout": 30}
        self.engine: Engine = create_engine(
            self.url, echo=echo, future=True, connect_args=connect_args
        )
        if is_sqlite:
            _enable_sqlite_savepoints(self.engine)
        self._SessionFactory: sessionmaker[Session] = sessionmaker(
            bind=self.engine, expire_on_commit=False, future=True
        )
        self._local = threading.local()
        if create_schema:
            self.ensure_schema()

    def ensure_schema(self) -> None:
        """Create required tables and verify connectivity."""

        LOGGER.info("Ensuring fx_daily schema exists")
        with self.engine.begin() as connection:
            connection.execute(text("SELECT 1"))
        Base.metadata.create_all(self.engine)

    def _current(self) -> _UnitOfWork | None:
        return getattr(self._local, "unit", None)

    def in_transaction(self) -> bool:
        """Return True when the calling thread is inside :meth:`transaction`."""

        return self._current() is not None

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """Yield a session bound to one atomic transaction."""

        current = self._current()
        if current is not None:
            yield current.session
            return

        unit = _UnitOfWork(session=self._SessionFactory())
        self._local.unit = unit
        try:
            with unit.session.begin():
                yield unit.session
        finally:
            self._local.unit = None
            unit.session.close()
        for hook in unit.after_commit:
            try:
                hook()
            except Exception:
                LOGGER.exception("After-commit hook %r failed", hook)

    @contextmanager
    def read_session(self) -> Iterator[Session]:
        """Yield a session for read-only work, reusing an active transaction."""

        current = self._current()
        if current is not None:
            yield current.session
            return
        with self._SessionFactory() as session:
            yield session

    def after_commit(self, hook: AfterCommitHook) -> None:
        """Run ``hook`` once the active transaction commits (immediately if none)."""

        current = self._current()
        if current is None:
            hook()
            return
        current.after_commit.append(hook)

    def close(self) -> None:  # pragma: no cover - trivial resource cleanup
        self.engine.dispose()

    def __enter__(self) -> "Database":  # pragma: no cover - trivial
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # pragma: no cover - trivial
        self.close()


__all__ = ["Database", "AfterCommitHook", "sqlite_url"]
