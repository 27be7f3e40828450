"""
Connection provider for executors and repositories.

Every ORM operation acquires one logical connection for the duration of the
call and releases it on every exit path. Cascading operations open a
:meth:`DataSource.transaction` scope instead: the connection is bound to the
current context so every nested :meth:`DataSource.connection` scope reuses
it, and the outer scope commits once (or rolls back everything).

Supported URLs
--------------
==================  ==========================================
``memory``          ``memory``, ``:memory:`` or ``None``
``sqlite``          ``sqlite:///path/to/file.db``
``(file path)``     ``./data/app.db``
==================  ==========================================

Architecture::

    repository / executor call
        │
        ▼
    with data_source.connection() as conn     ← reuses bound tx connection
        │                                        or acquires a fresh one
        ▼
    sqlite3.Connection (PRAGMA foreign_keys, case_sensitive_like)
        │
        ▼
    commit on success, rollback on error, close (only if acquired here)

In-memory databases use SQLite's shared cache under a unique URI name so that
independent per-call connections see the same data. An anchor connection
keeps the database alive until :meth:`SQLiteDataSource.close`.

Tags:
    connection, datasource, transaction, sqlite, spine-orm
"""

from __future__ import annotations

import sqlite3
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from spineorm.errors import DatabaseConnectionError
from spineorm.logging import get_logger

logger = get_logger(__name__)


# ── Protocols ────────────────────────────────────────────────────────────


@runtime_checkable
class Connection(Protocol):
    """DB-API subset the executors rely on."""

    def execute(self, sql: str, params: Any = ()) -> Any:
        ...

    def cursor(self) -> Any:
        ...

    def commit(self) -> None:
        ...

    def rollback(self) -> None:
        ...

    def close(self) -> None:
        ...


@runtime_checkable
class DataSource(Protocol):
    """Hands out one logical connection per call."""

    info: ConnectionInfo

    def connection(self) -> Any:
        """Context manager yielding a connection; commit/rollback on exit."""
        ...

    def transaction(self) -> Any:
        """Context manager binding one connection for all nested calls."""
        ...

    def acquire(self) -> tuple[Connection, bool]:
        """Connection plus an ``owned`` flag (False when transaction-bound)."""
        ...

    def close(self) -> None:
        ...


# ── ConnectionInfo ───────────────────────────────────────────────────────


@dataclass(frozen=True)
class ConnectionInfo:
    """Metadata about a data source."""

    backend: str
    """Backend identifier, ``"sqlite"``."""

    persistent: bool
    """Whether data survives process exit."""

    url: str
    """The original URL or path used to create the data source."""

    resolved_path: str | None = None
    """For file-based SQLite, the resolved absolute path."""

    def __repr__(self) -> str:
        parts = [f"backend={self.backend!r}", f"persistent={self.persistent}"]
        if self.resolved_path:
            parts.append(f"path={self.resolved_path!r}")
        else:
            parts.append(f"url={self.url!r}")
        return f"ConnectionInfo({', '.join(parts)})"


# ── URL parsing ──────────────────────────────────────────────────────────


def _parse_url(db: str | None) -> tuple[str, str]:
    """Parse a database URL into ``(scheme, target)``.

    ``scheme`` is one of ``"memory"``, ``"sqlite"``, ``"file"``.
    """
    if db is None or db in ("", "memory", ":memory:"):
        return "memory", ":memory:"

    for prefix in ("sqlite:///", "sqlite://"):
        if db.startswith(prefix):
            path = db[len(prefix):]
            if not path or path == ":memory:":
                return "memory", ":memory:"
            return "sqlite", path

    if "://" in db:
        raise DatabaseConnectionError(f"Unsupported database URL: {db!r}").with_context(url=db)

    return "file", db


# ── SQLite ───────────────────────────────────────────────────────────────


class SQLiteDataSource:
    """SQLite connection provider.

    Parameters:
        url: ``memory`` (default), ``sqlite:///path`` or a bare file path.
        enforce_foreign_keys: Issue ``PRAGMA foreign_keys = ON`` on every
            connection. Cascade-delete of join rows depends on it.
        case_sensitive_like: Issue ``PRAGMA case_sensitive_like = ON``.
        timeout: Seconds to wait on a locked database.
    """

    def __init__(
        self,
        url: str | None = None,
        *,
        enforce_foreign_keys: bool = True,
        case_sensitive_like: bool = True,
        timeout: float = 5.0,
    ) -> None:
        self._enforce_foreign_keys = enforce_foreign_keys
        self._case_sensitive_like = case_sensitive_like
        self._timeout = timeout
        self._anchor: sqlite3.Connection | None = None
        self._closed = False
        self._bound: ContextVar[sqlite3.Connection | None] = ContextVar(
            f"spineorm_tx_{id(self)}", default=None
        )

        scheme, target = _parse_url(url)
        if scheme == "memory":
            self._database = f"file:spineorm-{uuid.uuid4().hex}?mode=memory&cache=shared"
            self._uri = True
            self.info = ConnectionInfo(backend="sqlite", persistent=False, url=url or ":memory:")
            self._anchor = self._open()
        else:
            path = Path(target)
            path.parent.mkdir(parents=True, exist_ok=True)
            resolved = str(path.resolve())
            self._database = resolved
            self._uri = False
            self.info = ConnectionInfo(
                backend="sqlite", persistent=True, url=url or target, resolved_path=resolved
            )
        logger.debug("datasource_created", info=repr(self.info))

    @classmethod
    def from_settings(cls, settings: Any) -> SQLiteDataSource:
        """Build from an :class:`~spineorm.config.OrmSettings`."""
        return cls(
            settings.database_url,
            enforce_foreign_keys=settings.enforce_foreign_keys,
            case_sensitive_like=settings.case_sensitive_like,
        )

    def _open(self) -> sqlite3.Connection:
        if self._closed:
            raise DatabaseConnectionError("Data source is closed").with_context(url=self.info.url)
        try:
            conn = sqlite3.connect(
                self._database,
                timeout=self._timeout,
                check_same_thread=False,
                uri=self._uri,
            )
            if self._enforce_foreign_keys:
                conn.execute("PRAGMA foreign_keys = ON")
            if self._case_sensitive_like:
                conn.execute("PRAGMA case_sensitive_like = ON")
        except sqlite3.Error as e:
            raise DatabaseConnectionError(
                f"Failed to connect to SQLite: {e}", cause=e
            ).with_context(url=self.info.url) from e
        return conn

    # -- DataSource protocol ----------------------------------------------

    def acquire(self) -> tuple[sqlite3.Connection, bool]:
        """Return the transaction-bound connection, or open a new one.

        The flag is True when the caller owns the connection and must close
        it.
        """
        bound = self._bound.get()
        if bound is not None:
            return bound, False
        return self._open(), True

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        """Scoped connection for one ORM call.

        Inside a :meth:`transaction` scope the bound connection is yielded
        and never committed, rolled back or closed here.
        """
        conn, owned = self.acquire()
        if not owned:
            yield conn
            return
        try:
            yield conn
            conn.commit()
        except BaseException:
            conn.rollback()
            raise
        finally:
            conn.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Bind one connection to the current context for a multi-statement unit.

        Nested ``transaction()`` scopes join the outer one.
        """
        if self._bound.get() is not None:
            yield self._bound.get()  # type: ignore[misc]
            return
        conn = self._open()
        token = self._bound.set(conn)
        try:
            yield conn
            conn.commit()
        except BaseException:
            conn.rollback()
            logger.debug("transaction_rolled_back", url=self.info.url)
            raise
        finally:
            self._bound.reset(token)
            conn.close()

    @property
    def in_transaction(self) -> bool:
        return self._bound.get() is not None

    def close(self) -> None:
        """Release the anchor connection; an in-memory database is discarded."""
        if self._anchor is not None:
            self._anchor.close()
            self._anchor = None
        self._closed = True

    def __enter__(self) -> SQLiteDataSource:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"SQLiteDataSource({self.info!r})"


__all__ = [
    "Connection",
    "DataSource",
    "ConnectionInfo",
    "SQLiteDataSource",
]
