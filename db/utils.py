"""Shared helpers for working with the catalog database."""

from __future__ import annotations

import os
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

try:  # pragma: no cover - optional dependency
    import sqlite3
except ImportError:  # pragma: no cover - environments without sqlite bindings
    sqlite3 = None  # type: ignore[assignment]

from sqlalchemy import create_engine, event, inspect
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.engine.default import DefaultDialect
from urllib.parse import unquote, urlparse


class DatabaseEngine:
    """Wrapper exposing context-managed SQLAlchemy connections."""

    def __init__(self, engine: Engine):
        self._engine = engine

    @property
    def engine(self) -> Engine:
        """Return the underlying SQLAlchemy :class:`~sqlalchemy.engine.Engine`."""

        return self._engine

    @property
    def dialect_name(self) -> str:
        return self._engine.dialect.name

    @contextmanager
    def sa_connection(self) -> Iterator[Connection]:
        """Yield a SQLAlchemy :class:`~sqlalchemy.engine.Connection`."""

        with self._engine.connect() as conn:
            yield conn

    def dispose(self) -> None:
        """Dispose the underlying engine's connection pool."""

        self._engine.dispose()


def _configure_sqlite_connection(conn: Any, *, busy_timeout: float | None = None) -> Any:
    """Apply timeout tuning to SQLite connections when available."""

    if sqlite3 is None or not isinstance(conn, sqlite3.Connection):
        return conn

    busy_timeout_ms = None
    if busy_timeout is not None:
        busy_timeout_ms = int(max(busy_timeout, 0) * 1000)
        if busy_timeout_ms <= 0:
            busy_timeout_ms = None

    pragmas: tuple[tuple[str, str | int | float | None, bool], ...] = (
        ("busy_timeout", busy_timeout_ms, False),
        ("journal_mode", "WAL", True),
        ("foreign_keys", "ON", False),
    )

    for name, value, fetch_result in pragmas:
        if value is None:
            continue
        try:
            cursor = conn.execute(f"PRAGMA {name}={value}")
            if fetch_result:
                cursor.fetchone()
        except sqlite3.OperationalError:  # pragma: no cover - best effort only
            continue

    return conn


def _configure_mariadb_connection(conn: Any, *, lock_timeout: float | None = None) -> Any:
    """Apply session-level settings for MariaDB connections."""

    if lock_timeout is None:
        return conn

    timeout_value = max(int(lock_timeout), 1)

    try:
        cursor = conn.cursor()
    except AttributeError:  # pragma: no cover - DBAPI without cursor helper
        return conn

    try:
        for statement in (
            "SET SESSION innodb_lock_wait_timeout = %s",
            "SET SESSION lock_wait_timeout = %s",
        ):
            try:
                cursor.execute(statement, (timeout_value,))
            except Exception:  # pragma: no cover - unavailable variable
                continue
    finally:
        cursor.close()

    return conn


def _resolve_sqlite_path_from_dsn(dsn: str) -> str:
    """Extract a filesystem path from a ``sqlite:///`` DSN string."""

    parsed = urlparse(dsn)
    if parsed.scheme.split("+", 1)[0] != "sqlite":
        raise ValueError(f"Unsupported DSN scheme for SQLite resolver: {parsed.scheme}")

    path = unquote(parsed.path or "")
    if parsed.netloc and parsed.netloc not in {"", "localhost"}:
        # Support UNC-like hosts by prefixing them to the path component.
        path = f"//{parsed.netloc}{path}"

    if not path:
        raise ValueError("SQLite DSN must include a filesystem path")

    candidate = Path(path)
    if not candidate.is_absolute():
        candidate = candidate.resolve()
    return os.fspath(candidate)


def build_engine_from_dsn(
    dsn: str,
    *,
    timeout: float | None = None,
    pool_size: int = 1,
    pool_recycle: int = 1_800,
    pool_pre_ping: bool = True,
) -> DatabaseEngine:
    """Return a :class:`DatabaseEngine` configured from ``dsn``.

    The migration is single-writer, so the pool defaults to one connection.
    """

    parsed = urlparse(dsn)
    connect_args: dict[str, object] = {}
    effective_timeout = timeout if timeout is not None else 5.0
    dialect_name = parsed.scheme.split("+", 1)[0]

    if dialect_name == "sqlite":
        sqlite_path = _resolve_sqlite_path_from_dsn(dsn)
        normalized_dsn = f"sqlite:///{sqlite_path}"
        connect_args["check_same_thread"] = False
    else:
        normalized_dsn = dsn
        if dialect_name in {"postgresql", "postgres"}:
            connect_args["connect_timeout"] = max(int(effective_timeout), 1)

    engine = create_engine(
        normalized_dsn,
        pool_size=pool_size,
        pool_recycle=pool_recycle,
        pool_pre_ping=pool_pre_ping,
        connect_args=connect_args,
    )

    if dialect_name == "sqlite" and sqlite3 is not None:

        @event.listens_for(engine, "connect")
        def _on_connect(dbapi_conn, connection_record):  # type: ignore[override]
            _configure_sqlite_connection(dbapi_conn, busy_timeout=effective_timeout)
    elif dialect_name in {"mysql", "mariadb"}:

        @event.listens_for(engine, "connect")
        def _on_connect(dbapi_conn, connection_record):  # type: ignore[override]
            _configure_mariadb_connection(dbapi_conn, lock_timeout=effective_timeout)

    return DatabaseEngine(engine)


def get_table_columns(conn: Connection, table: str) -> set[str] | None:
    """Return the column names of ``table`` or ``None`` when it does not exist."""

    inspector = inspect(conn)
    if not inspector.has_table(table):
        return None
    return {col["name"] for col in inspector.get_columns(table)}


def quote_identifier(
    identifier: str,
    bind: DatabaseEngine | Engine | Connection | None = None,
    *,
    force: bool = False,
) -> str:
    """Return the SQL dialect-safe quoted version of ``identifier``.

    With ``force`` the identifier is always quoted, even when the dialect would
    accept it bare.
    """

    if isinstance(bind, DatabaseEngine):
        dialect = bind.engine.dialect
    elif isinstance(bind, (Engine, Connection)):
        dialect = bind.dialect
    else:
        dialect = DefaultDialect()
    preparer = dialect.identifier_preparer
    if force:
        return preparer.quote_identifier(identifier)
    return preparer.quote(identifier)


__all__ = [
    "DatabaseEngine",
    "build_engine_from_dsn",
    "get_table_columns",
    "quote_identifier",
]
