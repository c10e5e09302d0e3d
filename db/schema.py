"""Table definitions for the legacy games table, the catalog and library tables.

The statements are emitted per dialect so the same definitions back the
remediation hint printed by the migration, :func:`ensure_library_table` and
the test fixtures.
"""

from __future__ import annotations

from typing import Mapping

from sqlalchemy import text
from sqlalchemy.engine import Connection

from db.utils import DatabaseEngine, quote_identifier

_TYPES: dict[str, Mapping[str, str]] = {
    "sqlite": {
        "id": "TEXT",
        "title": "TEXT",
        "int": "INTEGER",
        "float": "REAL",
        "text": "TEXT",
        "list": "TEXT",
        "timestamp": "TEXT DEFAULT CURRENT_TIMESTAMP",
    },
    "mysql": {
        "id": "VARCHAR(36)",
        "title": "VARCHAR(255)",
        "int": "INT",
        "float": "DOUBLE",
        "text": "LONGTEXT",
        "list": "LONGTEXT",
        "timestamp": "DATETIME DEFAULT CURRENT_TIMESTAMP",
    },
    "postgresql": {
        "id": "UUID",
        "title": "TEXT",
        "int": "INTEGER",
        "float": "DOUBLE PRECISION",
        "text": "TEXT",
        "list": "TEXT[]",
        "timestamp": "TIMESTAMPTZ DEFAULT NOW()",
    },
}
_TYPES["mariadb"] = _TYPES["mysql"]

SHARED_COLUMNS: tuple[tuple[str, str], ...] = (
    ("title", "title"),
    ("year", "int"),
    ("min_players", "int"),
    ("max_players", "int"),
    ("play_time_min", "int"),
    ("play_time_max", "int"),
    ("box_art_url", "text"),
    ("description", "text"),
    ("categories", "list"),
    ("bgg_rating", "float"),
    ("bgg_rank", "int"),
    ("suggested_age", "int"),
)
"""Descriptive metadata that is shared across every user."""

USER_COLUMNS: tuple[tuple[str, str], ...] = (
    ("play_count", "int"),
    ("personal_rating", "int"),
    ("review", "text"),
)
"""Per-user tracking data carried by the legacy table only."""

LEGACY_MARKER_COLUMN = "user_id"


def _types_for(dialect: str) -> Mapping[str, str]:
    try:
        return _TYPES[dialect]
    except KeyError:
        raise ValueError(f"Unsupported dialect for catalog schema: {dialect}") from None


def _q(name: str, dialect: str) -> str:
    # Unknown dialects were rejected by _types_for already.
    if dialect in {"mysql", "mariadb"}:
        return f"`{name}`"
    return quote_identifier(name, force=True)


def _column_lines(columns: tuple[tuple[str, str], ...], dialect: str) -> list[str]:
    types = _types_for(dialect)
    lines = []
    for name, kind in columns:
        suffix = " NOT NULL" if name == "title" else ""
        lines.append(f"{_q(name, dialect)} {types[kind]}{suffix}")
    return lines


def legacy_games_table_ddl(dialect: str, table: str = "games") -> str:
    """Return ``CREATE TABLE`` for the pre-migration, per-user games table."""

    types = _types_for(dialect)
    lines = [f"{_q('id', dialect)} {types['id']} PRIMARY KEY"]
    lines.append(f"{_q(LEGACY_MARKER_COLUMN, dialect)} {types['id']}")
    lines.extend(_column_lines(SHARED_COLUMNS, dialect))
    lines.extend(_column_lines(USER_COLUMNS, dialect))
    lines.append(f"{_q('created_at', dialect)} {types['timestamp']}")
    lines.append(f"{_q('updated_at', dialect)} {types['timestamp']}")
    body = ",\n    ".join(lines)
    return f"CREATE TABLE IF NOT EXISTS {_q(table, dialect)} (\n    {body}\n)"


def catalog_games_table_ddl(dialect: str, table: str = "games") -> str:
    """Return ``CREATE TABLE`` for the shared, post-migration catalog table."""

    types = _types_for(dialect)
    lines = [f"{_q('id', dialect)} {types['id']} PRIMARY KEY"]
    lines.extend(_column_lines(SHARED_COLUMNS, dialect))
    lines.append(f"{_q('created_at', dialect)} {types['timestamp']}")
    lines.append(f"{_q('updated_at', dialect)} {types['timestamp']}")
    body = ",\n    ".join(lines)
    return f"CREATE TABLE IF NOT EXISTS {_q(table, dialect)} (\n    {body}\n)"


def library_games_table_ddl(
    dialect: str,
    *,
    table: str = "library_games",
    catalog_table: str = "games",
    users_table: str | None = "users",
) -> str:
    """Return ``CREATE TABLE`` for the per-user library join table.

    ``users_table`` may be ``None`` when the store keeps its accounts outside
    the database, in which case ``user_id`` is left without a foreign key.
    """

    types = _types_for(dialect)

    def q(name: str) -> str:
        return _q(name, dialect)

    lines = [
        f"{q('id')} {types['id']} PRIMARY KEY",
        f"{q('user_id')} {types['id']} NOT NULL",
        f"{q('game_id')} {types['id']} NOT NULL",
        f"{q('play_count')} {types['int']} DEFAULT 0",
        (
            f"{q('personal_rating')} {types['int']} "
            f"CHECK ({q('personal_rating')} >= 1 AND {q('personal_rating')} <= 5)"
        ),
        f"{q('review')} {types['text']}",
        f"{q('created_at')} {types['timestamp']}",
        f"{q('updated_at')} {types['timestamp']}",
        f"UNIQUE ({q('user_id')}, {q('game_id')})",
        (
            f"FOREIGN KEY ({q('game_id')}) REFERENCES {q(catalog_table)} ({q('id')}) "
            "ON DELETE CASCADE"
        ),
    ]
    if users_table:
        lines.append(
            f"FOREIGN KEY ({q('user_id')}) REFERENCES {q(users_table)} ({q('id')}) "
            "ON DELETE CASCADE"
        )
    body = ",\n    ".join(lines)
    return f"CREATE TABLE IF NOT EXISTS {q(table)} (\n    {body}\n)"


def ensure_library_table(
    bind: DatabaseEngine | Connection,
    *,
    table: str = "library_games",
    catalog_table: str = "games",
    users_table: str | None = "users",
) -> None:
    """Create the library join table when it is missing."""

    if isinstance(bind, DatabaseEngine):
        with bind.sa_connection() as conn:
            ensure_library_table(
                conn, table=table, catalog_table=catalog_table, users_table=users_table
            )
            conn.commit()
        return

    statement = library_games_table_ddl(
        bind.dialect.name,
        table=table,
        catalog_table=catalog_table,
        users_table=users_table,
    )
    bind.execute(text(statement))


__all__ = [
    "LEGACY_MARKER_COLUMN",
    "SHARED_COLUMNS",
    "USER_COLUMNS",
    "catalog_games_table_ddl",
    "ensure_library_table",
    "legacy_games_table_ddl",
    "library_games_table_ddl",
]
