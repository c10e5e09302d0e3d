"""Shared testing helpers for building throwaway catalog stores on SQLite."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Iterable, Mapping

from sqlalchemy import text

from db import utils as db_utils
from db.schema import ensure_library_table, legacy_games_table_ddl
from migration.store import CatalogStore


def build_sqlite_database(tmp_path: Path) -> db_utils.DatabaseEngine:
    """Return an engine for a fresh on-disk SQLite database under ``tmp_path``."""

    return db_utils.build_engine_from_dsn(f"sqlite:///{tmp_path / 'catalog.db'}")


def create_legacy_table(database: db_utils.DatabaseEngine, table: str = "games") -> None:
    with database.sa_connection() as conn:
        conn.execute(text(legacy_games_table_ddl("sqlite", table)))
        conn.commit()


def create_library_table(database: db_utils.DatabaseEngine) -> None:
    ensure_library_table(database, users_table=None)


def insert_legacy_rows(
    database: db_utils.DatabaseEngine,
    rows: Iterable[Mapping[str, Any]],
    table: str = "games",
) -> None:
    """Insert legacy rows, JSON-encoding category lists like the live schema."""

    with database.sa_connection() as conn:
        for row in rows:
            values = dict(row)
            if isinstance(values.get("categories"), (list, tuple)):
                values["categories"] = json.dumps(list(values["categories"]))
            columns = ", ".join(f'"{name}"' for name in values)
            params = ", ".join(f":{name}" for name in values)
            conn.execute(text(f'INSERT INTO "{table}" ({columns}) VALUES ({params})'), values)
        conn.commit()


def fetch_rows(database: db_utils.DatabaseEngine, statement: str, **params: Any) -> list[dict]:
    with database.sa_connection() as conn:
        return [dict(row) for row in conn.execute(text(statement), params).mappings()]


def make_store(database: db_utils.DatabaseEngine, **kwargs: Any) -> CatalogStore:
    return CatalogStore(database, **kwargs)
