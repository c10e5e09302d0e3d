"""SQL access for the migration: legacy rows, catalog entries, library entries.

Every operation runs on its own connection and commits immediately. The
migration deliberately avoids a run-wide transaction so a killed run keeps the
writes that already succeeded and can be resumed by running it again.
"""

from __future__ import annotations

import json
import logging
import uuid
from typing import Any, Callable, Iterable, Mapping

from sqlalchemy import text
from sqlalchemy.engine import Connection
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from db import utils as db_utils
from db.schema import LEGACY_MARKER_COLUMN, SHARED_COLUMNS
from helpers import normalize_title

from .errors import (
    CatalogResolutionError,
    LibraryEntryExistsError,
    LibraryEntryWriteError,
)
from .models import LegacyRecord, LibraryEntryData, SharedCatalogData

logger = logging.getLogger(__name__)

SHARED_COLUMN_NAMES: tuple[str, ...] = tuple(name for name, _ in SHARED_COLUMNS)


def _new_id() -> str:
    return str(uuid.uuid4())


class CatalogStore:
    """Backing store for the catalog migration and the catalog seeder.

    ``legacy_table`` and ``catalog_table`` may name the same table, which is
    the in-place layout: catalog rows are then the ones without an owning
    ``user_id``.
    """

    def __init__(
        self,
        database: db_utils.DatabaseEngine,
        *,
        legacy_table: str = "games",
        catalog_table: str = "games",
        library_table: str = "library_games",
        id_factory: Callable[[], str] = _new_id,
    ):
        self._database = database
        self.legacy_table = legacy_table
        self.catalog_table = catalog_table
        self.library_table = library_table
        self._id_factory = id_factory

    @property
    def dialect_name(self) -> str:
        return self._database.dialect_name

    def close(self) -> None:
        self._database.dispose()

    def _quote(self, name: str) -> str:
        return db_utils.quote_identifier(name, self._database)

    def _columns(self, conn: Connection, table: str) -> set[str] | None:
        return db_utils.get_table_columns(conn, table)

    def _encode_categories(self, categories: Any) -> Any:
        if categories is None:
            return None
        values = [str(value) for value in categories]
        if self.dialect_name == "postgresql":
            return values
        return json.dumps(values, ensure_ascii=False)

    def library_table_exists(self) -> bool:
        with self._database.sa_connection() as conn:
            return self._columns(conn, self.library_table) is not None

    def has_legacy_schema(self) -> bool:
        """Return ``True`` when the source table still carries per-user columns."""

        with self._database.sa_connection() as conn:
            columns = self._columns(conn, self.legacy_table)
        if columns is None:
            logger.warning("Source table %s does not exist", self.legacy_table)
            return False
        return LEGACY_MARKER_COLUMN in columns

    def fetch_legacy_records(self) -> list[LegacyRecord]:
        """Load every legacy row ordered by title."""

        statement = text(
            f"SELECT * FROM {self._quote(self.legacy_table)} "
            f"ORDER BY {self._quote('title')}"
        )
        with self._database.sa_connection() as conn:
            rows = conn.execute(statement).mappings().all()
        return [LegacyRecord.from_row(row) for row in rows]

    def list_catalog_titles(self) -> list[tuple[str, str]]:
        """Return ``(id, title)`` for every shared catalog row."""

        with self._database.sa_connection() as conn:
            columns = self._columns(conn, self.catalog_table) or set()
            where = ""
            if LEGACY_MARKER_COLUMN in columns:
                where = f" WHERE {self._quote(LEGACY_MARKER_COLUMN)} IS NULL"
            statement = text(
                f"SELECT {self._quote('id')} AS id, {self._quote('title')} AS title "
                f"FROM {self._quote(self.catalog_table)}{where}"
            )
            rows = conn.execute(statement).mappings().all()
        return [(str(row["id"]), str(row["title"] or "")) for row in rows]

    def find_catalog_id_by_title(self, title: str) -> str | None:
        """Return the id of the catalog row whose title normalizes like ``title``."""

        key = normalize_title(title)
        try:
            entries = self.list_catalog_titles()
        except SQLAlchemyError as exc:
            raise CatalogResolutionError(
                f'Failed to look up shared game "{title}": {exc}'
            ) from exc
        for game_id, existing_title in entries:
            if normalize_title(existing_title) == key:
                return game_id
        return None

    def insert_catalog_entry(self, data: SharedCatalogData) -> str:
        """Insert a new catalog row and return its id."""

        game_id = self._id_factory()
        row = data.as_row()
        row["categories"] = self._encode_categories(row["categories"])
        columns = ("id",) + SHARED_COLUMN_NAMES
        statement = text(
            f"INSERT INTO {self._quote(self.catalog_table)} "
            f"({', '.join(self._quote(column) for column in columns)}) "
            f"VALUES ({', '.join(f':{column}' for column in columns)})"
        )
        try:
            with self._database.sa_connection() as conn:
                conn.execute(statement, {"id": game_id, **row})
                conn.commit()
        except SQLAlchemyError as exc:
            raise CatalogResolutionError(
                f'Failed to create shared game "{data.title}": {exc}'
            ) from exc
        return game_id

    def update_catalog_entry(self, game_id: str, data: SharedCatalogData) -> None:
        """Overwrite the shared metadata of catalog row ``game_id`` with ``data``."""

        row = data.as_row()
        row["categories"] = self._encode_categories(row["categories"])
        assignments = ", ".join(
            f"{self._quote(column)} = :{column}" for column in SHARED_COLUMN_NAMES
        )
        statement = text(
            f"UPDATE {self._quote(self.catalog_table)} SET {assignments} "
            f"WHERE {self._quote('id')} = :id"
        )
        try:
            with self._database.sa_connection() as conn:
                conn.execute(statement, {"id": game_id, **row})
                conn.commit()
        except SQLAlchemyError as exc:
            raise CatalogResolutionError(
                f'Failed to update shared game "{data.title}": {exc}'
            ) from exc

    def library_entry_exists(self, user_id: str, game_id: str) -> bool:
        statement = text(
            f"SELECT {self._quote('id')} FROM {self._quote(self.library_table)} "
            f"WHERE {self._quote('user_id')} = :user_id "
            f"AND {self._quote('game_id')} = :game_id"
        )
        try:
            with self._database.sa_connection() as conn:
                row = conn.execute(
                    statement, {"user_id": user_id, "game_id": game_id}
                ).first()
        except SQLAlchemyError as exc:
            raise LibraryEntryWriteError(f"Error checking library entry: {exc}") from exc
        return row is not None

    def insert_library_entry(self, entry: LibraryEntryData) -> str:
        """Insert ``entry`` and return the new library entry id.

        A unique-constraint violation on ``(user_id, game_id)`` is reported as
        :class:`LibraryEntryExistsError`.
        """

        entry_id = self._id_factory()
        statement = text(
            f"INSERT INTO {self._quote(self.library_table)} "
            f"({self._quote('id')}, {self._quote('user_id')}, {self._quote('game_id')}, "
            f"{self._quote('play_count')}, {self._quote('personal_rating')}, "
            f"{self._quote('review')}) "
            "VALUES (:id, :user_id, :game_id, :play_count, :personal_rating, :review)"
        )
        parameters = {
            "id": entry_id,
            "user_id": entry.user_id,
            "game_id": entry.game_id,
            "play_count": entry.play_count,
            "personal_rating": entry.personal_rating,
            "review": entry.review,
        }
        try:
            with self._database.sa_connection() as conn:
                conn.execute(statement, parameters)
                conn.commit()
        except IntegrityError as exc:
            if self.library_entry_exists(entry.user_id, entry.game_id):
                raise LibraryEntryExistsError(entry.user_id, entry.game_id) from exc
            raise LibraryEntryWriteError(str(exc.orig or exc)) from exc
        except SQLAlchemyError as exc:
            raise LibraryEntryWriteError(str(exc)) from exc
        return entry_id

    def _catalog_upsert_statement(self):
        columns = ("id",) + SHARED_COLUMN_NAMES
        column_sql = ", ".join(self._quote(column) for column in columns)
        values_sql = ", ".join(f":{column}" for column in columns)
        table = self._quote(self.catalog_table)
        if self.dialect_name in {"mysql", "mariadb"}:
            updates = ", ".join(
                f"{self._quote(column)} = VALUES({self._quote(column)})"
                for column in SHARED_COLUMN_NAMES
            )
            return text(
                f"INSERT INTO {table} ({column_sql}) VALUES ({values_sql}) "
                f"ON DUPLICATE KEY UPDATE {updates}"
            )
        updates = ", ".join(
            f"{self._quote(column)} = excluded.{self._quote(column)}"
            for column in SHARED_COLUMN_NAMES
        )
        return text(
            f"INSERT INTO {table} ({column_sql}) VALUES ({values_sql}) "
            f"ON CONFLICT({self._quote('id')}) DO UPDATE SET {updates}"
        )

    def upsert_catalog_entries(self, rows: Iterable[Mapping[str, Any]]) -> int:
        """Insert or update catalog rows keyed by ``id`` in one transaction.

        Returns the number of rows written. Raises :class:`SQLAlchemyError` when
        the batch fails; nothing from the batch is kept in that case.
        """

        payload = []
        for row in rows:
            values = {column: row.get(column) for column in SHARED_COLUMN_NAMES}
            values["id"] = str(row["id"])
            values["categories"] = self._encode_categories(values["categories"])
            payload.append(values)
        if not payload:
            return 0
        statement = self._catalog_upsert_statement()
        with self._database.sa_connection() as conn:
            with conn.begin():
                conn.execute(statement, payload)
        return len(payload)


__all__ = ["CatalogStore", "SHARED_COLUMN_NAMES"]
