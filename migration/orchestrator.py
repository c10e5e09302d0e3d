"""Drive a full migration from the legacy per-user games table.

The run walks through preflight, fetching, resolving a catalog entry per
title group and writing library entries per record. Failures are contained
at the narrowest scope: a catalog failure fails its group, a library failure
fails its record, and the run always continues to the summary.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Protocol

from db.schema import library_games_table_ddl

from . import report
from .errors import (
    CatalogResolutionError,
    LibraryEntryExistsError,
    LibraryEntryWriteError,
    MigrationPreconditionError,
)
from .grouping import group_games_by_title, select_best_record
from .library import LibraryEntryWriter, LibraryStore
from .models import (
    GameGroup,
    LegacyRecord,
    LibraryEntryData,
    MigrationAction,
    MigrationResult,
    MigrationSummary,
    SharedCatalogData,
)
from .resolver import CatalogLookup, CatalogResolver

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str], None]


class MigrationState(str, Enum):
    PREFLIGHT = "preflight"
    FETCHING = "fetching"
    RESOLVING = "resolving"
    WRITING = "writing"
    SUMMARIZING = "summarizing"
    DONE = "done"


class MigrationStore(CatalogLookup, LibraryStore, Protocol):
    def library_table_exists(self) -> bool: ...

    def has_legacy_schema(self) -> bool: ...

    def fetch_legacy_records(self) -> list[LegacyRecord]: ...

    def update_catalog_entry(self, game_id: str, data: SharedCatalogData) -> None: ...


def _library_table_hint(store: object) -> str:
    dialect = getattr(store, "dialect_name", "postgresql")
    table = getattr(store, "library_table", "library_games")
    catalog_table = getattr(store, "catalog_table", "games")
    try:
        ddl = library_games_table_ddl(dialect, table=table, catalog_table=catalog_table)
    except ValueError:
        ddl = library_games_table_ddl(
            "postgresql", table=table, catalog_table=catalog_table
        )
    return f"Create it with:\n{ddl};"


class MigrationRun:
    """One pass over the legacy table.

    Instances are single use; ``state`` exposes the current phase for callers
    that report progress.
    """

    def __init__(
        self,
        store: MigrationStore,
        *,
        progress: ProgressCallback | None = None,
        resolver: CatalogResolver | None = None,
        writer: LibraryEntryWriter | None = None,
    ):
        self._store = store
        self._progress = progress
        self._resolver = resolver or CatalogResolver(store)
        self._writer = writer or LibraryEntryWriter(store)
        self.state = MigrationState.PREFLIGHT

    def _emit(self, message: str) -> None:
        if self._progress is not None:
            self._progress(message)

    def _enter(self, state: MigrationState) -> None:
        logger.debug("Migration state %s -> %s", self.state.value, state.value)
        self.state = state

    def _preflight(self) -> bool:
        if not self._store.library_table_exists():
            raise MigrationPreconditionError(
                "library_games table does not exist. Please create it before "
                "running this migration.",
                hint=_library_table_hint(self._store),
            )
        if not self._store.has_legacy_schema():
            self._emit(
                "The games table no longer has a user_id column. "
                "The migration may have already been completed."
            )
            logger.info("Legacy schema not detected; nothing to migrate")
            return False
        return True

    def run(self) -> MigrationSummary:
        if self.state is not MigrationState.PREFLIGHT:
            raise RuntimeError("MigrationRun instances can only be run once")

        self._emit("Starting migration to split schema...")
        if not self._preflight():
            self._enter(MigrationState.DONE)
            return MigrationSummary.empty()

        self._enter(MigrationState.FETCHING)
        records = self._store.fetch_legacy_records()
        if not records:
            self._emit("No games found in the database. Nothing to migrate.")
            self._enter(MigrationState.DONE)
            return MigrationSummary.empty()
        self._emit(f"Found {len(records)} legacy game records to migrate.")

        groups = group_games_by_title(records)
        self._emit(f"Identified {len(groups)} unique games (by title).")
        logger.info(
            "Migrating %d legacy records in %d title groups", len(records), len(groups)
        )

        results: list[MigrationResult] = []
        for index, group in enumerate(groups, start=1):
            self._emit(
                report.group_line(index, len(groups), group.title, len(group.records))
            )
            results.extend(self._migrate_group(group))

        self._enter(MigrationState.SUMMARIZING)
        summary = MigrationSummary.from_results(results, unique_titles=len(groups))
        logger.info(
            "Migration finished: %d catalog created, %d library created, "
            "%d skipped, %d failed",
            summary.unique_games_created,
            summary.library_entries_created,
            summary.skipped,
            summary.failed,
        )
        self._enter(MigrationState.DONE)
        return summary

    def _migrate_group(self, group: GameGroup) -> list[MigrationResult]:
        self._enter(MigrationState.RESOLVING)
        best = select_best_record(group.records)
        data = SharedCatalogData.from_record(best)
        try:
            catalog_id, is_new = self._resolver.resolve_or_create(data)
            if not is_new:
                is_new = self._promote_group_member(group, best, catalog_id, data)
        except CatalogResolutionError as exc:
            logger.error("Catalog resolution failed for %r: %s", group.title, exc)
            self._emit(report.catalog_failed_line(str(exc)))
            return [
                MigrationResult(
                    legacy_game_id=record.id,
                    title=record.title,
                    user_id=record.user_id,
                    action=MigrationAction.FAILED,
                    success=False,
                    error=str(exc),
                )
                for record in group.records
            ]

        if is_new:
            catalog_action = MigrationAction.CREATED_CATALOG_ENTRY
            self._emit(report.catalog_created_line(catalog_id))
        else:
            catalog_action = MigrationAction.REUSED_CATALOG_ENTRY
            self._emit(report.catalog_reused_line(catalog_id))

        self._enter(MigrationState.WRITING)
        return [
            self._migrate_record(record, catalog_id, catalog_action)
            for record in group.records
        ]

    def _promote_group_member(
        self,
        group: GameGroup,
        best: LegacyRecord,
        catalog_id: str,
        data: SharedCatalogData,
    ) -> bool:
        """Give an ownerless legacy row found as the catalog entry the best metadata.

        In the in-place layout an ownerless legacy row of this group is what
        the catalog lookup returns. Its metadata is replaced by the best
        record's, and the row counts as a newly created catalog entry. A row
        already carrying the best metadata (a catalog entry from an earlier
        run) is left alone and counts as reused.
        """

        member = next((record for record in group.records if record.id == catalog_id), None)
        if member is None or member is best:
            return False
        if SharedCatalogData.from_record(member) == data:
            return False
        self._store.update_catalog_entry(catalog_id, data)
        logger.info(
            "Promoted ownerless row %s to catalog entry for %r using record %s",
            catalog_id,
            group.title,
            best.id,
        )
        return True

    def _migrate_record(
        self,
        record: LegacyRecord,
        catalog_id: str,
        catalog_action: MigrationAction,
    ) -> MigrationResult:
        def result(action: MigrationAction, **extra) -> MigrationResult:
            return MigrationResult(
                legacy_game_id=record.id,
                title=record.title,
                user_id=record.user_id,
                action=action,
                success=action is not MigrationAction.FAILED,
                catalog_id=catalog_id,
                catalog_action=catalog_action,
                **extra,
            )

        entry = LibraryEntryData.from_record(record, catalog_id)
        if entry is None:
            self._emit(report.skipped_without_user_line())
            return result(MigrationAction.SKIPPED)

        try:
            entry_id = self._writer.attach_entry(entry)
        except LibraryEntryExistsError:
            self._emit(report.skipped_existing_line(entry.user_id))
            return result(MigrationAction.SKIPPED)
        except LibraryEntryWriteError as exc:
            logger.error("Library entry for legacy game %s failed: %s", record.id, exc)
            self._emit(report.library_failed_line(str(exc)))
            return result(MigrationAction.FAILED, error=str(exc))

        self._emit(report.library_created_line(entry))
        return result(MigrationAction.CREATED_LIBRARY_ENTRY, library_entry_id=entry_id)


def migrate_to_split_schema(
    store: MigrationStore,
    *,
    progress: ProgressCallback | None = None,
) -> MigrationSummary:
    """Migrate every legacy record in ``store`` and return the run summary.

    Raises :class:`MigrationPreconditionError` when the library table is
    missing. A store without the legacy ``user_id`` column yields an empty
    summary. Safe to re-run: existing catalog rows are reused and existing
    library entries are skipped.
    """

    return MigrationRun(store, progress=progress).run()


__all__ = [
    "MigrationRun",
    "MigrationState",
    "MigrationStore",
    "migrate_to_split_schema",
]
