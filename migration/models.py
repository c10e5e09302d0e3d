"""Value objects passed between the stages of a catalog migration run."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Mapping

from helpers import (
    coerce_float,
    coerce_int,
    is_missing,
    normalize_title,
    parse_category_list,
    parse_timestamp,
)


class MigrationAction(str, Enum):
    CREATED_CATALOG_ENTRY = "created_catalog_entry"
    REUSED_CATALOG_ENTRY = "reused_catalog_entry"
    CREATED_LIBRARY_ENTRY = "created_library_entry"
    SKIPPED = "skipped"
    FAILED = "failed"


def _optional_text(value: Any) -> str | None:
    if is_missing(value):
        return None
    return str(value)


@dataclass(frozen=True)
class LegacyRecord:
    """One row of the pre-migration games table (shared and per-user fields)."""

    id: str
    title: str
    user_id: str | None = None
    year: int | None = None
    min_players: int | None = None
    max_players: int | None = None
    play_time_min: int | None = None
    play_time_max: int | None = None
    box_art_url: str | None = None
    description: str | None = None
    categories: tuple[str, ...] | None = None
    bgg_rating: float | None = None
    bgg_rank: int | None = None
    suggested_age: int | None = None
    play_count: int | None = None
    personal_rating: int | None = None
    review: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "LegacyRecord":
        """Build a record from a mapping of column name to stored value."""

        categories = parse_category_list(row.get("categories"))
        return cls(
            id=str(row["id"]),
            title=str(row.get("title") or ""),
            user_id=_optional_text(row.get("user_id")),
            year=coerce_int(row.get("year")),
            min_players=coerce_int(row.get("min_players")),
            max_players=coerce_int(row.get("max_players")),
            play_time_min=coerce_int(row.get("play_time_min")),
            play_time_max=coerce_int(row.get("play_time_max")),
            box_art_url=_optional_text(row.get("box_art_url")),
            description=_optional_text(row.get("description")),
            categories=tuple(categories) if categories is not None else None,
            bgg_rating=coerce_float(row.get("bgg_rating")),
            bgg_rank=coerce_int(row.get("bgg_rank")),
            suggested_age=coerce_int(row.get("suggested_age")),
            play_count=coerce_int(row.get("play_count")),
            personal_rating=coerce_int(row.get("personal_rating")),
            review=_optional_text(row.get("review")),
            created_at=parse_timestamp(row.get("created_at")),
            updated_at=parse_timestamp(row.get("updated_at")),
        )


@dataclass(frozen=True)
class SharedCatalogData:
    """Descriptive metadata written once per catalog entry."""

    title: str
    year: int | None = None
    min_players: int | None = None
    max_players: int | None = None
    play_time_min: int | None = None
    play_time_max: int | None = None
    box_art_url: str | None = None
    description: str | None = None
    categories: tuple[str, ...] | None = None
    bgg_rating: float | None = None
    bgg_rank: int | None = None
    suggested_age: int | None = None

    @property
    def normalized_title(self) -> str:
        return normalize_title(self.title)

    @classmethod
    def from_record(cls, record: LegacyRecord) -> "SharedCatalogData":
        return cls(
            title=record.title,
            year=record.year,
            min_players=record.min_players,
            max_players=record.max_players,
            play_time_min=record.play_time_min,
            play_time_max=record.play_time_max,
            box_art_url=record.box_art_url,
            description=record.description,
            categories=record.categories,
            bgg_rating=record.bgg_rating,
            bgg_rank=record.bgg_rank,
            suggested_age=record.suggested_age,
        )

    def as_row(self) -> dict[str, Any]:
        """Return the column mapping used for inserts."""

        return {
            "title": self.title,
            "year": self.year,
            "min_players": self.min_players,
            "max_players": self.max_players,
            "play_time_min": self.play_time_min,
            "play_time_max": self.play_time_max,
            "box_art_url": self.box_art_url,
            "description": self.description,
            "categories": list(self.categories) if self.categories is not None else None,
            "bgg_rating": self.bgg_rating,
            "bgg_rank": self.bgg_rank,
            "suggested_age": self.suggested_age,
        }


@dataclass(frozen=True)
class LibraryEntryData:
    """Per-user tracking data attached to a catalog entry."""

    user_id: str
    game_id: str
    play_count: int = 0
    personal_rating: int | None = None
    review: str | None = None

    @classmethod
    def from_record(cls, record: LegacyRecord, game_id: str) -> "LibraryEntryData | None":
        """Return the entry for ``record`` or ``None`` when it has no owner."""

        if not record.user_id:
            return None
        return cls(
            user_id=record.user_id,
            game_id=game_id,
            play_count=record.play_count if record.play_count is not None else 0,
            personal_rating=record.personal_rating,
            review=record.review,
        )


@dataclass
class GameGroup:
    """Legacy records sharing one normalized title."""

    title: str
    normalized_title: str
    records: list[LegacyRecord] = field(default_factory=list)


@dataclass(frozen=True)
class MigrationResult:
    """Outcome for a single legacy record.

    ``action`` describes what happened to the record itself; ``catalog_action``
    records whether the group's catalog entry was created or reused.
    """

    legacy_game_id: str
    title: str
    user_id: str | None
    action: MigrationAction
    success: bool
    catalog_id: str | None = None
    library_entry_id: str | None = None
    catalog_action: MigrationAction | None = None
    error: str | None = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "legacy_game_id": self.legacy_game_id,
            "title": self.title,
            "user_id": self.user_id,
            "action": self.action.value,
            "success": self.success,
            "catalog_id": self.catalog_id,
            "library_entry_id": self.library_entry_id,
            "catalog_action": self.catalog_action.value if self.catalog_action else None,
            "error": self.error,
        }


@dataclass(frozen=True)
class MigrationSummary:
    total_legacy_games: int = 0
    unique_titles: int = 0
    unique_games_created: int = 0
    catalog_entries_reused: int = 0
    library_entries_created: int = 0
    skipped: int = 0
    failed: int = 0
    results: tuple[MigrationResult, ...] = ()

    @classmethod
    def empty(cls) -> "MigrationSummary":
        return cls()

    @classmethod
    def from_results(
        cls,
        results: list[MigrationResult],
        *,
        unique_titles: int,
    ) -> "MigrationSummary":
        """Fold per-record results into the aggregate counters."""

        created_ids: set[str] = set()
        reused_ids: set[str] = set()
        library_created = skipped = failed = 0
        for result in results:
            if result.catalog_id is not None:
                if result.catalog_action is MigrationAction.CREATED_CATALOG_ENTRY:
                    created_ids.add(result.catalog_id)
                elif result.catalog_action is MigrationAction.REUSED_CATALOG_ENTRY:
                    reused_ids.add(result.catalog_id)
            if result.action is MigrationAction.CREATED_LIBRARY_ENTRY:
                library_created += 1
            elif result.action is MigrationAction.SKIPPED:
                skipped += 1
            elif result.action is MigrationAction.FAILED:
                failed += 1
        return cls(
            total_legacy_games=len(results),
            unique_titles=unique_titles,
            unique_games_created=len(created_ids),
            catalog_entries_reused=len(reused_ids - created_ids),
            library_entries_created=library_created,
            skipped=skipped,
            failed=failed,
            results=tuple(results),
        )

    @property
    def exit_code(self) -> int:
        return 1 if self.failed else 0


__all__ = [
    "GameGroup",
    "LegacyRecord",
    "LibraryEntryData",
    "MigrationAction",
    "MigrationResult",
    "MigrationSummary",
    "SharedCatalogData",
]
