"""Seed the shared catalog from a BoardGameGeek CSV export.

Column mapping (CSV -> catalog):

* ``BGGId`` -> deterministic ``id`` (UUID5)
* ``Name`` -> ``title``
* ``Description`` -> ``description``
* ``YearPublished`` -> ``year``
* ``MinPlayers`` / ``MaxPlayers`` -> ``min_players`` / ``max_players``
* ``ComMinPlaytime`` / ``ComMaxPlaytime`` -> play time, falling back to ``MfgPlaytime``
* ``ImagePath`` -> ``box_art_url``
* ``AvgRating`` -> ``bgg_rating``
* ``Rank:boardgame`` -> ``bgg_rank``
* ``ComAgeRec`` -> ``suggested_age``, falling back to ``MfgAgeRec``
* ``Cat:*`` flag columns -> ``categories``
"""

from __future__ import annotations

import argparse
import logging
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Mapping, Protocol, Sequence

import pandas as pd
from sqlalchemy.exc import SQLAlchemyError

import config
from helpers import coerce_float, coerce_int, has_text_value
from migration.cli import configure_logging, open_catalog_store

logger = logging.getLogger(__name__)

BGG_UUID_NAMESPACE = uuid.UUID("6ba7b810-9dad-11d1-80b4-00c04fd430c8")
DEFAULT_BATCH_SIZE = 100
MAX_DESCRIPTION_LENGTH = 10_000
UNRANKED_THRESHOLD = 20_000
MAX_PRINTED_ERRORS = 20

CATEGORY_MAP: dict[str, str] = {
    "Cat:Thematic": "Thematic",
    "Cat:Strategy": "Strategy",
    "Cat:War": "War",
    "Cat:Family": "Family",
    "Cat:CGS": "Collectible Card Game",
    "Cat:Abstract": "Abstract",
    "Cat:Party": "Party",
    "Cat:Childrens": "Children's",
}


class CatalogWriter(Protocol):
    def upsert_catalog_entries(self, rows: Iterable[Mapping[str, Any]]) -> int: ...


@dataclass
class ImportFailure:
    bgg_id: str
    title: str
    error: str


@dataclass
class PopulateResult:
    total: int = 0
    inserted: int = 0
    skipped: int = 0
    failed: int = 0
    errors: list[ImportFailure] = field(default_factory=list)

    @property
    def exit_code(self) -> int:
        return 1 if self.failed else 0


def bgg_id_to_uuid(bgg_id: str) -> str:
    return str(uuid.uuid5(BGG_UUID_NAMESPACE, str(bgg_id).strip()))


def _text(row: Mapping[str, Any], column: str) -> str:
    value = row.get(column)
    return value.strip() if has_text_value(value) else ""


def parse_rank(value: Any) -> int | None:
    """Return the BGG rank, or ``None`` for BGG's high "unranked" markers."""

    rank = coerce_int(value)
    if rank is not None and rank > UNRANKED_THRESHOLD:
        return None
    return rank


def clean_description(value: Any) -> str | None:
    if not has_text_value(value):
        return None
    cleaned = str(value).strip()
    if len(cleaned) > MAX_DESCRIPTION_LENGTH:
        cleaned = cleaned[: MAX_DESCRIPTION_LENGTH - 3] + "..."
    return cleaned or None


def extract_categories(row: Mapping[str, Any]) -> list[str] | None:
    categories = [
        name for column, name in CATEGORY_MAP.items() if _text(row, column) == "1"
    ]
    return categories or None


def transform_row(row: Mapping[str, Any]) -> dict[str, Any]:
    """Map one CSV row onto catalog columns.

    Raises :class:`ValueError` when the row has no BGG id or no name.
    """

    bgg_id = _text(row, "BGGId")
    title = _text(row, "Name")
    if not bgg_id:
        raise ValueError("Row is missing BGGId")
    if not title:
        raise ValueError("Row is missing Name")

    mfg_playtime = coerce_int(row.get("MfgPlaytime"))
    play_time_min = coerce_int(row.get("ComMinPlaytime"))
    play_time_max = coerce_int(row.get("ComMaxPlaytime"))
    suggested_age = coerce_int(row.get("ComAgeRec"))
    if suggested_age is None:
        suggested_age = coerce_int(row.get("MfgAgeRec"))

    return {
        "id": bgg_id_to_uuid(bgg_id),
        "title": title,
        "description": clean_description(row.get("Description")),
        "year": coerce_int(row.get("YearPublished")),
        "min_players": coerce_int(row.get("MinPlayers")),
        "max_players": coerce_int(row.get("MaxPlayers")),
        "play_time_min": play_time_min if play_time_min is not None else mfg_playtime,
        "play_time_max": play_time_max if play_time_max is not None else mfg_playtime,
        "box_art_url": _text(row, "ImagePath") or None,
        "bgg_rating": coerce_float(row.get("AvgRating")),
        "bgg_rank": parse_rank(row.get("Rank:boardgame")),
        "suggested_age": suggested_age,
        "categories": extract_categories(row),
    }


def read_bgg_csv(csv_path: Path) -> pd.DataFrame:
    csv_path = Path(csv_path)
    if not csv_path.exists():
        raise FileNotFoundError(f"CSV file not found: {csv_path}")
    return pd.read_csv(
        csv_path,
        dtype=str,
        keep_default_na=False,
        skip_blank_lines=True,
        on_bad_lines="warn",
    )


def _batches(rows: Sequence[dict[str, Any]], size: int) -> Iterable[list[dict[str, Any]]]:
    for start in range(0, len(rows), size):
        yield list(rows[start : start + size])


def populate_games_from_bgg(
    store: CatalogWriter | None,
    csv_path: Path,
    *,
    dry_run: bool = False,
    limit: int | None = None,
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> PopulateResult:
    """Upsert the catalog rows described by ``csv_path`` into ``store``.

    A dry run transforms every row and counts it as inserted without touching
    ``store``, which may then be ``None``.
    """

    if batch_size <= 0:
        raise ValueError("batch_size must be positive")
    if store is None and not dry_run:
        raise ValueError("A catalog store is required unless dry_run is set")

    frame = read_bgg_csv(csv_path)
    print(f"Found {len(frame)} games in CSV")
    if limit and limit > 0:
        frame = frame.head(limit)
        print(f"Processing first {len(frame)} games only")

    result = PopulateResult(total=len(frame))
    games: list[dict[str, Any]] = []
    for record in frame.to_dict(orient="records"):
        try:
            games.append(transform_row(record))
        except ValueError as exc:
            result.failed += 1
            result.errors.append(
                ImportFailure(
                    bgg_id=_text(record, "BGGId"),
                    title=_text(record, "Name") or "Unknown",
                    error=str(exc),
                )
            )
    print(f"Transformed {len(games)} games successfully")

    total_batches = (len(games) + batch_size - 1) // batch_size
    for number, batch in enumerate(_batches(games, batch_size), start=1):
        logger.debug("Writing batch %d/%d (%d rows)", number, total_batches, len(batch))
        if dry_run:
            result.inserted += len(batch)
            continue
        try:
            result.inserted += store.upsert_catalog_entries(batch)
        except SQLAlchemyError as exc:
            logger.error("Batch %d/%d failed: %s", number, total_batches, exc)
            result.failed += len(batch)
            result.errors.extend(
                ImportFailure(bgg_id=game["id"], title=game["title"], error=str(exc))
                for game in batch
            )
    return result


def format_result(result: PopulateResult) -> str:
    border = "=" * 60
    lines = [
        border,
        "IMPORT SUMMARY",
        border,
        f"Total games in CSV:     {result.total}",
        f"Successfully inserted:  {result.inserted}",
        f"Failed:                 {result.failed}",
        border,
    ]
    if result.errors:
        shown = result.errors[:MAX_PRINTED_ERRORS]
        if len(result.errors) > MAX_PRINTED_ERRORS:
            lines.append(f"\nFirst {MAX_PRINTED_ERRORS} errors ({len(result.errors)} total):")
        else:
            lines.append("\nErrors:")
        lines.extend(
            f"  - {error.title} (BGG ID: {error.bgg_id}): {error.error}" for error in shown
        )
    return "\n".join(lines)


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Populate the shared games catalog from a BoardGameGeek CSV export."
    )
    parser.add_argument("--csv", type=Path, default=config.BGG_CSV_PATH)
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Preview the import without writing anything",
    )
    parser.add_argument("--limit", type=int, default=None, help="Only process the first N games")
    parser.add_argument(
        "--batch",
        type=int,
        default=config.BGG_IMPORT_BATCH_SIZE,
        help="Rows per upsert batch",
    )
    parser.add_argument("--debug", action="store_true", default=config.DEBUG_LOGGING)
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    configure_logging(args.debug)

    print("BGG Games Import".center(60, "="))
    if args.dry_run:
        print("MODE: Dry run (no changes will be made)")
    print(f"CSV Path: {args.csv}")
    print(f"Batch Size: {args.batch}")

    store = None
    try:
        if not args.dry_run:
            store = open_catalog_store()
        result = populate_games_from_bgg(
            store,
            args.csv,
            dry_run=args.dry_run,
            limit=args.limit,
            batch_size=args.batch,
        )
    except (RuntimeError, FileNotFoundError, ValueError) as exc:
        logger.error("Import failed: %s", exc)
        print(f"Import failed: {exc}")
        return 1
    finally:
        if store is not None:
            store.close()

    print(format_result(result))
    return result.exit_code


__all__ = [
    "BGG_UUID_NAMESPACE",
    "CATEGORY_MAP",
    "ImportFailure",
    "PopulateResult",
    "bgg_id_to_uuid",
    "clean_description",
    "extract_categories",
    "main",
    "parse_rank",
    "populate_games_from_bgg",
    "transform_row",
]
