"""Title grouping and canonical-record selection for legacy games.

Legacy rows are grouped by their normalized title; within a group the record
with the most complete metadata becomes the source of the shared catalog
entry. Matching is exact on the normalized key: titles that differ by an
edition suffix or punctuation stay in separate groups.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, Sequence

from helpers import normalize_title

from .models import GameGroup, LegacyRecord

__all__ = [
    "COMPLETENESS_WEIGHTS",
    "completeness_score",
    "group_games_by_title",
    "select_best_record",
]

COMPLETENESS_WEIGHTS: dict[str, int] = {
    "year": 2,
    "min_players": 1,
    "max_players": 1,
    "play_time_min": 1,
    "play_time_max": 1,
    "box_art_url": 3,
    "description": 3,
    "categories": 2,
    "bgg_rating": 2,
    "bgg_rank": 2,
    "suggested_age": 1,
}

# Records without a parseable creation time lose every tie.
_LATEST = datetime.max.replace(tzinfo=timezone.utc)


def group_games_by_title(records: Iterable[LegacyRecord]) -> list[GameGroup]:
    """Partition ``records`` by normalized title.

    Groups come back in first-occurrence order and keep the original casing of
    the first record seen as their display title.
    """

    groups: dict[str, GameGroup] = {}
    for record in records:
        key = normalize_title(record.title)
        group = groups.get(key)
        if group is None:
            group = GameGroup(title=record.title, normalized_title=key)
            groups[key] = group
        group.records.append(record)
    return list(groups.values())


def _is_populated(column: str, value: object) -> bool:
    if value is None:
        return False
    if column in {"description", "categories"}:
        return len(value) > 0  # type: ignore[arg-type]
    return True


def completeness_score(record: LegacyRecord) -> int:
    """Return the weighted count of populated metadata fields on ``record``."""

    return sum(
        weight
        for column, weight in COMPLETENESS_WEIGHTS.items()
        if _is_populated(column, getattr(record, column))
    )


def select_best_record(records: Sequence[LegacyRecord]) -> LegacyRecord:
    """Return the record whose metadata should seed the catalog entry.

    Highest :func:`completeness_score` wins; ties go to the earliest
    ``created_at``. Records that are still tied keep their input order.
    """

    if not records:
        raise ValueError("select_best_record requires at least one record")
    if len(records) == 1:
        return records[0]

    # min() returns the first of equal keys, which keeps input order on ties.
    return min(
        records,
        key=lambda record: (-completeness_score(record), record.created_at or _LATEST),
    )
