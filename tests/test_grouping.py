from datetime import datetime, timezone

import pytest

from migration.grouping import (
    completeness_score,
    group_games_by_title,
    select_best_record,
)
from migration.models import LegacyRecord


def _record(record_id, title="Catan", **fields):
    return LegacyRecord(id=record_id, title=title, **fields)


def test_group_games_by_title_merges_normalized_titles():
    records = [
        _record("1", "Catan", user_id="u1"),
        _record("2", "Azul", user_id="u1"),
        _record("3", "catan ", user_id="u2"),
        _record("4", "CATAN", user_id="u3"),
        _record("5", "Catan II", user_id="u1"),
    ]

    groups = group_games_by_title(records)

    assert [group.normalized_title for group in groups] == ["catan", "azul", "catan ii"]
    assert groups[0].title == "Catan"
    assert [record.id for record in groups[0].records] == ["1", "3", "4"]
    assert [record.id for record in groups[1].records] == ["2"]


def test_group_games_by_title_partitions_every_record():
    records = [_record(str(index), f"Game {index % 3}") for index in range(10)]

    groups = group_games_by_title(records)

    grouped_ids = sorted(record.id for group in groups for record in group.records)
    assert grouped_ids == sorted(record.id for record in records)


def test_group_games_by_title_empty():
    assert group_games_by_title([]) == []


def test_completeness_score_weights():
    full = _record(
        "1",
        year=1995,
        min_players=3,
        max_players=4,
        play_time_min=60,
        play_time_max=120,
        box_art_url="https://example.com/catan.jpg",
        description="Trade and build.",
        categories=("Strategy",),
        bgg_rating=7.1,
        bgg_rank=400,
        suggested_age=10,
    )

    assert completeness_score(full) == 19
    assert completeness_score(_record("2")) == 0


def test_completeness_score_ignores_empty_description_and_categories():
    record = _record("1", description="", categories=())

    assert completeness_score(record) == 0


def test_select_best_record_prefers_more_complete_metadata():
    with_art = _record("a", box_art_url="https://example.com/a.jpg", description="Great")
    with_year = _record("b", year=1995, bgg_rating=7.0)

    assert select_best_record([with_art, with_year]) is with_art
    assert select_best_record([with_year, with_art]) is with_art


def test_select_best_record_breaks_ties_by_earliest_creation():
    older = _record("old", year=2000, created_at=datetime(2023, 1, 1, tzinfo=timezone.utc))
    newer = _record("new", year=2000, created_at=datetime(2024, 1, 1, tzinfo=timezone.utc))

    assert select_best_record([newer, older]) is older
    assert select_best_record([older, newer]) is older


def test_select_best_record_missing_timestamp_loses_ties():
    undated = _record("undated", year=2000)
    dated = _record("dated", year=2000, created_at=datetime(2024, 1, 1, tzinfo=timezone.utc))

    assert select_best_record([undated, dated]) is dated


def test_select_best_record_keeps_input_order_on_full_tie():
    first = _record("first")
    second = _record("second")

    assert select_best_record([first, second]) is first


def test_select_best_record_requires_records():
    with pytest.raises(ValueError):
        select_best_record([])
