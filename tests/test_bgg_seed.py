import uuid

import pandas as pd
import pytest
from sqlalchemy.exc import OperationalError

from seed import bgg
from tests.store_helpers import create_legacy_table, fetch_rows, make_store

CSV_COLUMNS = [
    "BGGId",
    "Name",
    "Description",
    "YearPublished",
    "MinPlayers",
    "MaxPlayers",
    "MfgPlaytime",
    "ComMinPlaytime",
    "ComMaxPlaytime",
    "MfgAgeRec",
    "ComAgeRec",
    "AvgRating",
    "ImagePath",
    "Rank:boardgame",
    "Cat:Thematic",
    "Cat:Strategy",
    "Cat:Family",
    "Cat:CGS",
]


def _row(**overrides):
    row = {
        "BGGId": "13",
        "Name": " Catan ",
        "Description": "Trade, build and settle.",
        "YearPublished": "1995",
        "MinPlayers": "3",
        "MaxPlayers": "4",
        "MfgPlaytime": "120",
        "ComMinPlaytime": "60",
        "ComMaxPlaytime": "",
        "MfgAgeRec": "10",
        "ComAgeRec": "9.6",
        "AvgRating": "7.1",
        "ImagePath": "https://example.com/catan.jpg",
        "Rank:boardgame": "429",
        "Cat:Thematic": "0",
        "Cat:Strategy": "1",
        "Cat:Family": "1",
        "Cat:CGS": "0",
    }
    row.update(overrides)
    return row


def _write_csv(path, rows):
    pd.DataFrame(rows, columns=CSV_COLUMNS).to_csv(path, index=False)
    return path


def test_transform_row_maps_columns():
    game = bgg.transform_row(_row())

    assert game["id"] == str(uuid.uuid5(bgg.BGG_UUID_NAMESPACE, "13"))
    assert game["title"] == "Catan"
    assert game["year"] == 1995
    assert (game["min_players"], game["max_players"]) == (3, 4)
    assert game["play_time_min"] == 60
    assert game["play_time_max"] == 120
    assert game["suggested_age"] == 9
    assert game["bgg_rating"] == pytest.approx(7.1)
    assert game["bgg_rank"] == 429
    assert game["categories"] == ["Strategy", "Family"]
    assert game["box_art_url"] == "https://example.com/catan.jpg"


def test_transform_row_edge_values():
    game = bgg.transform_row(
        _row(
            **{
                "Rank:boardgame": "21926",
                "ComAgeRec": "",
                "Cat:Strategy": "0",
                "Cat:Family": "0",
                "ImagePath": " ",
                "Description": "x" * 12000,
            }
        )
    )

    assert game["bgg_rank"] is None
    assert game["suggested_age"] == 10
    assert game["categories"] is None
    assert game["box_art_url"] is None
    assert len(game["description"]) == 10000
    assert game["description"].endswith("...")


def test_transform_row_requires_name():
    with pytest.raises(ValueError):
        bgg.transform_row(_row(Name=""))


def test_dry_run_counts_rows_without_store(tmp_path):
    csv_path = _write_csv(
        tmp_path / "games.csv",
        [_row(), _row(BGGId="822", Name="Carcassonne"), _row(BGGId="9", Name="")],
    )

    result = bgg.populate_games_from_bgg(None, csv_path, dry_run=True)

    assert (result.total, result.inserted, result.failed) == (3, 2, 1)
    assert result.errors[0].title == "Unknown"
    assert result.exit_code == 1


def test_populate_upserts_into_catalog(tmp_path, sqlite_database):
    create_legacy_table(sqlite_database)
    store = make_store(sqlite_database)
    csv_path = _write_csv(
        tmp_path / "games.csv",
        [_row(), _row(BGGId="822", Name="Carcassonne"), _row(BGGId="30549", Name="Pandemic")],
    )

    result = bgg.populate_games_from_bgg(store, csv_path, batch_size=2, limit=2)
    again = bgg.populate_games_from_bgg(store, csv_path, batch_size=2)

    assert (result.total, result.inserted, result.failed) == (2, 2, 0)
    assert again.inserted == 3
    rows = fetch_rows(sqlite_database, "SELECT title, categories FROM games ORDER BY title")
    assert [row["title"] for row in rows] == ["Carcassonne", "Catan", "Pandemic"]
    assert rows[1]["categories"] == '["Strategy", "Family"]'


class FlakyStore:
    def __init__(self):
        self.calls = 0

    def upsert_catalog_entries(self, rows):
        self.calls += 1
        if self.calls == 1:
            raise OperationalError("INSERT", {}, Exception("database is locked"))
        return len(list(rows))


def test_failed_batch_marks_rows_failed_and_continues(tmp_path):
    csv_path = _write_csv(
        tmp_path / "games.csv",
        [_row(BGGId=str(index), Name=f"Game {index}") for index in range(5)],
    )

    result = bgg.populate_games_from_bgg(FlakyStore(), csv_path, batch_size=2)

    assert result.failed == 2
    assert result.inserted == 3
    assert {error.title for error in result.errors} == {"Game 0", "Game 1"}


def test_format_result_limits_printed_errors():
    result = bgg.PopulateResult(
        total=30,
        failed=30,
        errors=[bgg.ImportFailure(str(index), f"Game {index}", "boom") for index in range(30)],
    )

    text = bgg.format_result(result)

    assert "First 20 errors (30 total):" in text
    assert "Game 19" in text
    assert "Game 20" not in text


def test_missing_csv(tmp_path):
    with pytest.raises(FileNotFoundError):
        bgg.populate_games_from_bgg(None, tmp_path / "missing.csv", dry_run=True)
