from datetime import datetime, timezone

import pytest

from helpers import (
    coerce_float,
    coerce_int,
    normalize_title,
    parse_category_list,
    parse_timestamp,
)


@pytest.mark.parametrize(
    "title, expected",
    [
        ("Catan", "catan"),
        ("  catan  ", "catan"),
        ("Ticket   to\tRide", "ticket to ride"),
        ("Catan: Seafarers", "catan: seafarers"),
        ("", ""),
    ],
)
def test_normalize_title(title, expected):
    assert normalize_title(title) == expected


def test_normalize_title_keeps_edition_suffixes_distinct():
    assert normalize_title("Catan (5th Edition)") != normalize_title("Catan")


def test_parse_category_list_accepts_stored_shapes():
    assert parse_category_list('["Strategy", "Family"]') == ["Strategy", "Family"]
    assert parse_category_list("Strategy, Family") == ["Strategy", "Family"]
    assert parse_category_list(["Strategy", " Family "]) == ["Strategy", "Family"]
    assert parse_category_list("[]") == []
    assert parse_category_list(None) is None


def test_coerce_numbers():
    assert coerce_int("4.0") == 4
    assert coerce_int("7.9") == 7
    assert coerce_int("") is None
    assert coerce_int(True) is None
    assert coerce_float("7.25") == 7.25
    assert coerce_float("nan") is None
    assert coerce_float("abc") is None


def test_parse_timestamp_handles_iso_and_naive_values():
    assert parse_timestamp("2024-01-02T03:04:05Z") == datetime(
        2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc
    )
    assert parse_timestamp("2024-01-02 03:04:05") == datetime(
        2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc
    )
    assert parse_timestamp("not a date") is None
    assert parse_timestamp(None) is None
