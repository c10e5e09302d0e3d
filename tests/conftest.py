"""Pytest fixtures shared across the test suite."""

import pytest

from config import SERVICE_KEY_ENV, STORE_URL_ENV
from tests.store_helpers import (
    build_sqlite_database,
    create_legacy_table,
    create_library_table,
    make_store,
)


@pytest.fixture(autouse=True)
def clear_store_credentials(monkeypatch):
    """Keep a developer's real credentials out of the tests."""

    monkeypatch.delenv(STORE_URL_ENV, raising=False)
    monkeypatch.delenv(SERVICE_KEY_ENV, raising=False)


@pytest.fixture
def sqlite_database(tmp_path):
    database = build_sqlite_database(tmp_path)
    yield database
    database.dispose()


@pytest.fixture
def legacy_database(sqlite_database):
    """A database with the legacy games table and an empty library table."""

    create_legacy_table(sqlite_database)
    create_library_table(sqlite_database)
    return sqlite_database


@pytest.fixture
def catalog_store(legacy_database):
    return make_store(legacy_database)
