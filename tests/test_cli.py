import logging

import pandas as pd
import pytest
from sqlalchemy.exc import OperationalError

import config
from migration import cli
from tests.store_helpers import (
    build_sqlite_database,
    create_legacy_table,
    create_library_table,
    fetch_rows,
    insert_legacy_rows,
)


@pytest.fixture
def isolated_logging(tmp_path, monkeypatch):
    monkeypatch.setattr(config, "LOG_FILE", str(tmp_path / "logs" / "migration.log"))
    root = logging.getLogger()
    saved = (list(root.handlers), root.level)
    yield tmp_path / "logs" / "migration.log"
    for handler in list(root.handlers):
        if handler not in saved[0]:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(saved[1])


def test_main_without_credentials_exits_with_error(isolated_logging, capsys):
    assert cli.main([]) == 1
    assert config.STORE_URL_ENV in capsys.readouterr().err


def test_main_migrates_sqlite_store(tmp_path, monkeypatch, isolated_logging, capsys):
    database = build_sqlite_database(tmp_path)
    create_legacy_table(database)
    create_library_table(database)
    insert_legacy_rows(
        database,
        [
            {"id": "l1", "title": "Catan", "user_id": "u1"},
            {"id": "l2", "title": "Azul", "user_id": "u1"},
        ],
    )
    monkeypatch.setenv(config.STORE_URL_ENV, f"sqlite:///{tmp_path / 'catalog.db'}")
    monkeypatch.setenv(config.SERVICE_KEY_ENV, "unused-for-sqlite")
    report_path = tmp_path / "results.csv"

    exit_code = cli.main(["--report", str(report_path)])

    output = capsys.readouterr().out
    assert exit_code == 0
    assert "Migration completed successfully!" in output
    assert isolated_logging.exists()
    assert len(pd.read_csv(report_path)) == 2
    assert len(fetch_rows(database, "SELECT id FROM library_games")) == 2
    database.dispose()


def test_main_reports_missing_library_table(tmp_path, monkeypatch, isolated_logging, capsys):
    database = build_sqlite_database(tmp_path)
    create_legacy_table(database)
    database.dispose()
    monkeypatch.setenv(config.STORE_URL_ENV, f"sqlite:///{tmp_path / 'catalog.db'}")
    monkeypatch.setenv(config.SERVICE_KEY_ENV, "unused-for-sqlite")

    assert cli.main([]) == 1
    assert "library_games table does not exist" in capsys.readouterr().err


class UnreachableStore:
    def library_table_exists(self):
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))


def test_run_reports_store_errors(capsys):
    assert cli.run(UnreachableStore()) == 1

    err = capsys.readouterr().err
    assert "could not read the catalog store" in err
    assert "connection refused" in err
