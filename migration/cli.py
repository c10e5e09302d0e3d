"""Command-line entry point for the split-schema migration."""

from __future__ import annotations

import argparse
import logging
import logging.config
import os
import sys
from pathlib import Path
from typing import Sequence

from sqlalchemy.exc import SQLAlchemyError

import config
from db import utils as db_utils

from . import report
from .errors import MigrationPreconditionError
from .orchestrator import migrate_to_split_schema
from .store import CatalogStore

logger = logging.getLogger(__name__)


def configure_logging(debug: bool | None = None) -> None:
    """Send log records to stderr and a rotating file under ``LOG_DIR``.

    Progress lines are printed to stdout separately, so the console handler
    only shows warnings unless debug logging is enabled.
    """

    if debug is None:
        debug = config.DEBUG_LOGGING
    console_level = logging.DEBUG if debug else logging.WARNING
    log_path = Path(config.LOG_FILE)
    handlers = ["console"]
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
    except OSError:
        log_path = None
    handler_config: dict[str, dict] = {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "standard",
            "level": console_level,
            "stream": "ext://sys.stderr",
        },
    }
    if log_path is not None:
        handler_config["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "formatter": "standard",
            "level": logging.DEBUG,
            "filename": os.fspath(log_path),
            "maxBytes": 5 * 1024 * 1024,
            "backupCount": 5,
            "encoding": "utf-8",
        }
        handlers.append("file")

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "standard": {
                    "format": "%(asctime)s %(levelname)s [%(name)s] %(message)s",
                    "datefmt": "%Y-%m-%d %H:%M:%S",
                }
            },
            "handlers": handler_config,
            "root": {
                "level": logging.DEBUG if debug else logging.INFO,
                "handlers": handlers,
            },
        }
    )


def open_catalog_store() -> CatalogStore:
    """Build a :class:`CatalogStore` from the environment credentials."""

    url, service_key = config.get_store_credentials()
    database = db_utils.build_engine_from_dsn(
        config.build_store_dsn(url, service_key),
        timeout=config.DB_CONNECT_TIMEOUT_SECONDS,
    )
    return CatalogStore(
        database,
        legacy_table=config.LEGACY_GAMES_TABLE,
        catalog_table=config.CATALOG_GAMES_TABLE,
        library_table=config.LIBRARY_GAMES_TABLE,
    )


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description=(
            "Split the per-user games table into a shared catalog and "
            "per-user library entries."
        )
    )
    parser.add_argument(
        "--report",
        type=Path,
        default=config.MIGRATION_REPORT_PATH,
        help="Write one CSV row per legacy record to this path",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        default=config.DEBUG_LOGGING,
        help="Show debug logging on the console",
    )
    return parser.parse_args(argv)


def run(store: CatalogStore, *, report_path: Path | None = None) -> int:
    """Run the migration against ``store`` and return the process exit code."""

    try:
        summary = migrate_to_split_schema(store, progress=print)
    except MigrationPreconditionError as exc:
        logger.error("Migration precondition failed: %s", exc)
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    except SQLAlchemyError as exc:
        logger.error("Migration aborted by a store error: %s", exc)
        print(f"Error: could not read the catalog store: {exc}", file=sys.stderr)
        return 1

    print(report.format_summary(summary))
    if report_path is not None and summary.results:
        report.write_results_report(summary, report_path)
        print(f"\nDetailed results written to {report_path}")
    return summary.exit_code


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    configure_logging(args.debug)
    try:
        store = open_catalog_store()
    except RuntimeError as exc:
        logger.error("Cannot open catalog store: %s", exc)
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    try:
        return run(store, report_path=args.report)
    finally:
        store.close()


__all__ = ["configure_logging", "main", "open_catalog_store", "run"]
