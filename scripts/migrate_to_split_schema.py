#!/usr/bin/env python3
"""Split the per-user games table into a shared catalog and library entries.

Usage::

    CATALOG_DB_URL=postgresql://migrator@db/games CATALOG_SERVICE_KEY=... \
        python scripts/migrate_to_split_schema.py [--report results.csv]

The run is safe to repeat: catalog entries are reused by title and library
entries that already exist are skipped.
"""

from pathlib import Path
import sys

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from migration.cli import main


if __name__ == "__main__":  # pragma: no cover - manual execution path
    raise SystemExit(main())
