#!/usr/bin/env python3
"""Populate the shared games catalog from ``bgg-data/games.csv``.

Options: ``--dry-run``, ``--limit N``, ``--batch N`` and ``--csv PATH``.
"""

from pathlib import Path
import sys

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from seed.bgg import main


if __name__ == "__main__":  # pragma: no cover - manual execution path
    raise SystemExit(main())
