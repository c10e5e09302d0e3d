"""Application-wide configuration helpers and constants."""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Final
from urllib.parse import quote_plus, urlsplit, urlunsplit

BASE_DIR: Final[Path] = Path(__file__).resolve().parent

try:  # pragma: no cover - optional dependency for local development
    from dotenv import load_dotenv
except ImportError:  # pragma: no cover - python-dotenv is optional
    load_dotenv = None  # type: ignore[assignment]

if load_dotenv is not None:
    load_dotenv(BASE_DIR / ".env")


logger = logging.getLogger(__name__)

STORE_URL_ENV: Final[str] = "CATALOG_DB_URL"
SERVICE_KEY_ENV: Final[str] = "CATALOG_SERVICE_KEY"


def _clean_text(value: str | None) -> str:
    """Return ``value`` stripped of surrounding whitespace."""

    if value is None:
        return ""
    return value.strip()


def _path_from(env_value: str | None, default: str | Path) -> Path:
    """Resolve a filesystem path using an environment override when provided."""

    text = _clean_text(env_value)
    candidate = Path(text) if text else Path(default)
    candidate = candidate.expanduser()
    if candidate.is_absolute():
        try:
            return candidate.resolve()
        except (OSError, RuntimeError):  # pragma: no cover - fallback for exotic paths
            return candidate
    return candidate


def _coerce_positive_float(value: str | None, default: float) -> float:
    """Return ``value`` coerced to a positive float or ``default`` when invalid."""

    text = _clean_text(value)
    if not text:
        return default
    try:
        numeric = float(text)
    except (TypeError, ValueError):
        return default
    return numeric if numeric > 0 else default


def _coerce_positive_int(value: str | None, default: int) -> int:
    """Return ``value`` coerced to a positive integer or ``default`` when invalid."""

    text = _clean_text(value)
    if not text:
        return default
    try:
        numeric = int(float(text))
    except (TypeError, ValueError):
        return default
    return numeric if numeric > 0 else default


def _coerce_truthy_env(value: str | None) -> bool:
    """Return ``True`` when ``value`` represents an affirmative flag."""

    if value is None:
        return False
    text = value.strip().lower()
    return text in {"1", "true", "yes", "on"}


def _table_name(value: str | None, default: str) -> str:
    text = _clean_text(value)
    return text or default


LOG_DIR_PATH: Final[Path] = _path_from(os.environ.get("LOG_DIR"), BASE_DIR / "logs")
LOG_DIR: Final[str] = os.fspath(LOG_DIR_PATH)
LOG_FILE_PATH: Final[Path] = _path_from(
    os.environ.get("LOG_FILE"), LOG_DIR_PATH / "migration.log"
)
LOG_FILE: Final[str] = os.fspath(LOG_FILE_PATH)
DEBUG_LOGGING: Final[bool] = _coerce_truthy_env(os.environ.get("MIGRATION_DEBUG"))

DB_CONNECT_TIMEOUT_SECONDS: Final[float] = _coerce_positive_float(
    os.environ.get("DB_CONNECT_TIMEOUT"), 10.0
)

LEGACY_GAMES_TABLE: Final[str] = _table_name(os.environ.get("LEGACY_GAMES_TABLE"), "games")
CATALOG_GAMES_TABLE: Final[str] = _table_name(os.environ.get("CATALOG_GAMES_TABLE"), "games")
LIBRARY_GAMES_TABLE: Final[str] = _table_name(
    os.environ.get("LIBRARY_GAMES_TABLE"), "library_games"
)

_REPORT_RAW = _clean_text(os.environ.get("MIGRATION_REPORT_PATH"))
MIGRATION_REPORT_PATH: Final[Path | None] = (
    _path_from(_REPORT_RAW, "") if _REPORT_RAW else None
)

BGG_CSV_PATH: Final[Path] = _path_from(
    os.environ.get("BGG_CSV_PATH"), Path("bgg-data") / "games.csv"
)
BGG_IMPORT_BATCH_SIZE: Final[int] = _coerce_positive_int(
    os.environ.get("BGG_IMPORT_BATCH_SIZE"), 100
)


def get_store_credentials() -> tuple[str, str]:
    """Return the store endpoint and privileged service key from the environment.

    Both values are read at call time so entry points fail fast with a clear
    message instead of at import.
    """

    url = _clean_text(os.environ.get(STORE_URL_ENV))
    key = _clean_text(os.environ.get(SERVICE_KEY_ENV))
    missing = [
        name
        for name, value in ((STORE_URL_ENV, url), (SERVICE_KEY_ENV, key))
        if not value
    ]
    if missing:
        raise RuntimeError(
            f"{' and '.join(missing)} must be set; the service key is needed to "
            "read and write rows across all users."
        )
    return url, key


def build_store_dsn(url: str, service_key: str) -> str:
    """Return ``url`` with ``service_key`` injected as the connection password.

    SQLite URLs carry no credentials and are returned unchanged. An explicit
    password already present in ``url`` is replaced.
    """

    parts = urlsplit(url)
    if parts.scheme.split("+", 1)[0] == "sqlite":
        return url
    netloc = parts.netloc
    host = netloc.rsplit("@", 1)[-1]
    user = ""
    if "@" in netloc:
        user = netloc.rsplit("@", 1)[0].split(":", 1)[0]
    if not user:
        logger.warning("Store URL has no username; using the service key alone")
    auth = f"{user}:{quote_plus(service_key)}@"
    return urlunsplit((parts.scheme, f"{auth}{host}", parts.path, parts.query, parts.fragment))


__all__ = [
    "BASE_DIR",
    "BGG_CSV_PATH",
    "BGG_IMPORT_BATCH_SIZE",
    "CATALOG_GAMES_TABLE",
    "DB_CONNECT_TIMEOUT_SECONDS",
    "DEBUG_LOGGING",
    "LEGACY_GAMES_TABLE",
    "LIBRARY_GAMES_TABLE",
    "LOG_DIR",
    "LOG_DIR_PATH",
    "LOG_FILE",
    "LOG_FILE_PATH",
    "MIGRATION_REPORT_PATH",
    "SERVICE_KEY_ENV",
    "STORE_URL_ENV",
    "build_store_dsn",
    "get_store_credentials",
]
