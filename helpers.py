"""General-purpose helper utilities shared across the application."""

from __future__ import annotations

import json
import numbers
import re
from datetime import datetime, timezone
from typing import Any, Mapping

import pandas as pd


__all__ = [
    "_parse_iterable",
    "coerce_float",
    "coerce_int",
    "has_text_value",
    "is_missing",
    "normalize_title",
    "parse_category_list",
    "parse_timestamp",
]

_WHITESPACE_RUN = re.compile(r"\s+")


def normalize_title(title: str) -> str:
    """Return the comparison key for a game ``title``.

    The key is lower-cased, trimmed and has internal whitespace runs collapsed
    to a single space. Punctuation and accents are kept, so near-duplicates
    such as edition suffixes stay distinct.
    """

    return _WHITESPACE_RUN.sub(" ", title.lower().strip())


def is_missing(value: Any) -> bool:
    """Return ``True`` for ``None`` and pandas/NumPy missing markers."""

    if value is None:
        return True
    if isinstance(value, (str, bytes, list, tuple, dict, set)):
        return False
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def has_text_value(value: Any) -> bool:
    """Return ``True`` when ``value`` contains non-empty text."""

    if is_missing(value):
        return False
    text = value.strip() if isinstance(value, str) else str(value).strip()
    if not text:
        return False
    if text.lower() == "nan":
        return False
    return True


def coerce_int(value: Any) -> int | None:
    """Attempt to coerce ``value`` to an integer, returning ``None`` on failure.

    Fractional values are floored, matching how spreadsheet exports store
    whole numbers as ``"4.0"``.
    """

    if is_missing(value) or isinstance(value, bool):
        return None
    try:
        if isinstance(value, numbers.Integral):
            return int(value)
        numeric = coerce_float(value)
        if numeric is None:
            return None
        return int(numeric // 1)
    except (TypeError, ValueError, OverflowError):
        return None


def coerce_float(value: Any) -> float | None:
    """Attempt to coerce ``value`` to a finite float, returning ``None`` on failure."""

    if is_missing(value) or isinstance(value, bool):
        return None
    try:
        if isinstance(value, numbers.Real):
            numeric = float(value)
        else:
            text = str(value).strip()
            if not text:
                return None
            numeric = float(text)
    except (TypeError, ValueError):
        return None
    if numeric != numeric or numeric in (float("inf"), float("-inf")):
        return None
    return numeric


def parse_timestamp(value: Any) -> datetime | None:
    """Parse ``value`` into an aware :class:`datetime` or ``None``.

    Accepts :class:`datetime` instances and ISO-8601 strings, including the
    ``Z`` suffix. Naive values are assumed to be UTC.
    """

    if is_missing(value):
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if not text:
            return None
        if text.endswith(("Z", "z")):
            text = f"{text[:-1]}+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _parse_iterable(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [v.strip() for v in value.split(',') if v.strip()]
    if isinstance(value, numbers.Number):
        return [str(value)]
    try:
        iterator = iter(value)
    except TypeError:
        return [str(value)]
    items: list[str] = []
    for element in iterator:
        if isinstance(element, Mapping):
            name = element.get("name")
            if isinstance(name, str) and name.strip():
                items.append(name.strip())
            else:
                items.append(str(element).strip())
        else:
            items.append(str(element).strip())
    return [item for item in items if item]


def parse_category_list(value: Any) -> list[str] | None:
    """Decode a stored category list.

    Values may arrive as native arrays (PostgreSQL), JSON text (SQLite and
    MariaDB) or comma separated text. ``None`` is preserved so callers can tell
    an absent list from an empty one.
    """

    if is_missing(value):
        return None
    if isinstance(value, str):
        text = value.strip()
        if text.startswith("["):
            try:
                decoded = json.loads(text)
            except ValueError:
                decoded = None
            if isinstance(decoded, list):
                return _parse_iterable(decoded)
        return _parse_iterable(text)
    return _parse_iterable(value)
