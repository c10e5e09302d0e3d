"""Resolve shared catalog entries by normalized title."""

from __future__ import annotations

import logging
from typing import Protocol

from .errors import CatalogResolutionError
from .models import SharedCatalogData

logger = logging.getLogger(__name__)


class CatalogLookup(Protocol):
    def find_catalog_id_by_title(self, title: str) -> str | None: ...

    def insert_catalog_entry(self, data: SharedCatalogData) -> str: ...


class CatalogResolver:
    """Find or create the catalog entry for a title, once per run.

    The resolver keeps a private ``normalized title -> catalog id`` cache so a
    title resolved earlier in the run never reaches the store again. The cache
    is a fast path only: a fresh resolver still finds rows created by earlier
    runs through the store lookup.
    """

    def __init__(self, store: CatalogLookup):
        self._store = store
        self._cache: dict[str, str] = {}

    def resolve_or_create(self, data: SharedCatalogData) -> tuple[str, bool]:
        """Return ``(catalog_id, is_new)`` for ``data``.

        Raises :class:`CatalogResolutionError` when the lookup or the insert
        fails; nothing is cached in that case.
        """

        key = data.normalized_title
        cached = self._cache.get(key)
        if cached is not None:
            return cached, False

        try:
            existing = self._store.find_catalog_id_by_title(data.title)
            if existing is not None:
                logger.debug("Reusing catalog entry %s for %r", existing, data.title)
                self._cache[key] = existing
                return existing, False

            game_id = self._store.insert_catalog_entry(data)
        except CatalogResolutionError:
            raise
        except Exception as exc:
            raise CatalogResolutionError(
                f'Failed to create shared game "{data.title}": {exc}'
            ) from exc

        logger.debug("Created catalog entry %s for %r", game_id, data.title)
        self._cache[key] = game_id
        return game_id, True


__all__ = ["CatalogLookup", "CatalogResolver"]
