"""Attach users to catalog entries through the library join table."""

from __future__ import annotations

from typing import Protocol

from .errors import LibraryEntryExistsError, LibraryEntryWriteError
from .models import LibraryEntryData


class LibraryStore(Protocol):
    def library_entry_exists(self, user_id: str, game_id: str) -> bool: ...

    def insert_library_entry(self, entry: LibraryEntryData) -> str: ...


class LibraryEntryWriter:
    """Create at most one library entry per (user, catalog game) pair."""

    def __init__(self, store: LibraryStore):
        self._store = store

    def attach(
        self,
        user_id: str,
        catalog_id: str,
        play_count: int | None = 0,
        personal_rating: int | None = None,
        review: str | None = None,
    ) -> str:
        """Insert the library entry and return its id.

        Raises :class:`LibraryEntryExistsError` when the pair is already
        stored, either found up front or reported by the unique constraint on
        insert. Other failures raise :class:`LibraryEntryWriteError`.
        """

        if not user_id:
            raise ValueError("attach requires an owning user id")

        entry = LibraryEntryData(
            user_id=user_id,
            game_id=catalog_id,
            play_count=play_count if play_count is not None else 0,
            personal_rating=personal_rating,
            review=review,
        )
        try:
            if self._store.library_entry_exists(user_id, catalog_id):
                raise LibraryEntryExistsError(user_id, catalog_id)
            return self._store.insert_library_entry(entry)
        except (LibraryEntryExistsError, LibraryEntryWriteError):
            raise
        except Exception as exc:
            raise LibraryEntryWriteError(str(exc)) from exc

    def attach_entry(self, entry: LibraryEntryData) -> str:
        return self.attach(
            entry.user_id,
            entry.game_id,
            entry.play_count,
            entry.personal_rating,
            entry.review,
        )


__all__ = ["LibraryEntryWriter", "LibraryStore"]
