"""Exceptions raised by the catalog migration engine."""

from __future__ import annotations


class MigrationError(RuntimeError):
    """Base class for migration failures."""


class MigrationPreconditionError(MigrationError):
    """The store is not in a state the migration can run against.

    ``hint`` carries the remediation the operator should apply before
    re-running.
    """

    def __init__(self, message: str, *, hint: str = ""):
        super().__init__(message)
        self.hint = hint

    def __str__(self) -> str:
        message = super().__str__()
        if self.hint:
            return f"{message}\n{self.hint}"
        return message


class CatalogResolutionError(MigrationError):
    """Looking up or creating a shared catalog entry failed."""


class LibraryEntryExistsError(MigrationError):
    """A library entry for the (user, catalog game) pair is already stored."""

    def __init__(self, user_id: str, game_id: str):
        super().__init__("Library entry already exists")
        self.user_id = user_id
        self.game_id = game_id


class LibraryEntryWriteError(MigrationError):
    """Inserting a library entry failed for a reason other than a duplicate."""


__all__ = [
    "CatalogResolutionError",
    "LibraryEntryExistsError",
    "LibraryEntryWriteError",
    "MigrationError",
    "MigrationPreconditionError",
]
