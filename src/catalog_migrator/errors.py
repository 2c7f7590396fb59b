"""Exception hierarchy for the catalog migrator."""

from __future__ import annotations

from typing import Any, Dict, Optional


class MigratorError(Exception):
    """Base exception for catalog migration errors."""


class FatalConfigError(MigratorError):
    """Raised when the run cannot start: bad configuration or no store connectivity."""


class FormatError(FatalConfigError):
    """Raised when the export file is unreadable or lacks the item collection."""


class ItemMappingError(MigratorError):
    """Raised when a single export item cannot be normalised or mapped."""

    def __init__(self, item_id: Optional[str], message: str) -> None:
        super().__init__(f"item {item_id or '?'}: {message}")
        self.item_id = item_id


class StoreWriteError(MigratorError):
    """Raised when a batch of writes cannot be committed to the document store.

    ``counters`` holds the progress of the run at the time of the failure so the
    caller can still report what was done before it.
    """

    def __init__(self, message: str, counters: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.counters = counters
