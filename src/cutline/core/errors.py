"""Exception hierarchy raised inside adapters and caught at engine boundaries."""

from __future__ import annotations


class CutlineError(Exception):
    """Base class for all errors raised by the engine's adapters."""


class SettingsError(CutlineError):
    """Raised when a settings payload cannot be read or written."""


class PersistenceError(CutlineError):
    """Raised when a persistence sink fails to store a document payload."""

    def __init__(self, message: str, *, document_id: str | None = None) -> None:
        super().__init__(message)
        self.document_id = document_id


class SearchProviderError(CutlineError):
    """Raised when an item search provider cannot produce results."""

    def __init__(self, message: str, *, source: str | None = None) -> None:
        super().__init__(message)
        self.source = source


__all__ = ["CutlineError", "PersistenceError", "SearchProviderError", "SettingsError"]
