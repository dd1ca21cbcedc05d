from __future__ import annotations


class QuickQuoteError(Exception):
    """Base class for every error raised by quick_quote."""


class QuoteValidationError(QuickQuoteError):
    """User input rejected; the working state is left unchanged."""

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field


class WizardStateError(QuoteValidationError):
    pass


class QuoteNotFoundError(QuickQuoteError, KeyError):
    def __init__(self, estimate_id: str) -> None:
        super().__init__(estimate_id)
        self.estimate_id = estimate_id

    def __str__(self) -> str:
        return f"Quote not found: {self.estimate_id}"


class StorageError(QuickQuoteError):
    """Persisted quotes could not be read or written."""


class QuotePersistenceError(QuickQuoteError):
    pass


__all__ = [
    "QuickQuoteError",
    "QuoteValidationError",
    "WizardStateError",
    "QuoteNotFoundError",
    "StorageError",
    "QuotePersistenceError",
]
