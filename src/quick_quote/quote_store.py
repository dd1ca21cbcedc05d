from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Callable, Iterable

from pydantic import TypeAdapter, ValidationError

from .errors import StorageError
from .models.quote import Quote, utcnow
from .storage import KeyValueStorage

logger = logging.getLogger(__name__)

_COLLECTION = TypeAdapter(list[Quote])


def sort_recent_first(quotes: Iterable[Quote]) -> list[Quote]:
    return sorted(quotes, key=lambda quote: quote.last_modified, reverse=True)


class QuoteStore:
    """Whole-collection persistence of quotes under a single storage key.

    Every write serializes the full collection; concurrent writers are not
    reconciled and the last write wins.
    """

    DEFAULT_KEY = "quickQuotes"

    def __init__(
        self,
        storage: KeyValueStorage,
        *,
        key: str = DEFAULT_KEY,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._storage = storage
        self._key = key
        self._clock = clock
        self.last_error: StorageError | None = None

    @property
    def key(self) -> str:
        return self._key

    def load_all(self) -> list[Quote]:
        try:
            raw = self._storage.get_item(self._key)
        except StorageError as exc:
            return self._load_failed(exc)

        if raw is not None and not isinstance(raw, str):
            return self._load_failed(
                StorageError(f"Stored quotes under {self._key!r} are not text: {type(raw).__name__}")
            )
        if raw is None or not raw.strip():
            self.last_error = None
            return []

        try:
            quotes = _COLLECTION.validate_json(raw)
        except ValidationError as exc:
            return self._load_failed(
                StorageError(f"Stored quotes under {self._key!r} are unreadable: {exc.error_count()} error(s)")
            )

        self.last_error = None
        return sort_recent_first(quotes)

    def save_all(self, quotes: Iterable[Quote]) -> bool:
        ordered = sort_recent_first(quotes)
        payload = json.dumps([quote.to_document() for quote in ordered])
        try:
            self._storage.set_item(self._key, payload)
        except StorageError as exc:
            logger.error("Failed to save quotes", exc_info=True, extra={"key": self._key, "error": str(exc)})
            self.last_error = exc
            return False

        self.last_error = None
        logger.info("Saved quotes", extra={"key": self._key, "count": len(ordered)})
        return True

    def get(self, estimate_id: str) -> Quote | None:
        return next((quote for quote in self.load_all() if quote.estimate_id == estimate_id), None)

    def upsert(self, quote: Quote) -> Quote | None:
        """Insert ``quote`` or replace the entry with the same estimate id.

        The replaced entry's ``created_at`` is kept. Returns the stored quote,
        or ``None`` when the collection could not be read or written.
        """
        quotes = self.load_all()
        if self.last_error is not None:
            return None

        index = next((i for i, existing in enumerate(quotes) if existing.estimate_id == quote.estimate_id), None)
        if index is not None:
            created_at = quotes[index].created_at or quote.created_at or self._clock()
            stored = quote.model_copy(update={"created_at": created_at})
            quotes[index] = stored
        else:
            stored = quote.model_copy(update={"created_at": quote.created_at or self._clock()})
            quotes.append(stored)

        if not self.save_all(quotes):
            return None
        return stored

    def delete(self, estimate_id: str) -> bool:
        quotes = self.load_all()
        if self.last_error is not None:
            return False

        remaining = [quote for quote in quotes if quote.estimate_id != estimate_id]
        if len(remaining) == len(quotes):
            logger.debug("Quote to delete not found", extra={"estimate_id": estimate_id})
            return True
        return self.save_all(remaining)

    def _load_failed(self, exc: StorageError) -> list[Quote]:
        logger.error("Failed to load quotes", extra={"key": self._key, "error": str(exc)})
        self.last_error = exc
        return []


__all__ = ["QuoteStore", "sort_recent_first"]
