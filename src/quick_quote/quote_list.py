from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Callable, Iterable

from .catalog import DEFAULT_CATALOG, Catalog
from .editor import QuoteEditor
from .errors import QuoteNotFoundError
from .models.quote import Quote, QuoteSummary, utcnow
from .notifier import LoggingNotifier, Notifier
from .quote_store import QuoteStore

logger = logging.getLogger(__name__)

ESTIMATE_ID_PREFIX = "QQ"
_ESTIMATE_ID_RE = re.compile(rf"^{ESTIMATE_ID_PREFIX}(\d+)$")

LOAD_ERROR_MESSAGE = "There was an error loading your quotes. Please refresh the page."


def estimate_number(estimate_id: str) -> int | None:
    match = _ESTIMATE_ID_RE.match(estimate_id)
    return int(match.group(1)) if match else None


def next_estimate_number(estimate_ids: Iterable[str], floor: int = 0) -> int:
    numbers = [n for n in (estimate_number(eid) for eid in estimate_ids) if n is not None]
    return max([floor, *numbers]) + 1


class QuoteList:
    """Saved quotes, most recently modified first, and the way into the editor."""

    def __init__(
        self,
        store: QuoteStore,
        catalog: Catalog = DEFAULT_CATALOG,
        *,
        notifier: Notifier | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._catalog = catalog
        self._notifier = notifier or LoggingNotifier()
        self._clock = clock
        self._quotes: list[Quote] = []
        self._last_number = 0

    @property
    def quotes(self) -> list[Quote]:
        return list(self._quotes)

    @property
    def summaries(self) -> list[QuoteSummary]:
        return [QuoteSummary.from_quote(quote) for quote in self._quotes]

    def refresh(self) -> list[QuoteSummary]:
        self._quotes = self._store.load_all()
        if self._store.last_error is not None:
            self._notifier.error(LOAD_ERROR_MESSAGE)
        return self.summaries

    def create_new(self, *, notifier: Notifier | None = None) -> QuoteEditor:
        self.refresh()
        number = next_estimate_number((quote.estimate_id for quote in self._quotes), floor=self._last_number)
        self._last_number = number
        estimate_id = f"{ESTIMATE_ID_PREFIX}{number}"
        logger.info("Creating quote", extra={"estimate_id": estimate_id})
        return QuoteEditor(
            self._catalog,
            store=self._store,
            notifier=notifier or self._notifier,
            clock=self._clock,
            estimate_id=estimate_id,
            estimate_number=number,
        )

    def open(self, estimate_id: str, *, notifier: Notifier | None = None) -> QuoteEditor:
        quote = self._store.get(estimate_id)
        if quote is None:
            if self._store.last_error is not None:
                self._notifier.error(LOAD_ERROR_MESSAGE)
            raise QuoteNotFoundError(estimate_id)
        logger.info("Opening quote", extra={"estimate_id": estimate_id})
        return QuoteEditor(
            self._catalog,
            store=self._store,
            notifier=notifier or self._notifier,
            clock=self._clock,
            estimate_id=quote.estimate_id,
            estimate_number=estimate_number(quote.estimate_id) or 1,
            initial=quote,
        )

    def delete(self, estimate_id: str) -> bool:
        if self._store.delete(estimate_id):
            self._notifier.info("Quote deleted successfully!")
            logger.info("Deleted quote", extra={"estimate_id": estimate_id})
            deleted = True
        else:
            self._notifier.error("There was an error deleting the quote. Please try again.")
            deleted = False
        self.refresh()
        return deleted


__all__ = ["QuoteList", "estimate_number", "next_estimate_number", "ESTIMATE_ID_PREFIX"]
