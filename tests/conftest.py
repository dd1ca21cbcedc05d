from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from quick_quote.catalog import DEFAULT_CATALOG
from quick_quote.editor import QuoteEditor
from quick_quote.notifier import CollectingNotifier
from quick_quote.quote_store import QuoteStore
from quick_quote.storage import MemoryStorage


class FakeClock:
    """Advances by ``step`` on every call so each change gets a distinct timestamp."""

    def __init__(self, start: datetime | None = None, step: timedelta = timedelta(seconds=1)) -> None:
        self.now = start or datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc)
        self.step = step

    def __call__(self) -> datetime:
        self.now = self.now + self.step
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def store(storage: MemoryStorage, clock: FakeClock) -> QuoteStore:
    return QuoteStore(storage, clock=clock)


@pytest.fixture
def notifier() -> CollectingNotifier:
    return CollectingNotifier()


@pytest.fixture
def editor(store: QuoteStore, notifier: CollectingNotifier, clock: FakeClock) -> QuoteEditor:
    return QuoteEditor(DEFAULT_CATALOG, store=store, notifier=notifier, clock=clock)
