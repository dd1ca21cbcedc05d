import json
from datetime import datetime, timedelta, timezone

import pytest

from quick_quote.errors import StorageError
from quick_quote.models.line_item import LineItem
from quick_quote.models.quote import Quote
from quick_quote.quote_store import QuoteStore
from quick_quote.storage import FileStorage, MemoryStorage

BASE = datetime(2025, 1, 10, 12, 0, tzinfo=timezone.utc)


def make_quote(estimate_id: str, minutes: int, **kwargs) -> Quote:
    fields = dict(
        estimate_id=estimate_id,
        estimate_name=f"{estimate_id} estimate",
        customer_name="Chase",
        customer_contact="Austin Riley",
        last_modified=BASE + timedelta(minutes=minutes),
    )
    fields.update(kwargs)
    return Quote(**fields)


class FailingStorage(MemoryStorage):
    def __init__(self, *, fail_reads: bool = False, fail_writes: bool = False, **kwargs) -> None:
        super().__init__(**kwargs)
        self.fail_reads = fail_reads
        self.fail_writes = fail_writes

    def get_item(self, key: str) -> str | None:
        if self.fail_reads:
            raise StorageError("backend offline")
        return super().get_item(key)

    def set_item(self, key: str, value: str) -> None:
        if self.fail_writes:
            raise StorageError("quota exceeded")
        super().set_item(key, value)


def test_empty_storage_loads_empty_collection(store):
    assert store.load_all() == []
    assert store.last_error is None


def test_upsert_round_trip(store, storage):
    quote = make_quote(
        "QQ1",
        0,
        current_assets=[LineItem(id=1, name="DocuSign Monitor", quantity=10, list_price=3, discount_percent=7).repriced()],
        products=[LineItem(id=2, name="DocuSign Monitor", quantity=13, list_price=3, discount_percent=7, auto_copied=True).repriced()],
    )

    stored = store.upsert(quote)
    [loaded] = store.load_all()

    assert loaded.estimate_id == "QQ1"
    assert loaded.created_at == stored.created_at is not None
    assert loaded.current_assets == quote.current_assets
    assert loaded.products == quote.products
    assert loaded.gross_new_value == pytest.approx(quote.gross_new_value)

    [document] = json.loads(storage.get_item("quickQuotes"))
    assert document["estimateId"] == "QQ1"
    assert document["assets"][0]["assetName"] == "DocuSign Monitor"
    assert document["products"][0]["autoCopied"] is True
    assert "autoCopied" not in document["assets"][0]
    assert document["gnacv"] == pytest.approx(quote.gross_new_value)


def test_upsert_replaces_in_place_and_keeps_created_at(store):
    original_created = BASE - timedelta(days=3)
    store.upsert(make_quote("QQ1", 0, created_at=original_created))
    store.upsert(make_quote("QQ2", 1))

    store.upsert(make_quote("QQ1", 5, estimate_name="renamed", created_at=BASE))

    quotes = store.load_all()
    assert len(quotes) == 2
    updated = store.get("QQ1")
    assert updated.estimate_name == "renamed"
    assert updated.created_at == original_created


def test_upsert_sets_created_at_once(store, clock):
    first = store.upsert(make_quote("QQ1", 0))

    second = store.upsert(make_quote("QQ1", 1))

    assert first.created_at is not None
    assert second.created_at == first.created_at


def test_collection_is_sorted_most_recent_first(store, storage):
    store.upsert(make_quote("QQ1", 10))
    store.upsert(make_quote("QQ2", 30))
    store.upsert(make_quote("QQ3", 20))

    assert [q.estimate_id for q in store.load_all()] == ["QQ2", "QQ3", "QQ1"]
    assert [d["estimateId"] for d in json.loads(storage.get_item("quickQuotes"))] == ["QQ2", "QQ3", "QQ1"]


def test_delete_removes_exactly_one_entry(store):
    for index, estimate_id in enumerate(("QQ1", "QQ2", "QQ3")):
        store.upsert(make_quote(estimate_id, index))
    before = {q.estimate_id: q for q in store.load_all()}

    assert store.delete("QQ2") is True

    after = {q.estimate_id: q for q in store.load_all()}
    assert set(after) == {"QQ1", "QQ3"}
    assert after["QQ1"] == before["QQ1"]
    assert after["QQ3"] == before["QQ3"]


def test_delete_unknown_id_is_a_noop(store):
    store.upsert(make_quote("QQ1", 0))

    assert store.delete("QQ9") is True
    assert [q.estimate_id for q in store.load_all()] == ["QQ1"]


@pytest.mark.parametrize("raw", ["{not json", '{"estimateId": "QQ1"}', '[{"customerName": "no id"}]'])
def test_unreadable_content_loads_as_empty_with_error(raw):
    store = QuoteStore(MemoryStorage({"quickQuotes": raw}))

    assert store.load_all() == []
    assert isinstance(store.last_error, StorageError)


def test_unreadable_content_is_not_overwritten():
    storage = MemoryStorage({"quickQuotes": "{not json"})
    store = QuoteStore(storage)

    assert store.upsert(make_quote("QQ1", 0)) is None
    assert store.delete("QQ1") is False
    assert storage.get_item("quickQuotes") == "{not json"


def test_backend_read_failure_is_recoverable():
    storage = FailingStorage(fail_reads=True)
    store = QuoteStore(storage)

    assert store.load_all() == []
    assert str(store.last_error) == "backend offline"

    storage.fail_reads = False
    assert store.load_all() == []
    assert store.last_error is None


def test_backend_write_failure_returns_false():
    store = QuoteStore(FailingStorage(fail_writes=True))

    assert store.save_all([make_quote("QQ1", 0)]) is False
    assert isinstance(store.last_error, StorageError)
    assert store.upsert(make_quote("QQ1", 0)) is None


def test_reads_documents_written_by_the_browser_tool():
    raw = json.dumps(
        [
            {
                "customerName": "Bank of America",
                "customerContact": "Mike Trout",
                "estimateName": "Bank of America - Estimate 1",
                "estimateId": "QQ1",
                "paymentTerms": "Net 30",
                "startDate": "2024-01-01",
                "endDate": "2024-12-31",
                "assets": [
                    {
                        "id": 1718000000000.123,
                        "assetName": "eSignature Envelope Subs",
                        "quantity": 20,
                        "listPrice": 5,
                        "discount": 5,
                        "netPrice": 4.75,
                        "totalNetPrice": 95,
                        "startDate": "2024-01-01",
                        "endDate": "2024-12-31",
                    }
                ],
                "products": [],
                "gnacv": -95,
                "createdAt": "2024-06-10T08:00:00.000Z",
                "lastModified": "2024-06-10T08:05:00.000Z",
                "consumptionPerformance": 85,
                "envelopesPurchased": 10000,
                "envelopesSent": 8500,
            }
        ]
    )
    store = QuoteStore(MemoryStorage({"quickQuotes": raw}))

    [quote] = store.load_all()

    assert quote.customer_name == "Bank of America"
    assert quote.current_assets[0].name == "eSignature Envelope Subs"
    assert quote.current_assets[0].line_total == 95
    assert quote.gross_new_value == -95
    assert quote.created_at == datetime(2024, 6, 10, 8, 0, tzinfo=timezone.utc)


def test_custom_storage_key(storage):
    store = QuoteStore(storage, key="otherQuotes")

    store.upsert(make_quote("QQ1", 0))

    assert storage.get_item("quickQuotes") is None
    assert storage.get_item("otherQuotes") is not None


def test_non_text_value_in_storage_file_is_unreadable(tmp_path):
    path = tmp_path / "storage.json"
    path.write_text(json.dumps({"quickQuotes": []}), encoding="utf-8")
    store = QuoteStore(FileStorage(path))

    assert store.load_all() == []
    assert isinstance(store.last_error, StorageError)
    assert store.upsert(make_quote("QQ1", 0)) is None
    assert json.loads(path.read_text(encoding="utf-8")) == {"quickQuotes": []}
