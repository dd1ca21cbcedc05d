import json

import pytest
from google.api_core import exceptions as google_exceptions

from quick_quote.errors import StorageError
from quick_quote.firestore_storage import FirestoreStorage
from quick_quote.storage import FileStorage, MemoryStorage


class FakeSnapshot:
    def __init__(self, data):
        self._data = data

    @property
    def exists(self) -> bool:
        return self._data is not None

    def to_dict(self):
        return dict(self._data) if self._data is not None else None


class FakeDocument:
    def __init__(self, client: "FakeFirestoreClient", key: str) -> None:
        self._client = client
        self._key = key

    def get(self):
        self._client.check()
        return FakeSnapshot(self._client.documents.get(self._key))

    def set(self, data):
        self._client.check()
        self._client.documents[self._key] = dict(data)

    def delete(self):
        self._client.check()
        self._client.documents.pop(self._key, None)


class FakeCollection:
    def __init__(self, client: "FakeFirestoreClient") -> None:
        self._client = client

    def document(self, key: str) -> FakeDocument:
        return FakeDocument(self._client, key)


class FakeFirestoreClient:
    def __init__(self) -> None:
        self.documents = {}
        self.collections = []
        self.offline = False

    def collection(self, name: str) -> FakeCollection:
        self.collections.append(name)
        return FakeCollection(self)

    def check(self) -> None:
        if self.offline:
            raise google_exceptions.ServiceUnavailable("firestore unavailable")


def test_memory_storage():
    storage = MemoryStorage({"a": "1"})

    storage.set_item("b", "2")
    storage.remove_item("a")
    storage.remove_item("missing")

    assert storage.get_item("a") is None
    assert storage.get_item("b") == "2"


def test_file_storage_round_trip(tmp_path):
    path = tmp_path / "nested" / "storage.json"
    storage = FileStorage(path)

    assert storage.get_item("quickQuotes") is None
    storage.set_item("quickQuotes", "[]")
    storage.set_item("other", "x")
    storage.remove_item("other")

    assert FileStorage(path).get_item("quickQuotes") == "[]"
    assert json.loads(path.read_text(encoding="utf-8")) == {"quickQuotes": "[]"}


@pytest.mark.parametrize("content", ["{broken", "[1, 2]"])
def test_file_storage_unreadable_file(tmp_path, content):
    path = tmp_path / "storage.json"
    path.write_text(content, encoding="utf-8")
    storage = FileStorage(path)

    with pytest.raises(StorageError):
        storage.get_item("quickQuotes")
    with pytest.raises(StorageError):
        storage.set_item("quickQuotes", "[]")
    assert path.read_text(encoding="utf-8") == content


def test_firestore_storage_round_trip():
    client = FakeFirestoreClient()
    storage = FirestoreStorage(client=client)

    assert storage.get_item("quickQuotes") is None
    storage.set_item("quickQuotes", "[]")

    assert client.collections == [FirestoreStorage.COLLECTION_NAME]
    assert client.documents["quickQuotes"]["value"] == "[]"
    assert "updated_at" in client.documents["quickQuotes"]
    assert storage.get_item("quickQuotes") == "[]"

    storage.remove_item("quickQuotes")
    assert storage.get_item("quickQuotes") is None


def test_firestore_errors_become_storage_errors():
    client = FakeFirestoreClient()
    storage = FirestoreStorage(client=client)
    client.offline = True

    with pytest.raises(StorageError):
        storage.get_item("quickQuotes")
    with pytest.raises(StorageError):
        storage.set_item("quickQuotes", "[]")
    with pytest.raises(StorageError):
        storage.remove_item("quickQuotes")
