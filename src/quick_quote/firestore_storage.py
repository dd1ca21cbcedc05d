from __future__ import annotations

import logging
from datetime import datetime, timezone

from google.api_core import exceptions as google_exceptions
from google.cloud import firestore

from .errors import StorageError

logger = logging.getLogger(__name__)


class FirestoreStorage:
    """Firestore-backed key/value storage for deployed environments.

    Each key is one document in ``COLLECTION_NAME`` holding the serialized
    value as a single string field, so a whole quote collection is still
    read and written as one blob.
    """

    COLLECTION_NAME = "storage"
    VALUE_FIELD = "value"

    def __init__(self, project_id: str | None = None, *, client: firestore.Client | None = None) -> None:
        self._db = client or firestore.Client(project=project_id)
        self._collection = self._db.collection(self.COLLECTION_NAME)

    def get_item(self, key: str) -> str | None:
        try:
            doc = self._collection.document(key).get()
        except google_exceptions.GoogleAPICallError as exc:
            raise StorageError(f"Could not read {key} from Firestore: {exc}") from exc

        if not doc.exists:
            return None
        return (doc.to_dict() or {}).get(self.VALUE_FIELD)

    def set_item(self, key: str, value: str) -> None:
        try:
            self._collection.document(key).set(
                {self.VALUE_FIELD: value, "updated_at": datetime.now(timezone.utc)}
            )
        except google_exceptions.GoogleAPICallError as exc:
            raise StorageError(f"Could not write {key} to Firestore: {exc}") from exc

        logger.info("Stored item", extra={"key": key, "size": len(value)})

    def remove_item(self, key: str) -> None:
        try:
            self._collection.document(key).delete()
        except google_exceptions.GoogleAPICallError as exc:
            raise StorageError(f"Could not delete {key} from Firestore: {exc}") from exc

        logger.info("Removed item", extra={"key": key})


__all__ = ["FirestoreStorage"]
