"""MongoDB-backed subscription store.

Same interface as the in-memory SubscriptionStore; one document per
subscriber in a single collection.
"""

from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional

from pymongo import ASCENDING, MongoClient
from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from roster.logging_config import get_logger
from roster.models.settings import StoreConfig
from roster.models.subscription import SubscriptionRecord
from roster.repositories.subscription_store import (
    StoreError,
    SubscriptionNotFoundError,
    check_flag,
)

logger = get_logger(__name__)

_NO_ID = {"_id": 0}


@contextmanager
def _translate_errors(operation: str) -> Iterator[None]:
    """Re-raise driver failures as StoreError."""
    try:
        yield
    except PyMongoError as e:
        logger.error("store_operation_failed", operation=operation, error=str(e), error_type=type(e).__name__)
        raise StoreError(f"{operation} failed: {e}") from e


class MongoSubscriptionStore:
    """Subscription records in a MongoDB collection.

    Per-document writes are atomic; concurrent writers for the same
    subscriber resolve as last write wins.
    """

    def __init__(self, collection: Collection):
        """Initialize with an existing collection handle.

        Args:
            collection: pymongo collection holding subscription documents
        """
        self._collection = collection

    @classmethod
    def from_settings(cls, store_config: StoreConfig) -> "MongoSubscriptionStore":
        """Connect using store settings and make sure indexes exist."""
        client: MongoClient = MongoClient(store_config.mongo_uri, tz_aware=True)
        store = cls(client[store_config.database][store_config.collection])
        store.ensure_indexes()
        logger.info(
            "mongo_store_initialized",
            database=store_config.database,
            collection=store_config.collection,
        )
        return store

    def ensure_indexes(self) -> None:
        """Create the unique key and the indexes behind the sweep queries."""
        with _translate_errors("ensure_indexes"):
            self._collection.create_index("subscriber_id", unique=True)
            self._collection.create_index("expires_at")
            self._collection.create_index([("expires_at", ASCENDING), ("notified_1day", ASCENDING)])
            self._collection.create_index([("expires_at", ASCENDING), ("notified_30min", ASCENDING)])

    @staticmethod
    def _to_record(document: Dict[str, Any]) -> SubscriptionRecord:
        document = dict(document)
        document.pop("_id", None)
        return SubscriptionRecord.model_validate(document)

    def _find(self, query: Dict[str, Any], operation: str) -> List[SubscriptionRecord]:
        with _translate_errors(operation):
            documents = list(self._collection.find(query, _NO_ID))
        return [self._to_record(d) for d in documents]

    def find_by_subscriber(self, subscriber_id: str) -> Optional[SubscriptionRecord]:
        with _translate_errors("find_by_subscriber"):
            document = self._collection.find_one({"subscriber_id": subscriber_id}, _NO_ID)
        return self._to_record(document) if document else None

    def get_by_subscriber(self, subscriber_id: str) -> SubscriptionRecord:
        record = self.find_by_subscriber(subscriber_id)
        if record is None:
            raise SubscriptionNotFoundError(f"Subscription not found for subscriber: {subscriber_id}")
        return record

    def upsert(self, subscription: SubscriptionRecord) -> None:
        with _translate_errors("upsert"):
            self._collection.replace_one(
                {"subscriber_id": subscription.subscriber_id},
                subscription.model_dump(),
                upsert=True,
            )

    def delete_by_subscriber(self, subscriber_id: str, expired_by: Optional[datetime] = None) -> bool:
        """Delete one document; with ``expired_by`` only while expires_at <= expired_by."""
        query: Dict[str, Any] = {"subscriber_id": subscriber_id}
        if expired_by is not None:
            query["expires_at"] = {"$lte": expired_by}
        with _translate_errors("delete_by_subscriber"):
            result = self._collection.delete_one(query)
        return result.deleted_count > 0

    def exists(self, subscriber_id: str) -> bool:
        with _translate_errors("exists"):
            return self._collection.count_documents({"subscriber_id": subscriber_id}, limit=1) > 0

    def get_all(self) -> List[SubscriptionRecord]:
        return self._find({}, "get_all")

    def find_expired(self, now: datetime) -> List[SubscriptionRecord]:
        return self._find({"expires_at": {"$lte": now}}, "find_expired")

    def find_active(self, now: datetime) -> List[SubscriptionRecord]:
        return self._find({"expires_at": {"$gt": now}}, "find_active")

    def find_expiring_between(
        self, lower: datetime, upper: datetime, unnotified_flag: str
    ) -> List[SubscriptionRecord]:
        """Records with lower <= expires_at < upper and the latch not set."""
        check_flag(unnotified_flag)
        query = {
            "expires_at": {"$gte": lower, "$lt": upper},
            unnotified_flag: {"$ne": True},
        }
        return self._find(query, "find_expiring_between")

    def mark_notified(
        self,
        subscriber_id: str,
        flag: str,
        value: bool = True,
        expires_at: Optional[datetime] = None,
    ) -> bool:
        """Set one latch; with ``expires_at`` only on the document still carrying that expiry."""
        check_flag(flag)
        query: Dict[str, Any] = {"subscriber_id": subscriber_id}
        if expires_at is not None:
            query["expires_at"] = expires_at
        with _translate_errors("mark_notified"):
            result = self._collection.update_one(
                query,
                {"$set": {flag: value}},
            )
        return result.matched_count > 0

    def count(self) -> int:
        with _translate_errors("count"):
            return self._collection.count_documents({})

    def count_active(self, now: datetime) -> int:
        with _translate_errors("count_active"):
            return self._collection.count_documents({"expires_at": {"$gt": now}})

    def count_expired(self, now: datetime) -> int:
        with _translate_errors("count_expired"):
            return self._collection.count_documents({"expires_at": {"$lte": now}})

    def get_statistics(self, now: datetime) -> Dict[str, int]:
        total = self.count()
        active = self.count_active(now)
        # expired derived from the same pair so active + expired == total
        return {"total": total, "active": active, "expired": max(total - active, 0)}

    def clear(self) -> None:
        with _translate_errors("clear"):
            self._collection.delete_many({})

    def __len__(self) -> int:
        return self.count()

    def __contains__(self, subscriber_id: str) -> bool:
        return self.exists(subscriber_id)

    def __repr__(self) -> str:
        return f"MongoSubscriptionStore(collection={self._collection.name!r})"
