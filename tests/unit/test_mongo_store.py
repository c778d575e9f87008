"""Tests for MongoSubscriptionStore against a mocked pymongo collection."""

from datetime import timedelta
from unittest.mock import MagicMock, patch

import pytest
from pymongo.errors import ServerSelectionTimeoutError

from roster.models import StoreConfig, SubscriptionRecord
from roster.repositories.mongo_store import MongoSubscriptionStore
from roster.repositories.subscription_store import StoreError, SubscriptionNotFoundError


@pytest.fixture
def collection():
    collection = MagicMock()
    collection.name = "subscriptions"
    return collection


@pytest.fixture
def mongo_store(collection):
    return MongoSubscriptionStore(collection)


@pytest.fixture
def document(t0):
    return {
        "_id": "65f0c0ffee",
        "subscriber_id": "U1",
        "role_id": "role",
        "months": 2,
        "start_at": t0,
        "expires_at": t0 + timedelta(days=60),
        "notified_1day": False,
        "notified_30min": True,
        "created_at": t0,
        "updated_at": t0,
    }


class TestMongoReads:
    """Test document to record conversion and lookups."""

    def test_find_by_subscriber(self, mongo_store, collection, document):
        collection.find_one.return_value = document

        record = mongo_store.find_by_subscriber("U1")

        assert record.subscriber_id == "U1"
        assert record.notified_30min is True
        collection.find_one.assert_called_once_with({"subscriber_id": "U1"}, {"_id": 0})

    def test_find_missing(self, mongo_store, collection):
        collection.find_one.return_value = None

        assert mongo_store.find_by_subscriber("U1") is None
        with pytest.raises(SubscriptionNotFoundError):
            mongo_store.get_by_subscriber("U1")

    def test_naive_datetimes_are_utc(self, mongo_store, collection, document):
        document["start_at"] = document["start_at"].replace(tzinfo=None)
        document["expires_at"] = document["expires_at"].replace(tzinfo=None)
        collection.find_one.return_value = document

        record = mongo_store.find_by_subscriber("U1")

        assert record.expires_at.tzinfo is not None


class TestMongoQueries:
    """Test the query documents sent to MongoDB."""

    def test_find_expired(self, mongo_store, collection, t0):
        collection.find.return_value = []

        mongo_store.find_expired(t0)

        collection.find.assert_called_once_with({"expires_at": {"$lte": t0}}, {"_id": 0})

    def test_find_active(self, mongo_store, collection, t0):
        collection.find.return_value = []

        mongo_store.find_active(t0)

        collection.find.assert_called_once_with({"expires_at": {"$gt": t0}}, {"_id": 0})

    def test_find_expiring_between(self, mongo_store, collection, document, t0):
        collection.find.return_value = [document]
        upper = t0 + timedelta(minutes=10)

        records = mongo_store.find_expiring_between(t0, upper, "notified_1day")

        assert [r.subscriber_id for r in records] == ["U1"]
        collection.find.assert_called_once_with(
            {"expires_at": {"$gte": t0, "$lt": upper}, "notified_1day": {"$ne": True}},
            {"_id": 0},
        )

    def test_find_expiring_between_rejects_unknown_flag(self, mongo_store, collection, t0):
        with pytest.raises(ValueError):
            mongo_store.find_expiring_between(t0, t0, "$where")
        collection.find.assert_not_called()

    def test_statistics(self, mongo_store, collection, t0):
        collection.count_documents.side_effect = [7, 4]

        assert mongo_store.get_statistics(t0) == {"total": 7, "active": 4, "expired": 3}


class TestMongoWrites:
    """Test upsert, delete and latch updates."""

    def test_upsert_replaces_by_subscriber(self, mongo_store, collection, t0):
        record = SubscriptionRecord(
            subscriber_id="U1",
            role_id="role",
            months=1,
            start_at=t0,
            expires_at=t0 + timedelta(days=30),
        )

        mongo_store.upsert(record)

        filter_, replacement = collection.replace_one.call_args.args
        assert filter_ == {"subscriber_id": "U1"}
        assert replacement["expires_at"] == t0 + timedelta(days=30)
        assert collection.replace_one.call_args.kwargs == {"upsert": True}

    def test_delete(self, mongo_store, collection):
        collection.delete_one.return_value = MagicMock(deleted_count=1)
        assert mongo_store.delete_by_subscriber("U1") is True

        collection.delete_one.return_value = MagicMock(deleted_count=0)
        assert mongo_store.delete_by_subscriber("U1") is False

    def test_mark_notified(self, mongo_store, collection):
        collection.update_one.return_value = MagicMock(matched_count=1)

        assert mongo_store.mark_notified("U1", "notified_30min") is True
        collection.update_one.assert_called_once_with(
            {"subscriber_id": "U1"}, {"$set": {"notified_30min": True}}
        )

    def test_mark_notified_matches_expiry(self, mongo_store, collection, t0):
        collection.update_one.return_value = MagicMock(matched_count=0)

        assert mongo_store.mark_notified("U1", "notified_1day", expires_at=t0) is False
        collection.update_one.assert_called_once_with(
            {"subscriber_id": "U1", "expires_at": t0}, {"$set": {"notified_1day": True}}
        )

    def test_delete_only_while_expired(self, mongo_store, collection, t0):
        collection.delete_one.return_value = MagicMock(deleted_count=1)

        assert mongo_store.delete_by_subscriber("U1", expired_by=t0) is True
        collection.delete_one.assert_called_once_with({"subscriber_id": "U1", "expires_at": {"$lte": t0}})

    def test_driver_errors_become_store_errors(self, mongo_store, collection):
        collection.delete_one.side_effect = ServerSelectionTimeoutError("no servers")

        with pytest.raises(StoreError):
            mongo_store.delete_by_subscriber("U1")


class TestMongoSetup:
    """Test connection and index creation."""

    def test_ensure_indexes(self, mongo_store, collection):
        mongo_store.ensure_indexes()

        collection.create_index.assert_any_call("subscriber_id", unique=True)
        collection.create_index.assert_any_call("expires_at")
        assert collection.create_index.call_count == 4

    @patch("roster.repositories.mongo_store.MongoClient")
    def test_from_settings(self, mock_client_class):
        config = StoreConfig(backend="mongo", mongo_uri="mongodb://db:27017", database="bot")

        store = MongoSubscriptionStore.from_settings(config)

        mock_client_class.assert_called_once_with("mongodb://db:27017", tz_aware=True)
        mock_client_class.return_value.__getitem__.assert_called_once_with("bot")
        assert isinstance(store, MongoSubscriptionStore)
