"""Subscription store - in-memory storage for subscription records.

One record per subscriber, with the expiry range queries the sweeps need.
"""

import threading
from datetime import datetime
from typing import Dict, List, Optional

from roster.models.settings import RosterSettings
from roster.models.subscription import SubscriptionRecord

NOTIFICATION_FLAGS = ("notified_1day", "notified_30min")


class SubscriptionNotFoundError(Exception):
    """Raised when a subscription is not found in the store."""

    pass


class StoreError(Exception):
    """Raised when the underlying persistence layer fails."""

    pass


def check_flag(flag: str) -> None:
    """Reject anything that is not a warning latch field."""
    if flag not in NOTIFICATION_FLAGS:
        raise ValueError(f"Unknown notification flag: {flag!r}. Expected one of {NOTIFICATION_FLAGS}")


class SubscriptionStore:
    """In-memory storage for subscription records.

    Thread-safe, keyed by subscriber_id. Records are copied on the way in and
    out so a caller's unsaved changes never leak into the store, the same
    contract a document database gives.
    """

    def __init__(self):
        """Initialize subscription store with empty storage."""
        self._subscriptions: Dict[str, SubscriptionRecord] = {}
        self._lock = threading.RLock()

    def find_by_subscriber(self, subscriber_id: str) -> Optional[SubscriptionRecord]:
        """Find subscription by subscriber (returns None if not found).

        Args:
            subscriber_id: Subscriber identity

        Returns:
            SubscriptionRecord if found, None otherwise
        """
        with self._lock:
            record = self._subscriptions.get(subscriber_id)
            return record.model_copy(deep=True) if record is not None else None

    def get_by_subscriber(self, subscriber_id: str) -> SubscriptionRecord:
        """Get subscription by subscriber.

        Raises:
            SubscriptionNotFoundError: If the subscriber has no subscription
        """
        record = self.find_by_subscriber(subscriber_id)
        if record is None:
            raise SubscriptionNotFoundError(f"Subscription not found for subscriber: {subscriber_id}")
        return record

    def upsert(self, subscription: SubscriptionRecord) -> None:
        """Insert or replace the subscriber's record (last write wins).

        Args:
            subscription: SubscriptionRecord to store
        """
        with self._lock:
            self._subscriptions[subscription.subscriber_id] = subscription.model_copy(deep=True)

    def delete_by_subscriber(self, subscriber_id: str, expired_by: Optional[datetime] = None) -> bool:
        """Delete a subscription by subscriber.

        Args:
            subscriber_id: Subscriber whose record is deleted
            expired_by: If given, delete only while expires_at <= expired_by

        Returns:
            True if a record was deleted, False if none existed or it no longer matched
        """
        with self._lock:
            record = self._subscriptions.get(subscriber_id)
            if record is None:
                return False
            if expired_by is not None and record.expires_at > expired_by:
                return False
            del self._subscriptions[subscriber_id]
            return True

    def exists(self, subscriber_id: str) -> bool:
        with self._lock:
            return subscriber_id in self._subscriptions

    def get_all(self) -> List[SubscriptionRecord]:
        """Get all subscriptions in the store."""
        with self._lock:
            return [r.model_copy(deep=True) for r in self._subscriptions.values()]

    def find_expired(self, now: datetime) -> List[SubscriptionRecord]:
        """Get subscriptions whose expiry is at or before ``now``."""
        with self._lock:
            return [
                r.model_copy(deep=True)
                for r in self._subscriptions.values()
                if r.expires_at <= now
            ]

    def find_active(self, now: datetime) -> List[SubscriptionRecord]:
        """Get subscriptions expiring after ``now``."""
        with self._lock:
            return [
                r.model_copy(deep=True)
                for r in self._subscriptions.values()
                if r.expires_at > now
            ]

    def find_expiring_between(
        self, lower: datetime, upper: datetime, unnotified_flag: str
    ) -> List[SubscriptionRecord]:
        """Get subscriptions with lower <= expires_at < upper whose latch is not set.

        Args:
            lower: Inclusive lower bound on expires_at
            upper: Exclusive upper bound on expires_at
            unnotified_flag: Latch that must still be False

        Returns:
            Matching records
        """
        check_flag(unnotified_flag)
        with self._lock:
            return [
                r.model_copy(deep=True)
                for r in self._subscriptions.values()
                if lower <= r.expires_at < upper and not getattr(r, unnotified_flag)
            ]

    def mark_notified(
        self,
        subscriber_id: str,
        flag: str,
        value: bool = True,
        expires_at: Optional[datetime] = None,
    ) -> bool:
        """Set one warning latch on the stored record.

        Args:
            subscriber_id: Subscriber whose record is updated
            flag: notified_1day or notified_30min
            value: New latch value
            expires_at: If given, update only while the record still has this expiry

        Returns:
            True if the record exists and was updated, False otherwise
        """
        check_flag(flag)
        with self._lock:
            record = self._subscriptions.get(subscriber_id)
            if record is None:
                return False
            if expires_at is not None and record.expires_at != expires_at:
                return False
            setattr(record, flag, value)
            return True

    def count(self) -> int:
        """Get total number of subscriptions."""
        with self._lock:
            return len(self._subscriptions)

    def count_active(self, now: datetime) -> int:
        with self._lock:
            return sum(1 for r in self._subscriptions.values() if r.expires_at > now)

    def count_expired(self, now: datetime) -> int:
        with self._lock:
            return sum(1 for r in self._subscriptions.values() if r.expires_at <= now)

    def get_statistics(self, now: datetime) -> Dict[str, int]:
        """Get total/active/expired counts from one consistent snapshot."""
        with self._lock:
            records = list(self._subscriptions.values())
            active = sum(1 for r in records if r.expires_at > now)
            return {
                "total": len(records),
                "active": active,
                "expired": len(records) - active,
            }

    def clear(self) -> None:
        """Clear all subscriptions from the store.

        Warning: This removes all data. Use with caution.
        """
        with self._lock:
            self._subscriptions.clear()

    def __len__(self) -> int:
        return self.count()

    def __contains__(self, subscriber_id: str) -> bool:
        return self.exists(subscriber_id)

    def __repr__(self) -> str:
        return f"SubscriptionStore(subscriptions={self.count()})"


def create_subscription_store(settings: RosterSettings):
    """Build the store backend named in the settings.

    Args:
        settings: Service settings

    Returns:
        SubscriptionStore or MongoSubscriptionStore
    """
    if settings.store.backend == "mongo":
        from roster.repositories.mongo_store import MongoSubscriptionStore

        return MongoSubscriptionStore.from_settings(settings.store)
    return SubscriptionStore()


# Global store instance
_store_instance = None
_store_lock = threading.Lock()


def get_subscription_store():
    """Get global subscription store instance (singleton).

    Returns:
        The configured store backend
    """
    global _store_instance
    if _store_instance is None:
        with _store_lock:
            if _store_instance is None:
                from roster.config import get_settings

                _store_instance = create_subscription_store(get_settings())
    return _store_instance


def reset_subscription_store() -> None:
    """Drop the global store instance so the next call rebuilds it."""
    global _store_instance
    with _store_lock:
        _store_instance = None
