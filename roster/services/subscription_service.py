"""Subscription service - the command layer around the lifecycle engine.

The engine only keeps records. This layer adds the side effects a caller
owes it: granting and revoking roles, and publishing notifications.
"""

from datetime import datetime
from typing import Optional

from roster.logging_config import get_logger
from roster.models.subscription import (
    AddResult,
    NotificationKind,
    SubscriptionRecord,
    SubscriptionStats,
)
from roster.services.lifecycle_engine import LifecycleEngine

logger = get_logger(__name__)


class SubscriptionService:
    """Orchestrates engine calls, role changes and notifications.

    Role failures propagate as RoleActuationError except inside the expiry
    sweep, where the engine logs them and deletes the record anyway.
    Notification failures never propagate.
    """

    def __init__(self, engine=None, role_actuator=None, dispatcher=None):
        """Initialize subscription service.

        Args:
            engine: Lifecycle engine (defaults to global instance)
            role_actuator: Role actuator (defaults to global instance)
            dispatcher: Event dispatcher (defaults to global instance)
        """
        if engine is None:
            from roster.services.lifecycle_engine import get_lifecycle_engine

            engine = get_lifecycle_engine()
        if role_actuator is None:
            from roster.services.role_actuator import get_role_actuator

            role_actuator = get_role_actuator()
        if dispatcher is None:
            from roster.services.event_dispatcher import get_event_dispatcher

            dispatcher = get_event_dispatcher()

        self.engine: LifecycleEngine = engine
        self.role_actuator = role_actuator
        self.dispatcher = dispatcher

    @property
    def clock(self):
        return self.engine.clock

    def add_subscription(
        self,
        subscriber_id: str,
        months: int,
        role_id: Optional[str] = None,
        executor_id: Optional[str] = None,
    ) -> AddResult:
        """Grant or extend a subscription and hand out the role.

        Args:
            subscriber_id: Subscriber identity
            months: Months to grant, 1-10
            role_id: Role for a new subscription (defaults to the configured role)
            executor_id: Operator who issued the command, for the notice

        Returns:
            AddResult from the engine

        Raises:
            SubscriptionValidationError: If the input is invalid
            StoreError: If persistence fails
            RoleActuationError: If the role could not be granted (record is kept)
        """
        result = self.engine.add_or_extend(subscriber_id, months, role_id)
        record = result.record

        self.role_actuator.grant_role(record.subscriber_id, record.role_id)

        extra = {"months_added": months, "executor_id": executor_id}
        if result.was_created:
            kind = NotificationKind.GRANTED
        else:
            kind = NotificationKind.EXTENDED
            extra["previous_expiry"] = result.previous_expiry.isoformat()
        self.dispatcher.notify(kind, record, extra)

        return result

    def remove_subscription(
        self,
        subscriber_id: str,
        executor_id: Optional[str] = None,
    ) -> Optional[SubscriptionRecord]:
        """Revoke the role, then delete the subscription.

        Returns:
            The record as it was before removal, or None if the subscriber had
            no subscription

        Raises:
            RoleActuationError: If the role could not be revoked (record is kept)
            StoreError: If persistence fails
        """
        record = self.engine.status(subscriber_id)
        if record is None:
            logger.info("subscription_remove_not_found", subscriber_id=subscriber_id)
            return None

        self.role_actuator.revoke_role(record.subscriber_id, record.role_id)
        if self.engine.remove(subscriber_id):
            self.dispatcher.notify(NotificationKind.REVOKED, record, {"executor_id": executor_id})
        else:
            # a concurrent sweep or removal got there first and owns the notice
            logger.info("subscription_remove_raced", subscriber_id=subscriber_id)
        return record

    def get_status(self, subscriber_id: str) -> Optional[SubscriptionRecord]:
        return self.engine.status(subscriber_id)

    def handle_role_removed(self, subscriber_id: str, role_id: Optional[str] = None) -> bool:
        """Drop a subscription whose role was taken away outside this service.

        Args:
            subscriber_id: Member who lost the role
            role_id: Role that was removed; None matches any role

        Returns:
            True if a subscription was deleted
        """
        record = self.engine.status(subscriber_id)
        if record is None:
            return False
        if role_id is not None and role_id != record.role_id:
            logger.debug(
                "role_removed_unrelated",
                subscriber_id=subscriber_id,
                role_id=role_id,
                subscription_role_id=record.role_id,
            )
            return False

        removed = self.engine.remove(subscriber_id)
        if removed:
            logger.info("subscription_removed_with_role", subscriber_id=subscriber_id, role_id=record.role_id)
            self.dispatcher.notify(NotificationKind.REVOKED, record, {"reason": "role_removed"})
        return removed

    def _on_expired(self, record: SubscriptionRecord) -> None:
        self.role_actuator.revoke_role(record.subscriber_id, record.role_id)
        self.dispatcher.notify(NotificationKind.EXPIRED, record)

    def process_expired(self, now: Optional[datetime] = None) -> list[tuple[str, str]]:
        """Run the expiry sweep with role revocation and expiry notices."""
        return self.engine.sweep_expired(now=now, on_expired=self._on_expired)

    def process_warnings(self, now: Optional[datetime] = None) -> dict[str, int]:
        """Run the warning sweep, publishing each warning before latching it."""
        return self.engine.sweep_warnings(self.dispatcher.send_warning, now=now)

    def get_statistics(self, now: Optional[datetime] = None) -> SubscriptionStats:
        return self.engine.get_statistics(now)

    def list_active(self, now: Optional[datetime] = None) -> list[SubscriptionRecord]:
        return self.engine.list_active(now)


_service_instance: Optional[SubscriptionService] = None


def get_subscription_service() -> SubscriptionService:
    """Get global subscription service instance (singleton)."""
    global _service_instance
    if _service_instance is None:
        _service_instance = SubscriptionService()
    return _service_instance


def reset_subscription_service() -> None:
    global _service_instance
    _service_instance = None
