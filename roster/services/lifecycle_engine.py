"""Subscription lifecycle rules and sweeps.

Responsibilities:
- Create subscriptions and extend existing ones (30 days per month)
- Remove subscriptions and answer status queries
- Sweep expired subscriptions out of the store
- Drive the two expiry warnings (24 hours, 30 minutes) as one-shot latches

The engine never touches roles or sends messages itself. Callers pass
callbacks to the sweeps and act on returned records.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from roster.logging_config import get_logger
from roster.models.settings import RosterSettings, WarningConfig
from roster.models.subscription import (
    MAX_MONTHS_PER_GRANT,
    MIN_MONTHS_PER_GRANT,
    AddResult,
    NotificationKind,
    SubscriptionRecord,
    SubscriptionStats,
    months_to_timedelta,
)
from roster.repositories.subscription_store import SubscriptionNotFoundError
from roster.state_logger import log_notification_flag_change, log_subscription_removed

logger = get_logger(__name__)

ExpiredCallback = Callable[[SubscriptionRecord], None]
WarningSender = Callable[[NotificationKind, SubscriptionRecord], bool]


class SubscriptionError(Exception):
    """Base exception for subscription errors."""

    pass


class SubscriptionValidationError(SubscriptionError, ValueError):
    """Raised when a request is invalid; nothing has been changed."""

    pass


@dataclass(frozen=True)
class WarningTier:
    """One expiry warning: eligible while lead <= time left < lead + window."""

    kind: NotificationKind
    flag: str
    lead: timedelta
    window: timedelta

    def is_eligible(self, record: SubscriptionRecord, now: datetime) -> bool:
        if getattr(record, self.flag):
            return False
        remaining = record.expires_at - now
        return self.lead <= remaining < self.lead + self.window


def build_warning_tiers(warnings: WarningConfig) -> tuple[WarningTier, ...]:
    """Warning tiers from settings, longest lead first."""
    return (
        WarningTier(
            kind=NotificationKind.WARN_1DAY,
            flag="notified_1day",
            lead=timedelta(minutes=warnings.one_day_lead_minutes),
            window=timedelta(minutes=warnings.one_day_window_minutes),
        ),
        WarningTier(
            kind=NotificationKind.WARN_30MIN,
            flag="notified_30min",
            lead=timedelta(minutes=warnings.thirty_min_lead_minutes),
            window=timedelta(minutes=warnings.thirty_min_window_minutes),
        ),
    )


def validate_grant(subscriber_id: str, months: int, role_id: str) -> None:
    """Reject a grant before anything is read or written.

    Raises:
        SubscriptionValidationError: on a bad subscriber, role or month count
    """
    if not isinstance(subscriber_id, str) or not subscriber_id.strip():
        raise SubscriptionValidationError("subscriber_id is required")
    if not isinstance(role_id, str) or not role_id.strip():
        raise SubscriptionValidationError("role_id is required")
    # bool is an int subclass; True must not count as one month
    if isinstance(months, bool) or not isinstance(months, int):
        raise SubscriptionValidationError(f"months must be an integer, got {months!r}")
    if not MIN_MONTHS_PER_GRANT <= months <= MAX_MONTHS_PER_GRANT:
        raise SubscriptionValidationError(
            f"months must be between {MIN_MONTHS_PER_GRANT} and {MAX_MONTHS_PER_GRANT}, got {months}"
        )


class LifecycleEngine:
    """Subscription lifecycle engine.

    Works over a subscription store and a clock. Store errors propagate
    unchanged; only the sweeps isolate failures per record.
    """

    def __init__(self, subscription_store=None, clock=None, settings: Optional[RosterSettings] = None):
        """Initialize lifecycle engine.

        Args:
            subscription_store: Subscription storage (defaults to global instance)
            clock: Time source (defaults to global clock)
            settings: Service settings (defaults to global configuration)
        """
        if subscription_store is None:
            from roster.repositories.subscription_store import get_subscription_store

            subscription_store = get_subscription_store()
        if clock is None:
            from roster.services.clock import get_clock

            clock = get_clock()
        if settings is None:
            from roster.config import get_settings

            settings = get_settings()

        self.store = subscription_store
        self.clock = clock
        self.settings = settings
        self.warning_tiers = build_warning_tiers(settings.warnings)

        logger.info("lifecycle_engine_initialized", default_role_id=settings.default_role_id)

    def _now(self, now: Optional[datetime]) -> datetime:
        return now if now is not None else self.clock.now()

    def add_or_extend(
        self,
        subscriber_id: str,
        months: int,
        role_id: Optional[str] = None,
    ) -> AddResult:
        """Create a subscription or extend the existing one.

        Calling twice extends twice; the operation is additive.

        Args:
            subscriber_id: Subscriber identity
            months: Months to grant, 1-10
            role_id: Role for a new subscription (defaults to the configured role).
                An existing subscription keeps its role.

        Returns:
            AddResult with the stored record

        Raises:
            SubscriptionValidationError: If the input is invalid
            StoreError: If persistence fails
        """
        if role_id is None:
            role_id = self.settings.default_role_id
        validate_grant(subscriber_id, months, role_id)

        now = self.clock.now()
        existing = self.store.find_by_subscriber(subscriber_id)

        if existing is None:
            record = SubscriptionRecord(
                subscriber_id=subscriber_id,
                role_id=role_id,
                months=months,
                start_at=now,
                expires_at=now + months_to_timedelta(months),
                created_at=now,
                updated_at=now,
            )
            self.store.upsert(record)

            logger.info(
                "subscription_created",
                subscriber_id=subscriber_id,
                role_id=role_id,
                months=months,
                expires_at=record.expires_at.isoformat(),
            )
            return AddResult(record=record, was_created=True)

        if existing.role_id != role_id:
            logger.debug(
                "subscription_role_kept",
                subscriber_id=subscriber_id,
                stored_role_id=existing.role_id,
                requested_role_id=role_id,
            )

        previous_expiry = existing.extend(months, reason=f"Extended by {months} month(s)")
        existing.updated_at = now
        self.store.upsert(existing)

        logger.info(
            "subscription_extended",
            subscriber_id=subscriber_id,
            months_added=months,
            total_months=existing.months,
            previous_expiry=previous_expiry.isoformat(),
            expires_at=existing.expires_at.isoformat(),
        )
        return AddResult(record=existing, was_created=False, previous_expiry=previous_expiry)

    def remove(self, subscriber_id: str) -> bool:
        """Delete a subscriber's subscription.

        Returns:
            True if a subscription existed and was deleted, False otherwise
        """
        record = self.store.find_by_subscriber(subscriber_id)
        if record is None:
            logger.debug("subscription_remove_missing", subscriber_id=subscriber_id)
            return False

        removed = self.store.delete_by_subscriber(subscriber_id)
        if removed:
            log_subscription_removed(
                subscriber_id=subscriber_id,
                role_id=record.role_id,
                expires_at=record.expires_at,
                reason="removed",
            )
        return removed

    def status(self, subscriber_id: str) -> Optional[SubscriptionRecord]:
        """Last known state of a subscriber's subscription, expired or not."""
        return self.store.find_by_subscriber(subscriber_id)

    def get_status(self, subscriber_id: str) -> SubscriptionRecord:
        """Like status, for callers where absence is an error.

        Raises:
            SubscriptionNotFoundError: If the subscriber has no subscription
        """
        record = self.status(subscriber_id)
        if record is None:
            raise SubscriptionNotFoundError(f"Subscription not found for subscriber: {subscriber_id}")
        return record

    def is_active(self, record: SubscriptionRecord, now: Optional[datetime] = None) -> bool:
        return record.is_active(self._now(now))

    def list_active(self, now: Optional[datetime] = None) -> list[SubscriptionRecord]:
        """Active subscriptions, soonest expiry first."""
        records = self.store.find_active(self._now(now))
        return sorted(records, key=lambda r: r.expires_at)

    def get_statistics(self, now: Optional[datetime] = None) -> SubscriptionStats:
        """Total, active (expires_at > now) and expired (expires_at <= now) counts."""
        return SubscriptionStats(**self.store.get_statistics(self._now(now)))

    def sweep_expired(
        self,
        now: Optional[datetime] = None,
        on_expired: Optional[ExpiredCallback] = None,
    ) -> list[tuple[str, str]]:
        """Delete every subscription with expires_at <= now.

        ``on_expired`` runs before each deletion (typically: revoke the role,
        announce the expiry). Its failure is logged and the record is deleted
        anyway; there is no retry on a later sweep. The delete only matches
        while the record is still expired, so an extension that lands during
        the sweep survives.

        Args:
            now: Sweep instant (defaults to the clock)
            on_expired: Caller action per expired record

        Returns:
            (subscriber_id, role_id) of every deleted record
        """
        now = self._now(now)
        expired = self.store.find_expired(now)
        removed: list[tuple[str, str]] = []

        for record in expired:
            if on_expired is not None:
                try:
                    on_expired(record)
                except Exception as e:
                    logger.warning(
                        "expired_callback_failed",
                        subscriber_id=record.subscriber_id,
                        role_id=record.role_id,
                        error=str(e),
                        error_type=type(e).__name__,
                    )

            try:
                deleted = self.store.delete_by_subscriber(record.subscriber_id, expired_by=now)
            except Exception as e:
                logger.error(
                    "expired_delete_failed",
                    subscriber_id=record.subscriber_id,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                continue

            if not deleted:
                # removed, or extended past now, after find_expired read it
                logger.info("expired_record_not_deleted", subscriber_id=record.subscriber_id)
                continue

            log_subscription_removed(
                subscriber_id=record.subscriber_id,
                role_id=record.role_id,
                expires_at=record.expires_at,
                reason="expired",
            )
            removed.append((record.subscriber_id, record.role_id))

        if expired:
            logger.info(
                "expired_sweep_completed",
                found=len(expired),
                removed=len(removed),
                swept_at=now.isoformat(),
            )
        return removed

    def find_warning_candidates(self, tier: WarningTier, now: Optional[datetime] = None) -> list[SubscriptionRecord]:
        """Records inside the tier's window whose latch is still clear."""
        now = self._now(now)
        return self.store.find_expiring_between(now + tier.lead, now + tier.lead + tier.window, tier.flag)

    def sweep_warnings(
        self,
        send: WarningSender,
        now: Optional[datetime] = None,
    ) -> dict[str, int]:
        """Send due expiry warnings and latch them.

        For each eligible record ``send(kind, record)`` runs first; only a
        truthy result sets the latch. A failed send is retried on the next
        sweep while the record is still inside the window. If the latch
        update fails after a successful send, the warning goes out again
        (at-least-once).

        Args:
            send: Delivery action, returns True when the warning went out
            now: Sweep instant (defaults to the clock)

        Returns:
            Number of warnings delivered per kind
        """
        now = self._now(now)
        results: dict[str, int] = {}
        for tier in self.warning_tiers:
            results[tier.kind.value] = self._sweep_tier(tier, now, send)

        if any(results.values()):
            logger.info("warning_sweep_completed", swept_at=now.isoformat(), **results)
        return results

    def _sweep_tier(self, tier: WarningTier, now: datetime, send: WarningSender) -> int:
        delivered = 0
        for record in self.find_warning_candidates(tier, now):
            try:
                sent = send(tier.kind, record)
            except Exception as e:
                logger.warning(
                    "warning_send_failed",
                    kind=tier.kind.value,
                    subscriber_id=record.subscriber_id,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                continue

            if not sent:
                logger.debug("warning_not_delivered", kind=tier.kind.value, subscriber_id=record.subscriber_id)
                continue
            delivered += 1

            try:
                marked = self.store.mark_notified(record.subscriber_id, tier.flag, expires_at=record.expires_at)
            except Exception as e:
                logger.error(
                    "warning_flag_update_failed",
                    kind=tier.kind.value,
                    subscriber_id=record.subscriber_id,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                continue

            if not marked:
                # extended or removed while sending; the new expiry keeps its latch clear
                logger.info("warning_flag_stale", kind=tier.kind.value, subscriber_id=record.subscriber_id)
                continue

            log_notification_flag_change(
                subscriber_id=record.subscriber_id,
                flag=tier.flag,
                old_value=False,
                new_value=True,
                reason=f"{tier.kind.value} sent",
            )
        return delivered


# Global engine instance
_engine_instance: Optional[LifecycleEngine] = None


def get_lifecycle_engine() -> LifecycleEngine:
    """Get global lifecycle engine instance (singleton)."""
    global _engine_instance
    if _engine_instance is None:
        _engine_instance = LifecycleEngine()
    return _engine_instance


def reset_lifecycle_engine() -> None:
    global _engine_instance
    _engine_instance = None
