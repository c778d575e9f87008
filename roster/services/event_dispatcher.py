"""Subscription notification publishing to Google Cloud Pub/Sub.

Responsibilities:
- Build SubscriptionNotification messages from records
- Publish them to the notifications topic for the delivery worker
- Manage Pub/Sub client lifecycle
"""

from threading import RLock
from typing import Any, Optional

from google.cloud import pubsub_v1
from google.api_core.exceptions import NotFound

from roster.logging_config import get_logger
from roster.models.events import SubscriptionNotification
from roster.models.settings import RosterSettings
from roster.models.subscription import NotificationKind, SubscriptionRecord

logger = get_logger(__name__)


class EventDispatcher:
    """Dispatches subscription notifications to Google Cloud Pub/Sub.

    Publishing is best effort: failures are logged and reported as False,
    never raised. Warning sweeps rely on that result to decide whether a
    warning latch may be set.

    Thread-safe singleton pattern.
    """

    def __init__(self, settings: Optional[RosterSettings] = None, clock=None):
        """Initialize event dispatcher.

        Args:
            settings: Service settings (defaults to global configuration)
            clock: Time source for event_time (defaults to global clock)
        """
        if settings is None:
            from roster.config import get_settings

            settings = get_settings()
        if clock is None:
            from roster.services.clock import get_clock

            clock = get_clock()

        self._lock = RLock()
        self._settings = settings
        self._clock = clock
        self._publisher: Optional[pubsub_v1.PublisherClient] = None
        self._topic_path: Optional[str] = None
        self._enabled = False

        self._initialize()

    def _initialize(self) -> None:
        """Init pub/sub publisher from config"""
        pubsub = self._settings.pubsub
        self._enabled = pubsub.enabled
        if not self._enabled:
            logger.info("event_dispatcher_disabled", message="Pub/Sub notifications are disabled in config")
            return

        try:
            self._publisher = pubsub_v1.PublisherClient()
            self._topic_path = self._publisher.topic_path(pubsub.project_id, pubsub.topic)
            self._ensure_topic_exists()

            logger.info(
                "event_dispatcher_initialized",
                project_id=pubsub.project_id,
                topic=pubsub.topic,
                topic_path=self._topic_path,
            )
        except Exception as e:
            logger.error(
                "event_dispatcher_init_failed",
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            # Disable dispatcher if initialization fails
            self._enabled = False
            self._publisher = None

    def _ensure_topic_exists(self) -> None:
        """Create the notifications topic if it is missing."""
        try:
            self._publisher.get_topic(request={"topic": self._topic_path})
            logger.info("pubsub_topic_exists", topic_path=self._topic_path)
        except NotFound:
            topic = self._publisher.create_topic(request={"name": self._topic_path})
            logger.info("pubsub_topic_created", topic_path=topic.name)

    def is_enabled(self) -> bool:
        """Check if event dispatcher is enabled.

        Returns:
            True if notifications are enabled and the client is initialized
        """
        return self._enabled and self._publisher is not None

    def build_notification(
        self,
        kind: NotificationKind,
        record: SubscriptionRecord,
        extra: Optional[dict[str, Any]] = None,
    ) -> SubscriptionNotification:
        return SubscriptionNotification(
            kind=kind,
            subscriber_id=record.subscriber_id,
            role_id=record.role_id,
            months=record.months,
            start_at=record.start_at,
            expires_at=record.expires_at,
            event_time=self._clock.now(),
            notification_channel_id=self._settings.notification_channel_id,
            extra=extra or {},
        )

    def notify(
        self,
        kind: NotificationKind,
        record: SubscriptionRecord,
        extra: Optional[dict[str, Any]] = None,
    ) -> bool:
        """Publish one lifecycle notification.

        Args:
            kind: Event kind
            record: Subscription the event is about
            extra: Kind-specific details (months added, previous expiry...)

        Returns:
            True if published successfully, False otherwise
        """
        if not self.is_enabled():
            logger.debug("event_dispatcher_disabled", message="Skipping notification", kind=kind.value)
            return False

        with self._lock:
            try:
                notification = self.build_notification(kind, record, extra)
                message_id = self._publish_notification(notification)

                logger.info(
                    "notification_published",
                    kind=kind.value,
                    subscriber_id=record.subscriber_id,
                    message_id=message_id,
                )
                return True

            except Exception as e:
                logger.error(
                    "notification_publish_failed",
                    kind=kind.value,
                    subscriber_id=record.subscriber_id,
                    error=str(e),
                    error_type=type(e).__name__,
                    exc_info=True,
                )
                return False

    def send_warning(self, kind: NotificationKind, record: SubscriptionRecord) -> bool:
        """Warning sender for LifecycleEngine.sweep_warnings."""
        return self.notify(kind, record)

    def _publish_notification(self, notification: SubscriptionNotification) -> str:
        """Publish a notification and wait for the broker to accept it.

        Returns:
            Pub/Sub message ID

        Raises:
            GoogleAPIError: If publication fails after retries
        """
        if not self._publisher or not self._topic_path:
            raise RuntimeError("Publisher is not initialized")

        message_data = notification.model_dump_json().encode("utf-8")

        future = self._publisher.publish(
            self._topic_path,
            message_data,
            # Attributes for subscription filters on the worker side
            notification_kind=notification.kind.value,
            subscriber_id=notification.subscriber_id,
        )
        return future.result(timeout=self._settings.pubsub.publish_timeout_seconds)

    def shutdown(self) -> None:
        """Shutdown the event dispatcher and close connections."""
        with self._lock:
            if self._publisher:
                logger.info("event_dispatcher_shutting_down")
                self._publisher = None
                self._topic_path = None
                logger.info("event_dispatcher_shutdown_complete")


_event_dispatcher: Optional[EventDispatcher] = None
_dispatcher_lock = RLock()


def get_event_dispatcher() -> EventDispatcher:
    """Get or create the singleton EventDispatcher instance."""
    global _event_dispatcher
    if _event_dispatcher is None:
        with _dispatcher_lock:
            if _event_dispatcher is None:
                _event_dispatcher = EventDispatcher()
    return _event_dispatcher


def reset_event_dispatcher() -> None:
    """Reset the singleton EventDispatcher instance (for testing)."""
    global _event_dispatcher

    with _dispatcher_lock:
        if _event_dispatcher is not None:
            _event_dispatcher.shutdown()
            _event_dispatcher = None
