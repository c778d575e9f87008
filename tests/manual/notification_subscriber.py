#!/usr/bin/env python3
"""Watch subscription notifications published by roster.

Creates a pull subscription on the notifications topic (if missing) and
prints every grant, extension, removal, expiry and warning as it arrives.
Handy for checking warning timing while moving virtual time through
/admin/time/advance.

Usage:
    export PUBSUB_EMULATOR_HOST=localhost:8085
    python tests/manual/notification_subscriber.py
"""

import os
import sys

from google.api_core.exceptions import AlreadyExists
from google.cloud import pubsub_v1
from pydantic import ValidationError

from roster.models import NotificationKind, SubscriptionNotification

PROJECT_ID = os.environ.get("PUBSUB_PROJECT_ID", "roster-local")
TOPIC_NAME = os.environ.get("PUBSUB_TOPIC_NAME", "roster-notifications")
SUBSCRIPTION_NAME = os.environ.get("PUBSUB_SUBSCRIPTION_NAME", "roster-notifications-watch")

# Where the delivery worker would send each kind
DESTINATIONS = {
    NotificationKind.GRANTED: "channel",
    NotificationKind.EXTENDED: "channel",
    NotificationKind.REVOKED: "channel",
    NotificationKind.EXPIRED: "channel",
    NotificationKind.WARN_1DAY: "DM",
    NotificationKind.WARN_30MIN: "DM",
}


def format_notification(notification: SubscriptionNotification) -> str:
    """Format notification for printing."""
    lines = [
        f"Kind: {notification.kind.value} -> {DESTINATIONS.get(notification.kind, '?')}",
        f"Subscriber: {notification.subscriber_id}",
        f"Role: {notification.role_id}",
        f"Months: {notification.months}",
        f"Expires: {notification.expires_at.isoformat()}",
        f"Event time: {notification.event_time.isoformat()}",
    ]
    for key, value in notification.extra.items():
        lines.append(f"  {key}: {value}")
    return "\n".join(lines)


def callback(message) -> None:
    try:
        notification = SubscriptionNotification.model_validate_json(message.data)
    except ValidationError as e:
        print(f"\nUnreadable message {message.message_id}: {e}")
        # Nothing will ever parse it, don't let it redeliver
        message.ack()
        return

    print(f"\n{'-' * 50}")
    print(format_notification(notification))
    message.ack()


def ensure_subscription(subscriber: pubsub_v1.SubscriberClient) -> str:
    topic_path = subscriber.topic_path(PROJECT_ID, TOPIC_NAME)
    subscription_path = subscriber.subscription_path(PROJECT_ID, SUBSCRIPTION_NAME)
    try:
        subscriber.create_subscription(request={"name": subscription_path, "topic": topic_path})
        print(f"Created subscription {subscription_path}")
    except AlreadyExists:
        pass
    return subscription_path


def main() -> None:
    emulator_host = os.environ.get("PUBSUB_EMULATOR_HOST")
    if not emulator_host:
        print("PUBSUB_EMULATOR_HOST not set, e.g. export PUBSUB_EMULATOR_HOST=localhost:8085")
        sys.exit(1)

    subscriber = pubsub_v1.SubscriberClient()
    subscription_path = ensure_subscription(subscriber)

    print(f"Listening on {subscription_path} via {emulator_host}, Ctrl+C to stop")
    streaming_pull_future = subscriber.subscribe(subscription_path, callback=callback)

    with subscriber:
        try:
            streaming_pull_future.result()
        except KeyboardInterrupt:
            streaming_pull_future.cancel()
            streaming_pull_future.result()
            print("\nSubscriber stopped")


if __name__ == "__main__":
    main()
