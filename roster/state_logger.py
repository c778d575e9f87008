"""Before/after logging for subscription record changes.

Every mutation of a SubscriptionRecord that matters for auditing (expiry
moved, warning latch flipped, record deleted) goes through one of these.
"""

from datetime import datetime
from typing import Any, Optional

from roster.logging_config import get_logger

logger = get_logger(__name__)


def log_expiry_change(
    subscriber_id: str,
    old_expires_at: datetime,
    new_expires_at: datetime,
    reason: str,
    **extra_context: Any,
) -> None:
    """Log a subscription expiry change.

    Args:
        subscriber_id: Subscriber identity
        old_expires_at: Previous expiry
        new_expires_at: New expiry
        reason: Reason for change (extension, manual correction, ...)
        **extra_context: Additional context (role_id, months, ...)
    """
    logger.info(
        "expiry_changed",
        subscriber_id=subscriber_id,
        old_expiry=old_expires_at.isoformat(),
        new_expiry=new_expires_at.isoformat(),
        extension_days=(new_expires_at - old_expires_at).total_seconds() / 86400,
        reason=reason,
        **extra_context,
    )


def log_notification_flag_change(
    subscriber_id: str,
    flag: str,
    old_value: bool,
    new_value: bool,
    reason: Optional[str] = None,
    **extra_context: Any,
) -> None:
    """Log a warning latch change.

    Args:
        subscriber_id: Subscriber identity
        flag: Latch field name (notified_1day, notified_30min)
        old_value: Previous latch value
        new_value: New latch value
        reason: Why the latch changed
        **extra_context: Additional context
    """
    if old_value == new_value:
        return
    logger.info(
        "notification_flag_changed",
        subscriber_id=subscriber_id,
        flag=flag,
        old_value=old_value,
        new_value=new_value,
        reason=reason,
        **extra_context,
    )


def log_subscription_removed(
    subscriber_id: str,
    role_id: str,
    expires_at: datetime,
    reason: str,
    **extra_context: Any,
) -> None:
    """Log physical removal of a subscription record.

    Args:
        subscriber_id: Subscriber identity
        role_id: Role the subscription granted
        expires_at: Expiry at the time of removal
        reason: removed, expired, role_removed
        **extra_context: Additional context
    """
    logger.info(
        "subscription_record_removed",
        subscriber_id=subscriber_id,
        role_id=role_id,
        expires_at=expires_at.isoformat(),
        reason=reason,
        **extra_context,
    )
