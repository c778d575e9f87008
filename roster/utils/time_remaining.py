"""Time remaining until a subscription expires.

Breaks the gap between now and an expiry into whole days, hours and
minutes for status replies and the active subscription listing.
"""

from datetime import datetime, timedelta
from typing import NamedTuple

SECONDS_PER_MINUTE = 60
SECONDS_PER_HOUR = 60 * SECONDS_PER_MINUTE
SECONDS_PER_DAY = 24 * SECONDS_PER_HOUR

# Listing thresholds
EXPIRING_SOON = timedelta(days=7)
EXPIRING_TODAY = timedelta(days=1)


class TimeLeft(NamedTuple):
    days: int
    hours: int
    minutes: int
    expired: bool


def get_time_remaining(expires_at: datetime, now: datetime) -> TimeLeft:
    """Split expires_at - now into days, hours and minutes (truncated).

    Args:
        expires_at: Subscription expiry
        now: Reference instant

    Returns:
        TimeLeft; all zero with expired=True once expires_at <= now
    """
    remaining = expires_at - now
    if remaining <= timedelta(0):
        return TimeLeft(0, 0, 0, True)

    total_seconds = int(remaining.total_seconds())
    days, rest = divmod(total_seconds, SECONDS_PER_DAY)
    hours, rest = divmod(rest, SECONDS_PER_HOUR)
    minutes = rest // SECONDS_PER_MINUTE
    return TimeLeft(days, hours, minutes, False)


def format_time_remaining(expires_at: datetime, now: datetime) -> str:
    """Short human form, e.g. "5d 3h 45m" or "Expired".

    Examples:
        >>> from datetime import timezone
        >>> now = datetime(2026, 1, 1, tzinfo=timezone.utc)
        >>> format_time_remaining(now + timedelta(days=5, hours=3, minutes=45), now)
        '5d 3h 45m'
        >>> format_time_remaining(now, now)
        'Expired'
    """
    left = get_time_remaining(expires_at, now)
    if left.expired:
        return "Expired"
    return f"{left.days}d {left.hours}h {left.minutes}m"


def is_expiring_soon(expires_at: datetime, now: datetime) -> bool:
    """True while the subscription is active with 7 days or less left."""
    return timedelta(0) < expires_at - now <= EXPIRING_SOON


def is_expiring_today(expires_at: datetime, now: datetime) -> bool:
    return timedelta(0) < expires_at - now <= EXPIRING_TODAY
