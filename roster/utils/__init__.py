"""Utility functions and helpers for the roster service."""

from roster.utils.time_remaining import (
    EXPIRING_SOON,
    EXPIRING_TODAY,
    TimeLeft,
    format_time_remaining,
    get_time_remaining,
    is_expiring_soon,
    is_expiring_today,
)

__all__ = [
    # Time remaining
    "TimeLeft",
    "get_time_remaining",
    "format_time_remaining",
    # Listing thresholds
    "EXPIRING_SOON",
    "EXPIRING_TODAY",
    "is_expiring_soon",
    "is_expiring_today",
]
