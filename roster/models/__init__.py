"""Pydantic models for settings, subscription records, notifications and the HTTP API."""

# Settings models
from .settings import (
    DiscordConfig,
    PubSubConfig,
    RosterSettings,
    ScheduleConfig,
    StoreConfig,
    WarningConfig,
)

# Subscription models
from .subscription import (
    DAYS_PER_MONTH,
    MAX_MONTHS_PER_GRANT,
    MIN_MONTHS_PER_GRANT,
    AddResult,
    NotificationKind,
    SubscriptionRecord,
    SubscriptionStats,
    months_to_timedelta,
)

# Notification messages
from .events import SubscriptionNotification

# HTTP API models
from .api_request import (
    ActiveSubscriptionEntry,
    AddSubscriptionRequest,
    AddSubscriptionResponse,
    AdvanceTimeRequest,
    ErrorDetailResponse,
    ErrorResponse,
    RemoveSubscriptionResponse,
    RoleRemovedRequest,
    RoleRemovedResponse,
    SetTimeRequest,
    StatsResponse,
    SubscriptionStatusResponse,
    SubscriptionView,
    SweepExpiredResponse,
    SweepWarningsResponse,
    TimeChangeResponse,
    TimeRemaining,
    TimeStatusResponse,
)

__all__ = [
    # Settings
    "DiscordConfig",
    "PubSubConfig",
    "RosterSettings",
    "ScheduleConfig",
    "StoreConfig",
    "WarningConfig",
    # Subscription
    "DAYS_PER_MONTH",
    "MAX_MONTHS_PER_GRANT",
    "MIN_MONTHS_PER_GRANT",
    "AddResult",
    "NotificationKind",
    "SubscriptionRecord",
    "SubscriptionStats",
    "months_to_timedelta",
    # Notifications
    "SubscriptionNotification",
    # HTTP API
    "ActiveSubscriptionEntry",
    "AddSubscriptionRequest",
    "AddSubscriptionResponse",
    "AdvanceTimeRequest",
    "ErrorDetailResponse",
    "ErrorResponse",
    "RemoveSubscriptionResponse",
    "RoleRemovedRequest",
    "RoleRemovedResponse",
    "SetTimeRequest",
    "StatsResponse",
    "SubscriptionStatusResponse",
    "SubscriptionView",
    "SweepExpiredResponse",
    "SweepWarningsResponse",
    "TimeChangeResponse",
    "TimeRemaining",
    "TimeStatusResponse",
]
