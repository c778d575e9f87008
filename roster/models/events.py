"""Notification messages published for the delivery worker.

The worker turns each message into a chat message (DM for warnings, channel
post for grants, removals and expiries).
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from .subscription import NotificationKind


class SubscriptionNotification(BaseModel):
    """One lifecycle event for one subscriber."""

    version: str = Field(default="1.0", description="Message schema version")
    kind: NotificationKind = Field(..., description="Event kind")
    subscriber_id: str = Field(..., description="Subscriber identity")
    role_id: str = Field(..., description="Role of the subscription")
    months: int = Field(..., description="Cumulative months on the record")
    start_at: datetime = Field(..., description="Subscription start")
    expires_at: datetime = Field(..., description="Subscription expiry")
    event_time: datetime = Field(..., description="When the event happened")
    notification_channel_id: Optional[str] = Field(
        None, description="Channel for public notices, if configured"
    )
    extra: dict[str, Any] = Field(default_factory=dict, description="Kind-specific details")

    class Config:
        json_schema_extra = {
            "example": {
                "version": "1.0",
                "kind": NotificationKind.EXTENDED,
                "subscriber_id": "265318401234567890",
                "role_id": "1102934875610238976",
                "months": 5,
                "start_at": "2026-10-01T12:00:00Z",
                "expires_at": "2027-02-28T12:00:00Z",
                "event_time": "2026-10-19T09:30:00Z",
                "notification_channel_id": "1102934875610238999",
                "extra": {"months_added": 2, "previous_expiry": "2026-12-30T12:00:00Z"},
            }
        }
