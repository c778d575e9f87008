"""Subscription record and lifecycle models.

Includes the stored record, notification kinds and the add/extend result.
"""

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

DAYS_PER_MONTH = 30  # a "month" is always 30 days, never a calendar month
MIN_MONTHS_PER_GRANT = 1
MAX_MONTHS_PER_GRANT = 10


def months_to_timedelta(months: int) -> timedelta:
    """Duration of a grant of ``months`` months."""
    return timedelta(days=DAYS_PER_MONTH * months)


class NotificationKind(str, Enum):
    """Events handed to the notification sink."""

    GRANTED = "granted"  # new subscription created
    EXTENDED = "extended"  # existing subscription extended
    REVOKED = "revoked"  # removed by an operator or a manual role removal
    EXPIRED = "expired"  # removed by the expiry sweep
    WARN_1DAY = "warn_1day"  # about 24 hours left
    WARN_30MIN = "warn_30min"  # about 30 minutes left


class SubscriptionRecord(BaseModel):
    """Stored subscription, one per subscriber."""

    subscriber_id: str = Field(..., min_length=1, description="Subscriber identity (chat user ID)")
    role_id: str = Field(..., min_length=1, description="Role granted by this subscription")
    months: int = Field(..., ge=MIN_MONTHS_PER_GRANT, description="Cumulative months ever granted")

    start_at: datetime = Field(..., description="Creation time, never changes")
    expires_at: datetime = Field(..., description="Current expiry")

    # Warning latches for the current expires_at value
    notified_1day: bool = Field(default=False, description="24 hour warning sent")
    notified_30min: bool = Field(default=False, description="30 minute warning sent")

    created_at: Optional[datetime] = Field(None, description="When the record was first stored")
    updated_at: Optional[datetime] = Field(None, description="Last mutation time")

    @field_validator("start_at", "expires_at", "created_at", "updated_at")
    @classmethod
    def ensure_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        """Treat naive datetimes (as some drivers return them) as UTC."""
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @model_validator(mode="after")
    def check_window(self) -> "SubscriptionRecord":
        if self.expires_at <= self.start_at:
            raise ValueError("expires_at must be after start_at")
        return self

    def is_active(self, now: datetime) -> bool:
        """Active means not yet expired; expiry itself counts as expired."""
        return self.expires_at > now

    def extend(self, months: int, reason: str = "extension") -> datetime:
        """Push expiry out by ``months`` and re-arm both warnings.

        Days accumulate on the current expiry, so repeated extensions are a
        plain sum of their 30-day blocks.

        Args:
            months: Months to add
            reason: Reason recorded in the expiry log

        Returns:
            The expiry before the extension
        """
        from roster.state_logger import log_expiry_change, log_notification_flag_change

        old_expiry = self.expires_at
        self.expires_at = old_expiry + months_to_timedelta(months)
        self.months += months

        log_expiry_change(
            subscriber_id=self.subscriber_id,
            old_expires_at=old_expiry,
            new_expires_at=self.expires_at,
            reason=reason,
            role_id=self.role_id,
            months=self.months,
        )
        for flag in ("notified_1day", "notified_30min"):
            log_notification_flag_change(
                subscriber_id=self.subscriber_id,
                flag=flag,
                old_value=getattr(self, flag),
                new_value=False,
                reason="expiry extended",
            )
            setattr(self, flag, False)

        return old_expiry

    class Config:
        json_schema_extra = {
            "example": {
                "subscriber_id": "265318401234567890",
                "role_id": "1102934875610238976",
                "months": 3,
                "start_at": "2026-10-01T12:00:00Z",
                "expires_at": "2026-12-30T12:00:00Z",
                "notified_1day": False,
                "notified_30min": False,
            }
        }


class AddResult(BaseModel):
    """Outcome of add_or_extend."""

    record: SubscriptionRecord
    was_created: bool = Field(..., description="True when a new record was created")
    previous_expiry: Optional[datetime] = Field(None, description="Expiry before an extension")


class SubscriptionStats(BaseModel):
    """Counts over the whole store at one instant."""

    total: int = Field(..., ge=0)
    active: int = Field(..., ge=0)
    expired: int = Field(..., ge=0)
