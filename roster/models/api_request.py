"""API request and response models for the HTTP endpoints."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from .subscription import MAX_MONTHS_PER_GRANT, MIN_MONTHS_PER_GRANT


class AddSubscriptionRequest(BaseModel):
    """Request to add or extend a subscription."""

    subscriber_id: str = Field(..., min_length=1, description="Subscriber identity (chat user ID)")
    months: int = Field(
        ...,
        strict=True,
        description=f"Months to add ({MIN_MONTHS_PER_GRANT}-{MAX_MONTHS_PER_GRANT})",
    )
    role_id: Optional[str] = Field(None, description="Role to grant (uses default if not provided)")
    executor_id: Optional[str] = Field(None, description="Operator who issued the command")

    class Config:
        json_schema_extra = {
            "example": {
                "subscriber_id": "265318401234567890",
                "months": 3,
                "executor_id": "107713295628476416",
            }
        }


class SubscriptionView(BaseModel):
    """Subscription fields as exposed over HTTP."""

    subscriber_id: str
    role_id: str
    months: int
    start_at: datetime
    expires_at: datetime
    notified_1day: bool
    notified_30min: bool


class AddSubscriptionResponse(BaseModel):
    """Response after adding or extending a subscription."""

    subscription: SubscriptionView
    was_created: bool = Field(..., description="True for a new subscription, False for an extension")
    previous_expiry: Optional[datetime] = Field(None, description="Expiry before the extension")
    message: str = Field(..., description="Short human-readable summary")


class RemoveSubscriptionResponse(BaseModel):
    """Response after removing a subscription."""

    subscriber_id: str
    role_id: str
    message: str


class TimeRemaining(BaseModel):
    """Whole days/hours/minutes left before expiry."""

    days: int
    hours: int
    minutes: int
    expired: bool
    text: str = Field(..., description="Compact form, e.g. '5d 3h 45m' or 'Expired'")


class SubscriptionStatusResponse(BaseModel):
    """Status of one subscriber's subscription."""

    subscription: SubscriptionView
    active: bool = Field(..., description="expires_at is still in the future")
    status: str = Field(..., description="ACTIVE or EXPIRED")
    time_remaining: TimeRemaining


class RoleRemovedRequest(BaseModel):
    """Report that a subscriber's role was removed outside the service."""

    role_id: Optional[str] = Field(None, description="Removed role (defaults to the configured role)")


class RoleRemovedResponse(BaseModel):
    """Result of handling a manual role removal."""

    subscriber_id: str
    removed: bool = Field(..., description="True when a subscription was cleaned up")


class StatsResponse(BaseModel):
    """Subscription counts."""

    total: int
    active: int
    expired: int


class ActiveSubscriptionEntry(BaseModel):
    """One row of the active subscription listing."""

    subscriber_id: str
    role_id: str
    months: int
    start_at: datetime
    expires_at: datetime
    days_remaining: int
    hours_remaining: int
    minutes_remaining: int
    expiring_soon: bool = Field(..., description="Seven days or less left")
    expiring_today: bool = Field(..., description="Less than a day left")


class SweepExpiredResponse(BaseModel):
    """Result of an expiry sweep."""

    swept_at: datetime
    removed: list[str] = Field(default_factory=list, description="Subscriber IDs removed")


class SweepWarningsResponse(BaseModel):
    """Result of a warning sweep."""

    swept_at: datetime
    warn_1day: int = 0
    warn_30min: int = 0


class AdvanceTimeRequest(BaseModel):
    """Request to move virtual time forward."""

    days: int = Field(default=0, ge=0)
    hours: int = Field(default=0, ge=0)
    minutes: int = Field(default=0, ge=0)

    class Config:
        json_schema_extra = {"example": {"days": 29, "hours": 23, "minutes": 0}}


class SetTimeRequest(BaseModel):
    """Request to jump virtual time to an instant."""

    timestamp: datetime = Field(..., description="Target instant (must not be in the virtual past)")


class TimeChangeResponse(BaseModel):
    """Result of a virtual time change, including the sweeps run at the new time."""

    old_time: datetime
    new_time: datetime
    expired_removed: list[str] = Field(default_factory=list)
    warnings_sent: dict[str, int] = Field(default_factory=dict)


class TimeStatusResponse(BaseModel):
    """Current virtual time."""

    current_time: datetime
    offset_seconds: float
    frozen: bool


class ErrorResponse(BaseModel):
    """Body of 502/503/500 responses from the app-level exception handlers."""

    error: str
    message: str


class ErrorDetailResponse(BaseModel):
    """Body of 400/403/404 responses raised as HTTPException."""

    detail: ErrorResponse
