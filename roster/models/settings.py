"""Service settings models.

Models for config/roster.yaml.
"""

from typing import Literal, Optional

from pydantic import BaseModel, Field, model_validator


class StoreConfig(BaseModel):
    """Subscription store backend selection."""

    backend: Literal["memory", "mongo"] = Field(default="memory", description="Store backend")
    mongo_uri: Optional[str] = Field(None, description="MongoDB connection URI (mongo backend only)")
    database: str = Field(default="roster", description="MongoDB database name")
    collection: str = Field(default="subscriptions", description="MongoDB collection name")


class ScheduleConfig(BaseModel):
    """Periodic sweep intervals."""

    enabled: bool = Field(default=True, description="Run sweeps on a schedule")
    expiry_sweep_interval_minutes: int = Field(default=60, gt=0, description="Expiry sweep interval")
    warning_sweep_interval_minutes: int = Field(default=5, gt=0, description="Warning sweep interval")


class WarningConfig(BaseModel):
    """Lead times and eligibility windows of the two expiry warnings.

    A warning is eligible while the time left before expiry lies in
    [lead, lead + window).
    """

    one_day_lead_minutes: int = Field(default=24 * 60, gt=0)
    one_day_window_minutes: int = Field(default=10, gt=0)
    thirty_min_lead_minutes: int = Field(default=30, gt=0)
    thirty_min_window_minutes: int = Field(default=5, gt=0)

    class Config:
        json_schema_extra = {
            "example": {
                "one_day_lead_minutes": 1440,
                "one_day_window_minutes": 10,
                "thirty_min_lead_minutes": 30,
                "thirty_min_window_minutes": 5,
            }
        }


class PubSubConfig(BaseModel):
    """Pub/Sub topic receiving subscription notifications."""

    enabled: bool = Field(default=False, description="Publish notifications to Pub/Sub")
    project_id: str = Field(default="roster-local", description="GCP project ID")
    topic: str = Field(default="roster-notifications", description="Pub/Sub topic name")
    publish_timeout_seconds: float = Field(default=5.0, gt=0)


class DiscordConfig(BaseModel):
    """Chat platform REST API access used for role changes."""

    bot_token: Optional[str] = Field(None, description="Bot token; role changes are skipped without it")
    api_base: str = Field(default="https://discord.com/api/v10")
    request_timeout_seconds: float = Field(default=10.0, gt=0)
    max_retries: int = Field(default=3, ge=0, description="Retries on rate limiting")


class RosterSettings(BaseModel):
    """Complete roster.yaml configuration."""

    default_role_id: str = Field(..., min_length=1, description="Role granted when none is given")
    guild_id: Optional[str] = Field(None, description="Community server (guild) ID")
    notification_channel_id: Optional[str] = Field(
        None, description="Channel the delivery worker posts grant/revoke/expiry notices to"
    )
    time_control_enabled: bool = Field(default=False, description="Expose virtual time endpoints")
    store: StoreConfig = Field(default_factory=StoreConfig)
    schedule: ScheduleConfig = Field(default_factory=ScheduleConfig)
    warnings: WarningConfig = Field(default_factory=WarningConfig)
    pubsub: PubSubConfig = Field(default_factory=PubSubConfig)
    discord: DiscordConfig = Field(default_factory=DiscordConfig)

    @model_validator(mode="after")
    def check_warning_windows(self) -> "RosterSettings":
        """A window narrower than the sweep interval can be skipped entirely."""
        interval = self.schedule.warning_sweep_interval_minutes
        for name in ("one_day_window_minutes", "thirty_min_window_minutes"):
            width = getattr(self.warnings, name)
            if width < interval:
                raise ValueError(
                    f"warnings.{name} ({width}) must be at least "
                    f"schedule.warning_sweep_interval_minutes ({interval})"
                )
        if self.store.backend == "mongo" and not self.store.mongo_uri:
            raise ValueError("store.mongo_uri is required when store.backend is 'mongo'")
        return self
