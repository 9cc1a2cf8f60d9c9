"""Configuration schema for the notification queue.

Every tunable is enumerated here with its default; nothing is read from
module-level constants elsewhere. All durations are in seconds.
"""

from __future__ import annotations

from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, field_validator

from notification_queue.models.enums import Channel


class BaseConfig(BaseModel):
    """Base configuration model with common settings."""

    model_config = ConfigDict(
        extra="forbid",
        validate_assignment=True,
        str_strip_whitespace=True,
        validate_default=True,
    )


class QueueConfig(BaseConfig):
    """Queue sizing, retry schedule and loop intervals."""

    max_size: Annotated[
        int,
        Field(ge=1, description="Maximum number of items held across all priority tiers"),
    ] = 10_000
    retry_delays: Annotated[
        list[float],
        Field(
            min_length=1,
            description="Step table of retry delays; retries past the end reuse the last entry",
        ),
    ] = [1.0, 5.0, 15.0, 60.0, 300.0]
    max_retries: Annotated[
        int,
        Field(ge=0, description="Retries after the first attempt before an item is dead-lettered"),
    ] = 5
    batch_size: Annotated[
        int,
        Field(ge=1, description="Items claimed per tier per dispatch tick"),
    ] = 10
    processing_interval: Annotated[
        float,
        Field(gt=0, description="Seconds between dispatch ticks"),
    ] = 1.0
    cleanup_interval: Annotated[
        float,
        Field(gt=0, description="Seconds between cleanup sweeps"),
    ] = 300.0
    processing_timeout: Annotated[
        float,
        Field(gt=0, description="Claims older than this are treated as stalled and reclaimed"),
    ] = 300.0
    dead_retention: Annotated[
        float,
        Field(gt=0, description="Dead items older than this are expired by the sweep"),
    ] = 86_400.0

    @field_validator("retry_delays", mode="after")
    @classmethod
    def validate_retry_delays(cls, v: list[float]) -> list[float]:
        """Reject negative delays.

        Raises:
            ValueError: If any delay is negative
        """
        for delay in v:
            if delay < 0:
                msg = f"Retry delays must be non-negative, got: {delay}"
                raise ValueError(msg)
        return v


class RateLimitConfig(BaseConfig):
    """Per-source admission limits."""

    per_minute: Annotated[int, Field(ge=1, description="Notifications per source per minute bucket")] = 100
    per_hour: Annotated[int, Field(ge=1, description="Notifications per source per hour bucket")] = 1000
    burst_size: Annotated[int, Field(ge=1, description="Notifications per source per burst window")] = 10
    burst_window: Annotated[
        float,
        Field(gt=0, description="Seconds a burst counter lives after its first increment"),
    ] = 10.0
    counter_retention: Annotated[
        float,
        Field(gt=0, description="Minute/hour buckets older than this are deleted by the sweep"),
    ] = 86_400.0


class ChannelToggle(BaseConfig):
    """Enable flag for one delivery channel."""

    enabled: bool = True


class ChannelsConfig(BaseConfig):
    """Per-channel enable flags."""

    socket: ChannelToggle = ChannelToggle()
    stream: ChannelToggle = ChannelToggle()
    push: ChannelToggle = ChannelToggle()
    email: ChannelToggle = ChannelToggle()
    webhook: ChannelToggle = ChannelToggle()
    audit: ChannelToggle = ChannelToggle()

    def is_enabled(self, channel: Channel) -> bool:
        toggle: ChannelToggle = getattr(self, channel.value)
        return toggle.enabled

    def enabled_channels(self) -> frozenset[Channel]:
        return frozenset(channel for channel in Channel if self.is_enabled(channel))


class RedisConfig(BaseConfig):
    """Shared queue store settings. Without a URL everything stays in-process."""

    url: Annotated[
        str | None,
        Field(description="redis:// URL; when unset the in-memory store and limiter are used"),
    ] = None
    key_prefix: Annotated[str, Field(min_length=1, description="Prefix for every key the queue writes")] = (
        "notifications"
    )


class WebhookConfig(BaseConfig):
    """Targets for the bundled webhook sink."""

    urls: Annotated[list[str], Field(description="Webhook URLs every notification is POSTed to")] = []
    timeout: Annotated[float, Field(gt=0, description="Per-request timeout in seconds")] = 10.0


class LoggingConfig(BaseConfig):
    """Logging output settings."""

    level: Annotated[
        str,
        Field(description="Logging level", pattern=r"^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$"),
    ] = "INFO"
    syslog_enabled: Annotated[bool, Field(description="Forward logs to the local syslog socket")] = False


class NotificationConfig(BaseConfig):
    """Root configuration for a notification manager instance."""

    queue: QueueConfig = QueueConfig()
    rate_limits: RateLimitConfig = RateLimitConfig()
    channels: ChannelsConfig = ChannelsConfig()
    redis: RedisConfig = RedisConfig()
    webhook: WebhookConfig = WebhookConfig()
    logging: LoggingConfig = LoggingConfig()
