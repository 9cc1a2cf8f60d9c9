"""Queue item model: a notification plus its delivery bookkeeping."""

from __future__ import annotations

import uuid
from typing import Self

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from notification_queue.errors import MalformedItemError
from notification_queue.models.enums import Channel, NotificationPriority
from notification_queue.models.notification import Notification


class DeliveryAttempt(BaseModel):
    """One delivery of one item to one channel."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    timestamp: float
    channel: Channel
    success: bool
    error: str | None = None


class QueueItem(BaseModel):
    """Unit of work stored in the queue.

    Times are epoch seconds from the owning component's clock. ``priority``
    is the tier the item was admitted into; retries and stale-claim reclaims
    always return it to that tier.
    """

    model_config = ConfigDict(extra="forbid")

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    notification: Notification
    priority: NotificationPriority
    channels: tuple[Channel, ...]
    retry_count: int = Field(default=0, ge=0)
    max_retries: int = Field(default=5, ge=0)
    enqueued_at: float
    scheduled_at: float
    claimed_at: float | None = None
    failed_at: float | None = None
    attempts: list[DeliveryAttempt] = Field(default_factory=list)

    @model_validator(mode="after")
    def _retry_count_within_bound(self) -> Self:
        if self.retry_count > self.max_retries:
            msg = f"retry_count {self.retry_count} exceeds max_retries {self.max_retries}"
            raise ValueError(msg)
        return self

    def succeeded_channels(self) -> frozenset[Channel]:
        return frozenset(attempt.channel for attempt in self.attempts if attempt.success)

    def remaining_channels(self) -> tuple[Channel, ...]:
        """Requested channels that have not yet been delivered successfully."""
        done = self.succeeded_channels()
        return tuple(channel for channel in self.channels if channel not in done)

    def attempts_for(self, channel: Channel) -> list[DeliveryAttempt]:
        return [attempt for attempt in self.attempts if attempt.channel is channel]

    def last_errors(self) -> list[str]:
        return [attempt.error for attempt in self.attempts if attempt.error]

    def is_due(self, now: float) -> bool:
        return self.scheduled_at <= now

    def encode(self) -> str:
        return self.model_dump_json()

    @classmethod
    def decode(cls, item_id: str, raw: str | bytes | None) -> QueueItem:
        """Parse a stored record.

        Raises:
            MalformedItemError: If the record is missing or does not validate
        """
        if raw is None:
            raise MalformedItemError(item_id, "record is missing")
        try:
            return cls.model_validate_json(raw)
        except ValidationError as exc:
            raise MalformedItemError(item_id, f"{exc.error_count()} validation error(s)") from exc
