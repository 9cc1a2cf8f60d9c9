"""Immutable notification model."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Self

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from notification_queue.models.enums import (
    Channel,
    NotificationCategory,
    NotificationPriority,
    NotificationType,
)
from notification_queue.models.payloads import PAYLOAD_CATEGORIES, GenericPayload, Payload

_KNOWN_TYPES = frozenset(member.value for member in NotificationType)


class Notification(BaseModel):
    """An event to be delivered to one or more channels.

    ``type`` is normally a :class:`NotificationType`; any other dotted string
    is accepted for custom events as long as the payload is generic. Blank
    ``id``, ``type`` or ``source`` values are representable here and rejected
    by the manager at admission time.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    type: NotificationType | str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    source: str
    priority: NotificationPriority = NotificationPriority.MEDIUM
    channels: frozenset[Channel] = frozenset()
    payload: Payload = Field(default_factory=GenericPayload)
    metadata: dict[str, object] = Field(default_factory=dict)

    @field_validator("type", mode="after")
    @classmethod
    def _coerce_known_type(cls, value: NotificationType | str) -> NotificationType | str:
        if value in _KNOWN_TYPES:
            return NotificationType(value)
        return value

    @model_validator(mode="after")
    def _payload_matches_type(self) -> Self:
        expected = PAYLOAD_CATEGORIES.get(self.payload.kind)
        if expected is None:
            return self
        if self.category is not expected:
            msg = f"{self.payload.kind} payload cannot be attached to a '{self.type}' notification"
            raise ValueError(msg)
        return self

    @property
    def category(self) -> NotificationCategory | None:
        """Category of a built-in type, None for custom types."""
        if isinstance(self.type, NotificationType):
            return self.type.category
        return None

    def to_wire(self) -> dict[str, object]:
        """JSON-ready dict with the payload flattened into ``data``."""
        return {
            "id": self.id,
            "type": str(self.type),
            "timestamp": self.timestamp.isoformat(),
            "source": self.source,
            "priority": self.priority.value,
            "data": self.payload.model_dump(mode="json", exclude={"kind"}, exclude_none=True),
            "metadata": self.metadata,
        }
