"""Exception hierarchy for the notification queue.

Admission errors are raised synchronously to whoever calls ``notify`` or
``enqueue`` and are never retried. Delivery errors are caught per channel by
the router and only ever show up in an item's attempt log, in events and in
stats. Everything derives from :class:`NotificationQueueError`.
"""

from __future__ import annotations

from collections.abc import Sequence


class NotificationQueueError(Exception):
    """Base exception for all notification queue errors."""


class AdmissionError(NotificationQueueError):
    """A notification was refused before it entered any tier."""


class ValidationError(AdmissionError):
    """A notification is missing a required field or requests no usable channel."""

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.field: str | None = field


class RateLimitExceeded(AdmissionError):
    """The notification's source is over its minute, hour or burst allowance."""

    def __init__(self, source: str) -> None:
        super().__init__(f"Rate limit exceeded for source '{source}'")
        self.source: str = source


class QueueFullError(AdmissionError):
    """The queue store already holds ``max_size`` items across all tiers."""

    def __init__(self, size: int, max_size: int) -> None:
        super().__init__(f"Queue is full ({size}/{max_size} items)")
        self.size: int = size
        self.max_size: int = max_size


class DeliveryError(NotificationQueueError):
    """A channel sink failed to deliver a notification.

    Wraps whatever the sink raised; the original exception is kept as
    ``__cause__``.
    """

    def __init__(self, channel: str, message: str) -> None:
        super().__init__(message)
        self.channel: str = channel


class ChannelNotRegisteredError(DeliveryError):
    """No sink is registered for the requested channel."""

    def __init__(self, channel: str) -> None:
        super().__init__(channel, f"No handler registered for channel '{channel}'")


class ExhaustedRetriesError(NotificationQueueError):
    """Describes an item that was moved to the dead area.

    Never raised by the dispatcher. It is attached to ``Failed`` events so
    observers can inspect why an item was dead-lettered.
    """

    def __init__(self, item_id: str, retry_count: int, errors: Sequence[str]) -> None:
        last = errors[-1] if errors else "unknown error"
        super().__init__(f"Item {item_id} exhausted {retry_count} retries; last error: {last}")
        self.item_id: str = item_id
        self.retry_count: int = retry_count
        self.errors: tuple[str, ...] = tuple(errors)


class MalformedItemError(NotificationQueueError):
    """A stored queue record could not be decoded."""

    def __init__(self, item_id: str, reason: str) -> None:
        super().__init__(f"Malformed queue item {item_id}: {reason}")
        self.item_id: str = item_id
        self.reason: str = reason


class AlreadyRunningError(NotificationQueueError):
    """``start()`` was called on a component that is already running."""
