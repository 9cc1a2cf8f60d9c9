"""Typed outcome events and the channel they are published on.

The dispatcher and manager publish one immutable event per state change of
a queue item. Observers (the manager's stats, tests, external collaborators)
subscribe and read events from their own queue; nobody shares a mutable
emitter and a slow subscriber never blocks the dispatcher.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import ClassVar, Self

from notification_queue.errors import ExhaustedRetriesError
from notification_queue.models.enums import Channel, NotificationPriority
from notification_queue.models.notification import Notification
from notification_queue.models.queue_item import DeliveryAttempt

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True, kw_only=True)
class OutcomeEvent:
    """Base class for everything published on an :class:`EventChannel`."""

    kind: ClassVar[str] = "event"

    item_id: str
    notification: Notification
    timestamp: float


@dataclass(slots=True, frozen=True, kw_only=True)
class Enqueued(OutcomeEvent):
    kind: ClassVar[str] = "enqueued"

    priority: NotificationPriority
    channels: tuple[Channel, ...]


@dataclass(slots=True, frozen=True, kw_only=True)
class Delivered(OutcomeEvent):
    kind: ClassVar[str] = "delivered"

    channel: Channel
    duration_ms: float


@dataclass(slots=True, frozen=True, kw_only=True)
class DeliveryFailed(OutcomeEvent):
    kind: ClassVar[str] = "delivery_failed"

    channel: Channel
    error: str


@dataclass(slots=True, frozen=True, kw_only=True)
class Completed(OutcomeEvent):
    """Every requested channel has been delivered; the item was acked."""

    kind: ClassVar[str] = "completed"

    duration_ms: float
    retry_count: int
    attempts: tuple[DeliveryAttempt, ...]


@dataclass(slots=True, frozen=True, kw_only=True)
class RetryScheduled(OutcomeEvent):
    kind: ClassVar[str] = "retry_scheduled"

    delay: float
    retry_count: int
    scheduled_at: float
    channels: tuple[Channel, ...]


@dataclass(slots=True, frozen=True, kw_only=True)
class Failed(OutcomeEvent):
    """Retries are exhausted; the item now sits in the dead area."""

    kind: ClassVar[str] = "failed"

    retry_count: int
    attempts: tuple[DeliveryAttempt, ...]
    error: ExhaustedRetriesError


@dataclass(slots=True, frozen=True, kw_only=True)
class Expired(OutcomeEvent):
    """A dead item passed its retention window and was deleted."""

    kind: ClassVar[str] = "expired"

    failed_at: float | None


EVENT_TYPES: tuple[type[OutcomeEvent], ...] = (
    Enqueued,
    Delivered,
    DeliveryFailed,
    Completed,
    RetryScheduled,
    Failed,
    Expired,
)


def _kind_of(kind: type[OutcomeEvent] | str) -> str:
    return kind if isinstance(kind, str) else kind.kind


class Subscription:
    """One subscriber's view of an :class:`EventChannel`.

    Iterate with ``async for`` until :meth:`close` is called, or poll with
    :meth:`get` / :meth:`drain`.
    """

    def __init__(self, channel: EventChannel, kinds: frozenset[str], maxsize: int) -> None:
        self._channel: EventChannel = channel
        self.kinds: frozenset[str] = kinds
        self._queue: asyncio.Queue[OutcomeEvent | None] = asyncio.Queue(maxsize=maxsize)
        self._closed: bool = False
        self.dropped: int = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def accepts(self, event: OutcomeEvent) -> bool:
        return not self.kinds or event.kind in self.kinds

    def _offer(self, event: OutcomeEvent) -> bool:
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            self.dropped += 1
            return False
        return True

    async def get(self) -> OutcomeEvent | None:
        """Wait for the next event; None once the subscription is closed and empty."""
        if self._closed and self._queue.empty():
            return None
        return await self._queue.get()

    def drain(self) -> list[OutcomeEvent]:
        """Return every buffered event without waiting."""
        events: list[OutcomeEvent] = []
        while not self._queue.empty():
            event = self._queue.get_nowait()
            if event is not None:
                events.append(event)
        return events

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._channel.unsubscribe(self)
        # A full bounded queue gets no sentinel; get() checks the flag once drained
        if not self._queue.full():
            self._queue.put_nowait(None)

    def __aiter__(self) -> Self:
        return self

    async def __anext__(self) -> OutcomeEvent:
        event = await self.get()
        if event is None:
            raise StopAsyncIteration
        return event


class EventChannel:
    """Fan-out of outcome events to independent subscriber queues."""

    def __init__(self) -> None:
        self._subscriptions: list[Subscription] = []

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def subscribe(
        self,
        *kinds: type[OutcomeEvent] | str,
        maxsize: int = 0,
    ) -> Subscription:
        """Open a subscription, optionally restricted to some event kinds.

        Args:
            *kinds: Event classes or kind names; none means every event
            maxsize: Queue bound; 0 is unbounded. Events for a full
                subscriber are dropped and counted in ``dropped``.
        """
        subscription = Subscription(self, frozenset(_kind_of(k) for k in kinds), maxsize)
        self._subscriptions.append(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)

    def publish(self, event: OutcomeEvent) -> int:
        """Offer ``event`` to every matching subscriber.

        Returns:
            Number of subscribers that received it
        """
        delivered = 0
        for subscription in list(self._subscriptions):
            if not subscription.accepts(event):
                continue
            if subscription._offer(event):  # pyright: ignore[reportPrivateUsage]
                delivered += 1
            else:
                logger.warning(
                    "Dropped %s event for a full subscriber",
                    event.kind,
                    extra={"item_id": event.item_id},
                )
        return delivered

    def close(self) -> None:
        for subscription in list(self._subscriptions):
            subscription.close()
