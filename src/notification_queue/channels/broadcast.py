"""In-process broadcast sink for socket and event-stream style channels.

Every connected subscriber owns a bounded queue of wire messages and an
optional filter on priority, type and source. Delivery never waits on a
subscriber: a full queue drops the message for that subscriber only.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Self

from notification_queue.models.enums import NotificationPriority
from notification_queue.models.notification import Notification

__all__ = ["BroadcastSink", "BroadcastSubscriber", "SubscriberLimitError"]

logger = logging.getLogger(__name__)


class SubscriberLimitError(RuntimeError):
    """The sink already has ``max_subscribers`` connected subscribers."""


class BroadcastSubscriber:
    """One connected client of a :class:`BroadcastSink`."""

    def __init__(
        self,
        sink: BroadcastSink,
        *,
        priorities: frozenset[NotificationPriority] | None,
        types: frozenset[str] | None,
        sources: frozenset[str] | None,
        maxsize: int,
    ) -> None:
        self.id: str = uuid.uuid4().hex
        self._sink: BroadcastSink = sink
        self.priorities: frozenset[NotificationPriority] | None = priorities
        self.types: frozenset[str] | None = types
        self.sources: frozenset[str] | None = sources
        self._queue: asyncio.Queue[dict[str, object]] = asyncio.Queue(maxsize=maxsize)
        self.received: int = 0
        self.dropped: int = 0

    def matches(self, notification: Notification) -> bool:
        """Apply the subscriber's filters; an unset filter matches everything."""
        if self.priorities is not None and notification.priority not in self.priorities:
            return False
        if self.types is not None and str(notification.type) not in self.types:
            return False
        return self.sources is None or notification.source in self.sources

    def offer(self, message: dict[str, object]) -> bool:
        try:
            self._queue.put_nowait(message)
        except asyncio.QueueFull:
            self.dropped += 1
            return False
        self.received += 1
        return True

    async def get(self) -> dict[str, object]:
        return await self._queue.get()

    def get_nowait(self) -> dict[str, object]:
        return self._queue.get_nowait()

    def pending(self) -> int:
        return self._queue.qsize()

    def close(self) -> None:
        self._sink.disconnect(self)

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type: type[BaseException] | None, exc_val: BaseException | None, exc_tb: object) -> None:
        self.close()


class BroadcastSink:
    """Fan a channel's notifications out to every matching subscriber.

    Args:
        name: Label used in log records, usually the channel value
        max_subscribers: Connection limit; 0 means unlimited
        queue_size: Per-subscriber buffer of undelivered messages
    """

    def __init__(self, name: str = "broadcast", *, max_subscribers: int = 0, queue_size: int = 100) -> None:
        if max_subscribers < 0:
            msg = "max_subscribers must be >= 0"
            raise ValueError(msg)
        if queue_size < 1:
            msg = "queue_size must be >= 1"
            raise ValueError(msg)
        self.name: str = name
        self._max_subscribers: int = max_subscribers
        self._queue_size: int = queue_size
        self._subscribers: dict[str, BroadcastSubscriber] = {}

    def connect(
        self,
        *,
        priorities: Iterable[NotificationPriority | str] | None = None,
        types: Iterable[str] | None = None,
        sources: Iterable[str] | None = None,
    ) -> BroadcastSubscriber:
        """Attach a new subscriber.

        Raises:
            SubscriberLimitError: If the connection limit is reached
        """
        if self._max_subscribers and len(self._subscribers) >= self._max_subscribers:
            msg = f"{self.name}: connection limit of {self._max_subscribers} subscribers reached"
            raise SubscriberLimitError(msg)

        subscriber = BroadcastSubscriber(
            self,
            priorities=frozenset(NotificationPriority(p) for p in priorities) if priorities is not None else None,
            types=frozenset(str(t) for t in types) if types is not None else None,
            sources=frozenset(sources) if sources is not None else None,
            maxsize=self._queue_size,
        )
        self._subscribers[subscriber.id] = subscriber
        logger.debug("Subscriber connected", extra={"sink": self.name, "subscriber_id": subscriber.id})
        return subscriber

    def disconnect(self, subscriber: BroadcastSubscriber) -> None:
        if self._subscribers.pop(subscriber.id, None) is not None:
            logger.debug("Subscriber disconnected", extra={"sink": self.name, "subscriber_id": subscriber.id})

    def connection_count(self) -> int:
        return len(self._subscribers)

    async def deliver(self, notification: Notification) -> None:
        message: dict[str, object] = {
            "type": "notification",
            "data": notification.to_wire(),
            "timestamp": datetime.now(UTC).isoformat(),
        }
        delivered = 0
        for subscriber in list(self._subscribers.values()):
            if subscriber.matches(notification) and subscriber.offer(message):
                delivered += 1
        logger.debug(
            "Broadcast completed",
            extra={
                "sink": self.name,
                "notification_id": notification.id,
                "subscriber_count": len(self._subscribers),
                "delivered_count": delivered,
            },
        )
