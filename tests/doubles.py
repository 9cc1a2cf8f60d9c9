"""Test doubles shared across the unit and property suites."""

from __future__ import annotations

import asyncio
from collections.abc import Callable

from notification_queue.models.notification import Notification
from notification_queue.models.queue_item import QueueItem

type NotificationFactory = Callable[..., Notification]
type QueueItemFactory = Callable[..., QueueItem]


class FakeClock:
    """Manually advanced epoch-seconds clock."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now: float = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


class RecordingSink:
    """Channel sink that records deliveries and fails on demand.

    Args:
        failures: Number of initial deliveries that raise
        always_fail: Raise on every delivery
        delay: Seconds to sleep before answering
    """

    def __init__(self, *, failures: int = 0, always_fail: bool = False, delay: float = 0.0) -> None:
        self.failures_left: int = failures
        self.always_fail: bool = always_fail
        self.delay: float = delay
        self.calls: int = 0
        self.delivered: list[Notification] = []

    async def deliver(self, notification: Notification) -> None:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.always_fail or self.failures_left > 0:
            self.failures_left -= 1
            msg = f"sink unavailable for {notification.id}"
            raise ConnectionError(msg)
        self.delivered.append(notification)
