"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import logging
from collections.abc import Iterator

import pytest
from doubles import FakeClock, NotificationFactory, QueueItemFactory

from notification_queue.config.models import NotificationConfig
from notification_queue.models.enums import Channel, NotificationPriority, NotificationType
from notification_queue.models.notification import Notification
from notification_queue.models.queue_item import QueueItem
from notification_queue.queue.store.memory_store import MemoryQueueStore
from notification_queue.utils.logging import clear_correlation_id


@pytest.fixture(autouse=True)
def _reset_correlation_id() -> Iterator[None]:
    """Keep correlation IDs from leaking between tests."""
    clear_correlation_id()
    yield
    clear_correlation_id()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def config() -> NotificationConfig:
    """Default configuration with fast, deterministic timings."""
    return NotificationConfig.model_validate(
        {
            "queue": {"retry_delays": [1.0, 5.0, 15.0], "max_retries": 3, "processing_interval": 0.01},
            "rate_limits": {"per_minute": 1000, "per_hour": 10_000, "burst_size": 1000},
        }
    )


@pytest.fixture
def memory_store() -> MemoryQueueStore:
    return MemoryQueueStore(max_size=100)


@pytest.fixture
def make_notification() -> NotificationFactory:
    """Build notifications with sensible defaults; keyword arguments override."""

    def _make(**overrides: object) -> Notification:
        fields: dict[str, object] = {
            "type": NotificationType.SYSTEM_INFO.value,
            "source": "unit-test",
            "priority": NotificationPriority.MEDIUM,
        }
        fields.update(overrides)
        return Notification.model_validate(fields)

    return _make


@pytest.fixture
def make_item(make_notification: NotificationFactory, clock: FakeClock) -> QueueItemFactory:
    """Build queue items due now on the fake clock."""

    def _make(
        priority: NotificationPriority = NotificationPriority.MEDIUM,
        channels: tuple[Channel, ...] = (Channel.SOCKET,),
        **overrides: object,
    ) -> QueueItem:
        fields: dict[str, object] = {
            "notification": make_notification(priority=priority),
            "priority": priority,
            "channels": channels,
            "enqueued_at": clock.now,
            "scheduled_at": clock.now,
        }
        fields.update(overrides)
        return QueueItem.model_validate(fields)

    return _make


@pytest.fixture
def restore_root_logger() -> Iterator[logging.Logger]:
    """Put the root logger's handlers and level back after configure_logging."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield root
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
