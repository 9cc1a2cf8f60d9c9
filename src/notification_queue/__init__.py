"""Notification Queue - priority-tiered notification delivery with retries.

This package admits notifications into five priority tiers, fans each one
out to its delivery channels concurrently, retries failed channels on a
step schedule and dead-letters items that exhaust their retries. Queue
state lives in memory or in Redis so several dispatcher processes can share
one queue.
"""

from notification_queue.channels import BroadcastSink, CallableSink, ChannelRegistry, WebhookSink
from notification_queue.config import NotificationConfig, load_config
from notification_queue.errors import (
    AdmissionError,
    AlreadyRunningError,
    ChannelNotRegisteredError,
    DeliveryError,
    ExhaustedRetriesError,
    MalformedItemError,
    NotificationQueueError,
    QueueFullError,
    RateLimitExceeded,
    ValidationError,
)
from notification_queue.events import (
    Completed,
    Delivered,
    DeliveryFailed,
    Enqueued,
    EventChannel,
    Expired,
    Failed,
    OutcomeEvent,
    RetryScheduled,
    Subscription,
)
from notification_queue.manager import NotificationManager
from notification_queue.models import (
    Channel,
    Notification,
    NotificationPriority,
    NotificationType,
    QueueItem,
)

__version__ = "0.1.0"

__all__ = [
    "AdmissionError",
    "AlreadyRunningError",
    "BroadcastSink",
    "CallableSink",
    "Channel",
    "ChannelNotRegisteredError",
    "ChannelRegistry",
    "Completed",
    "Delivered",
    "DeliveryError",
    "DeliveryFailed",
    "Enqueued",
    "EventChannel",
    "ExhaustedRetriesError",
    "Expired",
    "Failed",
    "MalformedItemError",
    "Notification",
    "NotificationConfig",
    "NotificationManager",
    "NotificationPriority",
    "NotificationQueueError",
    "NotificationType",
    "OutcomeEvent",
    "QueueFullError",
    "QueueItem",
    "RateLimitExceeded",
    "RetryScheduled",
    "Subscription",
    "ValidationError",
    "WebhookSink",
    "__version__",
    "load_config",
]
