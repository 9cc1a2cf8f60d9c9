"""Notification, payload and queue item models."""

from notification_queue.models.enums import (
    PRIORITY_ORDER,
    Channel,
    NotificationCategory,
    NotificationPriority,
    NotificationType,
)
from notification_queue.models.notification import Notification
from notification_queue.models.payloads import (
    DataProcessingPayload,
    GenericPayload,
    Payload,
    PerformancePayload,
    SecurityPayload,
    ServiceNowPayload,
    SystemMetrics,
    SystemPayload,
    TaskPayload,
)
from notification_queue.models.queue_item import DeliveryAttempt, QueueItem

__all__ = [
    "PRIORITY_ORDER",
    "Channel",
    "DataProcessingPayload",
    "DeliveryAttempt",
    "GenericPayload",
    "Notification",
    "NotificationCategory",
    "NotificationPriority",
    "NotificationType",
    "Payload",
    "PerformancePayload",
    "QueueItem",
    "SecurityPayload",
    "ServiceNowPayload",
    "SystemMetrics",
    "SystemPayload",
    "TaskPayload",
]
