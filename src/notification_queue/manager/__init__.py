"""Notification manager and typed notification constructors."""

from notification_queue.manager.builders import (
    SecurityEvent,
    data_processing_notification,
    performance_notification,
    security_notification,
    servicenow_notification,
    system_notification,
    task_notification,
)
from notification_queue.manager.manager import DEFAULT_CHANNELS, NotificationManager

__all__ = [
    "DEFAULT_CHANNELS",
    "NotificationManager",
    "SecurityEvent",
    "data_processing_notification",
    "performance_notification",
    "security_notification",
    "servicenow_notification",
    "system_notification",
    "task_notification",
]
