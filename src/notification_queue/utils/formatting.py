"""Human-readable titles and bodies for notifications.

Pure functions shared by sinks that render a notification for people
(webhook payloads, email subjects, push titles). Types without a dedicated
rule fall back to a title-cased form of the dotted type.
"""

from __future__ import annotations

import re

from notification_queue.models.enums import NotificationType
from notification_queue.models.notification import Notification
from notification_queue.models.payloads import (
    PerformancePayload,
    ServiceNowPayload,
    SystemPayload,
    TaskPayload,
)

_TYPE_SEPARATORS = re.compile(r"[._]+")


def humanize_type(notification_type: NotificationType | str) -> str:
    """Title-case a dotted or snake-cased notification type.

    Examples:
        >>> humanize_type("data.export.start")
        'Data Export Start'
        >>> humanize_type("custom_event")
        'Custom Event'
    """
    words = _TYPE_SEPARATORS.split(str(notification_type))
    return " ".join(word.capitalize() for word in words if word)


def notification_title(notification: Notification) -> str:
    """Short, one-line title for ``notification``."""
    payload = notification.payload
    match notification.type:
        case NotificationType.TASK_COMPLETED if isinstance(payload, TaskPayload):
            return f"Task Completed: {payload.task_type}"
        case NotificationType.TASK_FAILED if isinstance(payload, TaskPayload):
            return f"Task Failed: {payload.task_type}"
        case NotificationType.SYSTEM_ERROR if isinstance(payload, SystemPayload):
            return f"System Error: {payload.component}"
        case NotificationType.PERFORMANCE_ALERT if isinstance(payload, PerformancePayload):
            return f"Performance Alert: {payload.metric}"
        case NotificationType.SECURITY_ALERT:
            return "Security Alert Detected"
        case _:
            return humanize_type(notification.type)


def notification_body(notification: Notification) -> str:
    """Plain-text body describing ``notification``."""
    payload = notification.payload
    match notification.type:
        case NotificationType.TASK_COMPLETED if isinstance(payload, TaskPayload):
            return f"Task {payload.task_id} of type {payload.task_type} has completed successfully."
        case NotificationType.TASK_FAILED if isinstance(payload, TaskPayload):
            return f"Task {payload.task_id} failed: {payload.error or 'Unknown error'}"
        case NotificationType.SYSTEM_ERROR if isinstance(payload, SystemPayload):
            return f"System component {payload.component} reported an error: {payload.message}"
        case NotificationType.PERFORMANCE_ALERT if isinstance(payload, PerformancePayload):
            return (
                f"Performance metric {payload.metric} exceeded threshold: "
                f"{payload.current_value} > {payload.threshold}"
            )
        case _:
            return f"Notification from {notification.source}: {notification.type}"


def notification_path(notification: Notification) -> str:
    """Relative UI path a reader can follow for details."""
    payload = notification.payload
    if notification.type in (NotificationType.TASK_COMPLETED, NotificationType.TASK_FAILED) and isinstance(
        payload, TaskPayload
    ):
        return f"/tasks/{payload.task_id}"
    if (
        notification.type is NotificationType.SERVICENOW_INCIDENT
        and isinstance(payload, ServiceNowPayload)
        and payload.record_id
    ):
        return f"/servicenow/incident/{payload.record_id}"
    return "/notifications"
