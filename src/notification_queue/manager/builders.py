"""Typed notification constructors for the domain events the queue carries.

Each builder maps a domain payload to the notification type, priority,
source and default channels the rest of the system expects. The tables
mirror the semantics of the upstream producers, so a task that ``failed``
with an error is always HIGH and a ``critical`` performance impact always
raises a CRITICAL alert.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Final, Literal

from notification_queue.models.enums import Channel, NotificationPriority, NotificationType
from notification_queue.models.notification import Notification
from notification_queue.models.payloads import (
    DataProcessingPayload,
    PerformancePayload,
    SecurityPayload,
    ServiceNowPayload,
    SystemPayload,
    TaskPayload,
)

__all__ = [
    "SecurityEvent",
    "data_processing_notification",
    "performance_notification",
    "security_notification",
    "servicenow_notification",
    "system_notification",
    "task_notification",
]

type SecurityEvent = Literal["alert", "success", "failure", "denied"]

_REALTIME: Final[frozenset[Channel]] = frozenset({Channel.SOCKET, Channel.STREAM})
_PERFORMANCE_CHANNELS: Final[frozenset[Channel]] = frozenset({Channel.SOCKET, Channel.STREAM, Channel.EMAIL})
_SECURITY_CHANNELS: Final[frozenset[Channel]] = frozenset({Channel.SOCKET, Channel.EMAIL, Channel.AUDIT})

_TASK_STATUS_TYPES: Final[dict[str, NotificationType]] = {
    "created": NotificationType.TASK_CREATED,
    "started": NotificationType.TASK_STARTED,
    "running": NotificationType.TASK_STARTED,
    "progress": NotificationType.TASK_PROGRESS,
    "completed": NotificationType.TASK_COMPLETED,
    "success": NotificationType.TASK_COMPLETED,
    "failed": NotificationType.TASK_FAILED,
    "error": NotificationType.TASK_FAILED,
    "cancelled": NotificationType.TASK_CANCELLED,
}

_HEALTH_TYPES: Final[dict[str, tuple[NotificationType, NotificationPriority]]] = {
    "unhealthy": (NotificationType.SYSTEM_ERROR, NotificationPriority.CRITICAL),
    "degraded": (NotificationType.SYSTEM_WARNING, NotificationPriority.HIGH),
    "healthy": (NotificationType.SYSTEM_INFO, NotificationPriority.INFO),
}

_TABLE_TYPES: Final[dict[str, NotificationType]] = {
    "incident": NotificationType.SERVICENOW_INCIDENT,
    "problem": NotificationType.SERVICENOW_PROBLEM,
    "change_request": NotificationType.SERVICENOW_CHANGE,
}

_SERVICENOW_ACTION_PRIORITIES: Final[dict[str, NotificationPriority]] = {
    "disconnected": NotificationPriority.HIGH,
    "connected": NotificationPriority.MEDIUM,
}

# process type -> (start type, complete type)
_PROCESS_TYPES: Final[dict[str, tuple[NotificationType, NotificationType]]] = {
    "export": (NotificationType.DATA_EXPORT_START, NotificationType.DATA_EXPORT_COMPLETE),
    "parquet_export": (NotificationType.DATA_EXPORT_START, NotificationType.DATA_EXPORT_COMPLETE),
    "sync": (NotificationType.DATA_SYNC_START, NotificationType.DATA_SYNC_COMPLETE),
    "data_sync": (NotificationType.DATA_SYNC_START, NotificationType.DATA_SYNC_COMPLETE),
    "pipeline": (NotificationType.DATA_PIPELINE_START, NotificationType.DATA_PIPELINE_COMPLETE),
    "data_pipeline": (NotificationType.DATA_PIPELINE_START, NotificationType.DATA_PIPELINE_COMPLETE),
}

_DATA_STATUS_PRIORITIES: Final[dict[str, NotificationPriority]] = {
    "failed": NotificationPriority.HIGH,
    "completed": NotificationPriority.MEDIUM,
}

_IMPACT_TYPES: Final[dict[str, tuple[NotificationType, NotificationPriority]]] = {
    "critical": (NotificationType.PERFORMANCE_ALERT, NotificationPriority.CRITICAL),
    "high": (NotificationType.PERFORMANCE_DEGRADATION, NotificationPriority.HIGH),
    "medium": (NotificationType.PERFORMANCE_DEGRADATION, NotificationPriority.MEDIUM),
    "low": (NotificationType.PERFORMANCE_RECOVERY, NotificationPriority.LOW),
}

_SECURITY_TYPES: Final[dict[str, NotificationType]] = {
    "alert": NotificationType.SECURITY_ALERT,
    "success": NotificationType.AUTH_SUCCESS,
    "failure": NotificationType.AUTH_FAILURE,
    "denied": NotificationType.ACCESS_DENIED,
}

_HIGH_RISK_SCORE: Final[float] = 8.0


def task_type_for_status(status: str) -> NotificationType:
    """Map a task status to its notification type; unknown statuses count as progress."""
    return _TASK_STATUS_TYPES.get(status.lower(), NotificationType.TASK_PROGRESS)


def task_priority(status: str, error: str | None) -> NotificationPriority:
    status = status.lower()
    if status == "failed" and error:
        return NotificationPriority.HIGH
    if status == "completed":
        return NotificationPriority.INFO
    return NotificationPriority.MEDIUM


def security_priority(event: str, risk_score: float | None) -> NotificationPriority:
    """High risk scores escalate any security event to CRITICAL.

    Examples:
        >>> security_priority("success", 9.5)
        <NotificationPriority.CRITICAL: 'critical'>
        >>> security_priority("denied", None)
        <NotificationPriority.MEDIUM: 'medium'>
    """
    if risk_score is not None and risk_score >= _HIGH_RISK_SCORE:
        return NotificationPriority.CRITICAL
    if event == "alert":
        return NotificationPriority.HIGH
    if event in ("denied", "failure"):
        return NotificationPriority.MEDIUM
    return NotificationPriority.LOW


def _metadata(metadata: Mapping[str, object] | None) -> dict[str, object]:
    return dict(metadata) if metadata else {}


def task_notification(payload: TaskPayload, *, metadata: Mapping[str, object] | None = None) -> Notification:
    return Notification(
        type=task_type_for_status(payload.status),
        source="task_manager",
        priority=task_priority(payload.status, payload.error),
        channels=_REALTIME,
        payload=payload,
        metadata=_metadata(metadata),
    )


def system_notification(payload: SystemPayload, *, metadata: Mapping[str, object] | None = None) -> Notification:
    """System notifications are sourced from the reporting component itself."""
    notification_type, priority = _HEALTH_TYPES.get(
        payload.health_status or "",
        (NotificationType.SYSTEM_HEALTH, NotificationPriority.MEDIUM),
    )
    return Notification(
        type=notification_type,
        source=payload.component,
        priority=priority,
        channels=_REALTIME,
        payload=payload,
        metadata=_metadata(metadata),
    )


def servicenow_notification(
    payload: ServiceNowPayload,
    *,
    metadata: Mapping[str, object] | None = None,
) -> Notification:
    return Notification(
        type=_TABLE_TYPES.get(payload.table_name.lower(), NotificationType.SERVICENOW_CONNECTION),
        source="servicenow_client",
        priority=_SERVICENOW_ACTION_PRIORITIES.get(payload.action, NotificationPriority.LOW),
        channels=_REALTIME,
        payload=payload,
        metadata=_metadata(metadata),
    )


def data_processing_notification(
    payload: DataProcessingPayload,
    *,
    metadata: Mapping[str, object] | None = None,
) -> Notification:
    start_type, complete_type = _PROCESS_TYPES.get(payload.process_type.lower(), _PROCESS_TYPES["export"])
    return Notification(
        type=start_type if payload.status == "started" else complete_type,
        source="data_processor",
        priority=_DATA_STATUS_PRIORITIES.get(payload.status, NotificationPriority.LOW),
        channels=_REALTIME,
        payload=payload,
        metadata=_metadata(metadata),
    )


def performance_notification(
    payload: PerformancePayload,
    *,
    metadata: Mapping[str, object] | None = None,
) -> Notification:
    notification_type, priority = _IMPACT_TYPES[payload.impact]
    return Notification(
        type=notification_type,
        source="performance_monitor",
        priority=priority,
        channels=_PERFORMANCE_CHANNELS,
        payload=payload,
        metadata=_metadata(metadata),
    )


def security_notification(
    payload: SecurityPayload,
    event: SecurityEvent,
    *,
    metadata: Mapping[str, object] | None = None,
) -> Notification:
    return Notification(
        type=_SECURITY_TYPES.get(event, NotificationType.SECURITY_ALERT),
        source="security_monitor",
        priority=security_priority(event, payload.risk_score),
        channels=_SECURITY_CHANNELS,
        payload=payload,
        metadata=_metadata(metadata),
    )
