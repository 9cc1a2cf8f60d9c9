"""Enumerations shared by notifications, queue items and configuration."""

from __future__ import annotations

from enum import StrEnum
from typing import Final


class NotificationPriority(StrEnum):
    """Priority tier a notification is admitted into."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"

    @property
    def admits_at_head(self) -> bool:
        """CRITICAL and HIGH items jump to the head of their tier."""
        return self in (NotificationPriority.CRITICAL, NotificationPriority.HIGH)


# Tier drain order for every dispatch tick
PRIORITY_ORDER: Final[tuple[NotificationPriority, ...]] = (
    NotificationPriority.CRITICAL,
    NotificationPriority.HIGH,
    NotificationPriority.MEDIUM,
    NotificationPriority.LOW,
    NotificationPriority.INFO,
)


class Channel(StrEnum):
    """Independent delivery sinks a notification can fan out to."""

    SOCKET = "socket"
    STREAM = "stream"
    PUSH = "push"
    EMAIL = "email"
    WEBHOOK = "webhook"
    AUDIT = "audit"


class NotificationCategory(StrEnum):
    """Payload family; each category has one payload model."""

    TASK = "task"
    SYSTEM = "system"
    SERVICENOW = "servicenow"
    DATA = "data"
    PERFORMANCE = "performance"
    SECURITY = "security"


class NotificationType(StrEnum):
    """Dotted event type carried by every notification."""

    TASK_CREATED = "task.created"
    TASK_STARTED = "task.started"
    TASK_PROGRESS = "task.progress"
    TASK_COMPLETED = "task.completed"
    TASK_FAILED = "task.failed"
    TASK_CANCELLED = "task.cancelled"

    SYSTEM_HEALTH = "system.health"
    SYSTEM_ERROR = "system.error"
    SYSTEM_WARNING = "system.warning"
    SYSTEM_INFO = "system.info"

    SERVICENOW_INCIDENT = "servicenow.incident"
    SERVICENOW_PROBLEM = "servicenow.problem"
    SERVICENOW_CHANGE = "servicenow.change"
    SERVICENOW_CONNECTION = "servicenow.connection"

    DATA_EXPORT_START = "data.export.start"
    DATA_EXPORT_COMPLETE = "data.export.complete"
    DATA_SYNC_START = "data.sync.start"
    DATA_SYNC_COMPLETE = "data.sync.complete"
    DATA_PIPELINE_START = "data.pipeline.start"
    DATA_PIPELINE_COMPLETE = "data.pipeline.complete"

    PERFORMANCE_ALERT = "performance.alert"
    PERFORMANCE_DEGRADATION = "performance.degradation"
    PERFORMANCE_RECOVERY = "performance.recovery"

    SECURITY_ALERT = "security.alert"
    AUTH_SUCCESS = "auth.success"
    AUTH_FAILURE = "auth.failure"
    ACCESS_DENIED = "access.denied"

    @property
    def category(self) -> NotificationCategory:
        """Category this type belongs to."""
        prefix = self.value.split(".", 1)[0]
        return _PREFIX_CATEGORIES.get(prefix, NotificationCategory.SECURITY)


_PREFIX_CATEGORIES: Final[dict[str, NotificationCategory]] = {
    "task": NotificationCategory.TASK,
    "system": NotificationCategory.SYSTEM,
    "servicenow": NotificationCategory.SERVICENOW,
    "data": NotificationCategory.DATA,
    "performance": NotificationCategory.PERFORMANCE,
    # security.*, auth.* and access.* fall through to SECURITY
}
