"""Typed notification payloads.

One model per notification category, tagged by ``kind`` so a notification's
payload can be validated as a discriminated union. ``GenericPayload`` carries
free-form data for events outside the built-in categories.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field

from notification_queue.models.enums import NotificationCategory


class _Payload(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid", str_strip_whitespace=True)


class TaskPayload(_Payload):
    """Background task lifecycle update."""

    kind: Literal["task"] = "task"
    task_id: str
    task_type: str
    status: str
    progress: Annotated[float | None, Field(ge=0.0, le=100.0)] = None
    result: dict[str, object] | None = None
    error: str | None = None
    estimated_completion: datetime | None = None
    duration: Annotated[float | None, Field(ge=0.0, description="Duration in seconds")] = None


class SystemMetrics(_Payload):
    """Host utilisation percentages reported with system notifications."""

    cpu: float
    memory: float
    disk: float
    network: float


class SystemPayload(_Payload):
    """Component health or diagnostic message."""

    kind: Literal["system"] = "system"
    component: str
    message: str
    details: dict[str, object] | None = None
    metrics: SystemMetrics | None = None
    health_status: Literal["healthy", "degraded", "unhealthy"] | None = None


class ServiceNowPayload(_Payload):
    """ServiceNow record change or instance connection event."""

    kind: Literal["servicenow"] = "servicenow"
    record_id: str | None = None
    record_number: str | None = None
    table_name: str
    action: Literal["created", "updated", "deleted", "connected", "disconnected"]
    record_data: dict[str, object] | None = None
    connection_status: Literal["connected", "disconnected", "error"] | None = None
    instance: str | None = None


class DataProcessingPayload(_Payload):
    """Export, sync or pipeline run status."""

    kind: Literal["data"] = "data"
    process_id: str
    process_type: str
    table_name: str | None = None
    record_count: Annotated[int | None, Field(ge=0)] = None
    file_path: str | None = None
    file_size: Annotated[int | None, Field(ge=0)] = None
    duration: Annotated[float | None, Field(ge=0.0)] = None
    status: Literal["started", "completed", "failed"]
    error: str | None = None


class PerformancePayload(_Payload):
    """Metric threshold crossing."""

    kind: Literal["performance"] = "performance"
    metric: str
    current_value: float
    threshold: float
    trend: Literal["increasing", "decreasing", "stable"]
    impact: Literal["low", "medium", "high", "critical"]
    recommended_action: str | None = None


class SecurityPayload(_Payload):
    """Authentication or access-control event."""

    kind: Literal["security"] = "security"
    user_id: str | None = None
    client_ip: str | None = None
    user_agent: str | None = None
    endpoint: str | None = None
    method: str | None = None
    reason: str | None = None
    risk_score: Annotated[float | None, Field(ge=0.0, le=10.0)] = None
    country_code: str | None = None


class GenericPayload(_Payload):
    """Untyped payload for arbitrary events."""

    kind: Literal["generic"] = "generic"
    data: dict[str, object] = Field(default_factory=dict)


Payload = Annotated[
    TaskPayload
    | SystemPayload
    | ServiceNowPayload
    | DataProcessingPayload
    | PerformancePayload
    | SecurityPayload
    | GenericPayload,
    Field(discriminator="kind"),
]

PAYLOAD_CATEGORIES: dict[str, NotificationCategory] = {
    "task": NotificationCategory.TASK,
    "system": NotificationCategory.SYSTEM,
    "servicenow": NotificationCategory.SERVICENOW,
    "data": NotificationCategory.DATA,
    "performance": NotificationCategory.PERFORMANCE,
    "security": NotificationCategory.SECURITY,
}
