"""Result and snapshot dataclasses passed between components."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field

from notification_queue.models.enums import Channel, NotificationPriority


@dataclass(slots=True, frozen=True)
class DeliveryOutcome:
    """Result of one channel delivery within a tick."""

    channel: Channel
    success: bool
    duration_ms: float
    error: str | None = None


@dataclass(slots=True, frozen=True)
class ChannelStats:
    """Delivery counters for one channel."""

    sent: int = 0
    failed: int = 0
    avg_delivery_ms: float = 0.0


@dataclass(slots=True, frozen=True)
class QueueSizes:
    """Item counts per storage area."""

    tiers: Mapping[NotificationPriority, int]
    processing: int
    dead: int

    @property
    def queued(self) -> int:
        return sum(self.tiers.values())


@dataclass(slots=True, frozen=True)
class StatsSnapshot:
    """Point-in-time view of delivery statistics.

    ``sent`` and ``failed`` count channel deliveries; ``pending`` counts
    items waiting in a tier or held in processing.
    """

    sent: int
    failed: int
    pending: int
    by_channel: Mapping[Channel, ChannelStats]
    by_type: Mapping[str, int]
    by_priority: Mapping[NotificationPriority, int]
    connections: Mapping[Channel, int]
    avg_processing_ms: float
    queue_size: int
    error_rate: float
    generated_at: float
    queues: QueueSizes | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "total": {"sent": self.sent, "failed": self.failed, "pending": self.pending},
            "by_channel": {
                channel.value: {"sent": s.sent, "failed": s.failed, "avg_delivery_ms": s.avg_delivery_ms}
                for channel, s in self.by_channel.items()
            },
            "by_type": dict(self.by_type),
            "by_priority": {priority.value: count for priority, count in self.by_priority.items()},
            "connections": {channel.value: count for channel, count in self.connections.items()},
            "performance": {
                "avg_processing_ms": self.avg_processing_ms,
                "queue_size": self.queue_size,
                "error_rate": self.error_rate,
            },
            "generated_at": self.generated_at,
        }


@dataclass(slots=True, frozen=True)
class HealthReport:
    """Manager liveness and delivery ratios."""

    is_running: bool
    uptime_seconds: float
    components: Mapping[str, bool]
    total_notifications: int
    successful_deliveries: int
    failed_deliveries: int
    success_rate: float


@dataclass(slots=True)
class SweepResult:
    """What one cleanup sweep removed or recovered."""

    reclaimed: int = 0
    expired: int = 0
    malformed: int = 0
    rate_counters_removed: int = 0
    errors: list[str] = field(default_factory=list)
